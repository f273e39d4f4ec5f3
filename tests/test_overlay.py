from __future__ import annotations

import pytest

from overlay import AMPLITUDE_CLAMP_MAX, normalized_power


@pytest.mark.parametrize("amplitude", [0, 5, 10])
def test_quiet_input_maps_to_zero(amplitude: int) -> None:
    assert normalized_power(amplitude) == 0.0


def test_loud_input_is_clamped_to_one() -> None:
    assert normalized_power(AMPLITUDE_CLAMP_MAX) == pytest.approx(1.0)
    assert normalized_power(32767) == pytest.approx(1.0)


def test_scale_is_logarithmic() -> None:
    assert normalized_power(100) < normalized_power(1000) < normalized_power(10000)
    assert normalized_power(1000) - normalized_power(100) == pytest.approx(
        normalized_power(10000) - normalized_power(1000)
    )
