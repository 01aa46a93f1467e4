"""Adaptive spike threshold math.

The jump a feed needs before it counts as spiking depends on how many people
are listening. Quiet feeds swing wildly in percentage terms, so their bar is
raised by `low_listener_increase` for every listener below the pivot. Busy
feeds are worth flagging on smaller moves, so their bar drops by
`high_listener_dec` for every full `high_listener_dec_every` listeners above
the pivot. The two adjustments never apply together.
"""

from __future__ import annotations

import math

import numpy as np

from .config_models import SpikeConfig

LISTENER_PIVOT = 100


def required_jump_fraction(listener_count: int, spike: SpikeConfig) -> np.float32:
    """Fraction over baseline that `listener_count` must exceed to be a spike."""
    fraction = np.float32(spike.jump)
    if listener_count < LISTENER_PIVOT:
        fraction += np.float32(spike.low_listener_increase) * np.float32(LISTENER_PIVOT - listener_count)
    elif listener_count > LISTENER_PIVOT:
        steps = math.floor((listener_count - LISTENER_PIVOT) / spike.high_listener_dec_every)
        fraction -= np.float32(spike.high_listener_dec) * np.float32(steps)
    return max(fraction, np.float32(0.0))


def adaptive_threshold(baseline: float, listener_count: int, spike: SpikeConfig) -> np.float32:
    return np.float32(baseline) * (np.float32(1.0) + required_jump_fraction(listener_count, spike))
