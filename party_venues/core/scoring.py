"""Confidence scoring helpers for extraction results."""

from __future__ import annotations

import math

from party_venues.core.enums import ConfidenceBand

DEFAULT_HIGH_THRESHOLD = 0.8
DEFAULT_LOW_THRESHOLD = 0.5


def clamp_confidence(value: float | int | str | None) -> float | None:
    """
    Coerce a model-reported confidence into the [0, 1] range.

    Args:
        value: Raw confidence value as returned by the model.

    Returns:
        The clamped float, or None if the value is missing or not numeric.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return min(1.0, max(0.0, number))


def determine_confidence_band(
    score: float | None,
    high_threshold: float = DEFAULT_HIGH_THRESHOLD,
    low_threshold: float = DEFAULT_LOW_THRESHOLD,
) -> ConfidenceBand:
    """
    Determine the review band for a confidence score.

    Bands:
    - score >= high_threshold: high
    - low_threshold <= score < high_threshold: medium
    - score < low_threshold (or missing): low

    Args:
        score: The confidence score (0-1), or None.
        high_threshold: Lower bound of the high band.
        low_threshold: Lower bound of the medium band.

    Returns:
        The corresponding ConfidenceBand enum value.
    """
    if low_threshold > high_threshold:
        raise ValueError(
            f"low_threshold ({low_threshold}) must not exceed high_threshold ({high_threshold})"
        )
    if score is None or score < low_threshold:
        return ConfidenceBand.LOW
    elif score < high_threshold:
        return ConfidenceBand.MEDIUM
    else:
        return ConfidenceBand.HIGH
