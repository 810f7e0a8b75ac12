"""Churn-probability segmentation into loyalty tiers.

One set of thresholds serves churn values expressed as probabilities (0-1) and
as percentages (0-100); callers pass the matching ``scale``.
"""

from __future__ import annotations

from typing import Union

import numpy as np
import pandas as pd


PROBABILITY_SCALE = 1.0
PERCENT_SCALE = 100.0

LOYAL = "Loyal Client"
HIGH_POTENTIAL = "High Potential Client"
PASSIVE = "Passive Client"
AT_RISK = "At Risk"

# (inclusive upper bound on the probability scale, label)
LOYALTY_THRESHOLDS = (
    (0.10, LOYAL),
    (0.30, HIGH_POTENTIAL),
    (0.60, PASSIVE),
)
FALLBACK_LABEL = AT_RISK

LOYALTY_LABELS = tuple(label for _, label in LOYALTY_THRESHOLDS) + (FALLBACK_LABEL,)

# Float noise from unit conversion (0.1 * 100 == 10.000000000000002) must not
# move a value across a boundary.
_NORMALIZE_DECIMALS = 12


def to_probability(values, scale: float = PROBABILITY_SCALE):
    """Convert churn values on the given scale to rounded probabilities."""
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    return np.round(np.asarray(values, dtype=float) / scale, _NORMALIZE_DECIMALS)


def classify_churn(
    values: Union[float, pd.Series],
    scale: float = PROBABILITY_SCALE,
) -> Union[str, pd.Series]:
    """
    Map churn values to loyalty labels.

    Each bucket includes its upper bound: 0.10 is "Loyal Client", 0.30 is
    "High Potential Client", 0.60 is "Passive Client", anything above is
    "At Risk".

    Args:
        values: A scalar or Series of churn values.
        scale: PROBABILITY_SCALE for 0-1 values, PERCENT_SCALE for 0-100.

    Returns:
        A label for a scalar input, or a Series of labels aligned to the input.

    Raises:
        ValueError: If any value is missing.
    """
    if np.ndim(values) == 0:
        probability = float(to_probability(values, scale))
        if np.isnan(probability):
            raise ValueError("Cannot classify a missing churn value")
        for bound, label in LOYALTY_THRESHOLDS:
            if probability <= bound:
                return label
        return FALLBACK_LABEL

    probabilities = to_probability(values, scale)
    if np.isnan(probabilities).any():
        raise ValueError("Cannot classify a missing churn value")

    conditions = [probabilities <= bound for bound, _ in LOYALTY_THRESHOLDS]
    choices = [label for _, label in LOYALTY_THRESHOLDS]
    labels = np.select(conditions, choices, default=FALLBACK_LABEL)

    if isinstance(values, pd.Series):
        return pd.Series(labels, index=values.index, dtype=object)
    return labels
