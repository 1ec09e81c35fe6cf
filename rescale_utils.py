# Rescale cloglog suitability so that a named decision threshold (e.g. MTSS) maps to 0.5
# Spotted lanternfly SDM post-processing, October 2026

import logging
import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


class ThresholdNotFoundError(KeyError):
    """Raised when a named threshold is missing from a threshold record"""


class SuitabilityRangeError(ValueError):
    """Raised when suitability scores are non-finite or outside [0, 1]"""


def exponential_transform(x, c2):
    """
    Apply the anchored exponential f(x) = c1 * c2**x + c3 with c1 = 1 / (c2 - 1), c3 = -c1.
    f(0) = 0 and f(1) = 1 for any positive c2; c2 == 1 is the identity.
    """
    x = np.asarray(x, dtype=float)
    if c2 <= 0 or not np.isfinite(c2):
        raise ValueError(f"Exponential coefficient must be positive and finite, got {c2}")

    log_c2 = np.log(c2)
    if log_c2 == 0.0:
        return x.copy()
    if log_c2 < 0:
        return np.expm1(log_c2 * x) / np.expm1(log_c2)
    # Mirror the convex side onto the concave one to avoid overflow for large c2
    return 1.0 - np.expm1(-log_c2 * (1.0 - x)) / np.expm1(-log_c2)


def resolve_threshold(thresholds, threshold_name):
    """Look up a numeric threshold by name in a threshold record (Series or mapping)"""
    if threshold_name not in thresholds:
        available = list(thresholds.keys())
        raise ThresholdNotFoundError(f"Threshold not found: {threshold_name!r}. Available thresholds: {available}")
    value = float(thresholds[threshold_name])
    if not np.isfinite(value) or value < 0.0 or value > 1.0:
        raise SuitabilityRangeError(f"Threshold {threshold_name!r} is not on the raw [0, 1] scale: {value}")
    return value


def validate_suitability(scores, name="suitability"):
    """Check that scores are finite and within [0, 1]; never clamp"""
    values = np.asarray(scores, dtype=float)
    bad = ~np.isfinite(values) | (values < 0.0) | (values > 1.0)
    if bad.any():
        examples = values[bad][:5].tolist()
        raise SuitabilityRangeError(
            f"{int(bad.sum())} {name} value(s) are non-finite or outside [0, 1], e.g. {examples}"
        )
    return values


def rescale_suitability(scores, thresholds, threshold_name, calibration, label,
                        rescale_thresholds=False, extrapolation="raise"):
    """
    Rescale raw suitability so that the named threshold maps to 0.5.

    scores: sequence or Series of raw cloglog suitability in [0, 1]
    thresholds: threshold record (Series or mapping of name -> raw threshold value)
    threshold_name: which threshold to centre on, e.g. 'MTSS.cloglog.threshold'
    calibration: CalibrationTable mapping threshold value -> exponential coefficient
    label: name of the returned Series
    rescale_thresholds: also return the thresholds in the record that are on the raw [0, 1] scale,
        pushed through the same curve (cumulative-scale thresholds are left out)
    extrapolation: 'raise' or 'nearest', passed to CalibrationTable.interpolate
    """
    t = resolve_threshold(thresholds, threshold_name)
    c2 = calibration.interpolate(t, extrapolation=extrapolation)

    values = validate_suitability(scores, name=label)
    index = scores.index if isinstance(scores, pd.Series) else None
    rescaled = pd.Series(exponential_transform(values, c2), index=index, name=label)

    logger.debug(f"Rescaled {len(rescaled)} values for {label} with {threshold_name}={t:.4f} (c2={c2:.6g})")

    if not rescale_thresholds:
        return rescaled

    record = pd.Series(dict(thresholds), dtype=float)
    on_scale = np.isfinite(record) & (record >= 0.0) & (record <= 1.0)
    if not on_scale.all():
        skipped = list(record.index[~on_scale])
        logger.info(f"Not rescaling thresholds outside the raw [0, 1] scale: {skipped}")
    record = record[on_scale]
    rescaled_thresholds = pd.Series(exponential_transform(record.to_numpy(), c2), index=record.index, name=label)
    return rescaled, rescaled_thresholds

# EOF
