# Exponential calibration table for rescaling cloglog suitability around a decision threshold
# Spotted lanternfly SDM post-processing, October 2026

import logging
import numpy as np
import pandas as pd
from scipy.optimize import brentq

logger = logging.getLogger(__name__)

EXTRAPOLATION_POLICIES = ("raise", "nearest")


class CalibrationTableError(ValueError):
    """Raised when a calibration table is malformed"""


class InterpolationRangeError(ValueError):
    """Raised when a threshold falls outside the calibration grid"""


def _midpoint_residual(log_c2, threshold):
    # f(t) - 0.5 for the curve (c2**x - 1) / (c2 - 1), written with log(c2) for stability
    return np.expm1(log_c2 * threshold) / np.expm1(log_c2) - 0.5


def fit_exponential_coefficient(threshold):
    """
    Solve for the exponential base c2 of the curve anchored at (0, 0), (threshold, 0.5) and (1, 1).

    The curve is f(x) = c1 * c2**x + c3 with c1 = 1 / (c2 - 1) and c3 = -c1.
    Thresholds below 0.5 give c2 < 1 (concave), above 0.5 give c2 > 1 (convex),
    and exactly 0.5 gives c2 = 1 (identity).
    """
    threshold = float(threshold)
    if not np.isfinite(threshold) or threshold <= 0.0 or threshold >= 1.0:
        raise ValueError(f"Threshold must lie strictly between 0 and 1, got {threshold}")

    if threshold == 0.5:
        return 1.0

    # Solve on the concave side only; the curve for 1 - t has base 1 / c2
    t = min(threshold, 1.0 - threshold)

    lower = -1.0
    while _midpoint_residual(lower, t) <= 0:
        lower *= 2.0
    log_c2 = brentq(_midpoint_residual, lower, -1e-12, args=(t,), xtol=1e-14, maxiter=500)

    if threshold > 0.5:
        log_c2 = -log_c2
    return float(np.exp(log_c2))


def build_calibration_table(start=0.001, stop=0.999, step=0.001):
    """
    Fit the exponential coefficient over a regular grid of threshold values
    """
    if not 0.0 < start < stop < 1.0:
        raise CalibrationTableError(f"Calibration grid must satisfy 0 < start < stop < 1, got {start}, {stop}")
    if step <= 0:
        raise CalibrationTableError(f"Calibration grid step must be positive, got {step}")

    n_steps = int(round((stop - start) / step)) + 1
    grid = np.round(np.linspace(start, stop, n_steps), 10)
    coefficients = [fit_exponential_coefficient(t) for t in grid]
    logger.info(f"Built calibration table with {len(grid)} thresholds from {grid[0]} to {grid[-1]}")
    return CalibrationTable(grid, coefficients)


class CalibrationTable:
    """
    Read-only lookup of threshold value -> exponential coefficient (c2).

    Interpolation is linear in q = log(c2) * t * (1 - t). log(c2) diverges like -ln2 / t near 0
    (and ln2 / (1 - t) near 1), while q stays between -ln2 and ln2 and is nearly linear in t.
    """

    def __init__(self, thresholds, coefficients):
        thresholds = np.asarray(thresholds, dtype=float)
        coefficients = np.asarray(coefficients, dtype=float)

        if thresholds.ndim != 1 or coefficients.ndim != 1:
            raise CalibrationTableError("Calibration thresholds and coefficients must be one-dimensional")
        if len(thresholds) != len(coefficients):
            raise CalibrationTableError(
                f"Calibration table has {len(thresholds)} thresholds but {len(coefficients)} coefficients"
            )
        if len(thresholds) < 2:
            raise CalibrationTableError("Calibration table needs at least two rows to interpolate")
        if not (np.all(np.isfinite(thresholds)) and np.all(np.isfinite(coefficients))):
            raise CalibrationTableError("Calibration table contains non-finite values")
        if np.any(np.diff(thresholds) <= 0):
            raise CalibrationTableError("Calibration thresholds must be strictly increasing")
        if np.any(coefficients <= 0):
            raise CalibrationTableError("Calibration coefficients must be positive")
        if thresholds[0] <= 0.0 or thresholds[-1] >= 1.0:
            raise CalibrationTableError("Calibration thresholds must lie strictly between 0 and 1")

        self._thresholds = thresholds.copy()
        self._coefficients = coefficients.copy()
        self._scaled_log_coefficients = np.log(self._coefficients) * self._thresholds * (1.0 - self._thresholds)
        for arr in (self._thresholds, self._coefficients, self._scaled_log_coefficients):
            arr.setflags(write=False)

    def __len__(self):
        return len(self._thresholds)

    def __repr__(self):
        return f"CalibrationTable(n={len(self)}, range=[{self.min_threshold}, {self.max_threshold}])"

    @property
    def thresholds(self):
        return self._thresholds

    @property
    def coefficients(self):
        return self._coefficients

    @property
    def min_threshold(self):
        return float(self._thresholds[0])

    @property
    def max_threshold(self):
        return float(self._thresholds[-1])

    @classmethod
    def from_dataframe(cls, df, threshold_column="threshold", coefficient_column="c2"):
        missing = [c for c in (threshold_column, coefficient_column) if c not in df.columns]
        if missing:
            raise CalibrationTableError(f"Calibration table is missing columns: {missing}")
        return cls(df[threshold_column].to_numpy(), df[coefficient_column].to_numpy())

    @classmethod
    def from_csv(cls, csv_path, threshold_column="threshold", coefficient_column="c2"):
        df = pd.read_csv(csv_path)
        table = cls.from_dataframe(df, threshold_column, coefficient_column)
        logger.info(f"Loaded calibration table from {csv_path}: {table}")
        return table

    def to_dataframe(self):
        return pd.DataFrame({"threshold": self._thresholds, "c2": self._coefficients})

    def to_csv(self, csv_path):
        self.to_dataframe().to_csv(csv_path, index=False)
        logger.info(f"Calibration table saved to {csv_path}")

    def interpolate(self, threshold, extrapolation="raise"):
        """
        Interpolate the exponential coefficient at a threshold value.

        extrapolation="raise" fails for thresholds outside the grid;
        extrapolation="nearest" clamps to the closest grid coefficient.
        """
        if extrapolation not in EXTRAPOLATION_POLICIES:
            raise ValueError(f"Unknown extrapolation policy: {extrapolation}. Expected one of {EXTRAPOLATION_POLICIES}")

        threshold = float(threshold)
        if not np.isfinite(threshold):
            raise InterpolationRangeError(f"Threshold value {threshold} is not finite")

        if threshold < self.min_threshold or threshold > self.max_threshold:
            if extrapolation == "raise":
                raise InterpolationRangeError(
                    f"Threshold value {threshold} out of interpolation range "
                    f"[{self.min_threshold}, {self.max_threshold}]"
                )
            clamped = min(max(threshold, self.min_threshold), self.max_threshold)
            logger.warning(f"Threshold {threshold} outside calibration range, using nearest value {clamped}")
            threshold = clamped

        scaled = np.interp(threshold, self._thresholds, self._scaled_log_coefficients)
        return float(np.exp(scaled / (threshold * (1.0 - threshold))))

# EOF
