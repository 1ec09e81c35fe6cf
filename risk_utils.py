# Risk quadrant classification and threshold-crossing detection for global vs. regional SDMs
# Spotted lanternfly SDM post-processing, October 2026

import math
import numpy as np
import pandas as pd

# Ordered from least to most severe
RISK_CATEGORIES = ["low", "moderate", "high", "extreme"]
CROSSING_CATEGORIES = ["none", "x", "y", "both"]


def classify_risk_quadrant(x, y, thresh_x=0.5, thresh_y=0.5):
    """
    Classify a single rescaled (global, regional) pair into a risk quadrant.
    Values equal to a threshold count as suitable.
    """
    for name, value in (("x", x), ("y", y), ("thresh_x", thresh_x), ("thresh_y", thresh_y)):
        if not math.isfinite(value):
            raise ValueError(f"{name} must be finite, got {value}")

    if x >= thresh_x and y >= thresh_y:
        return "extreme"
    if x < thresh_x and y >= thresh_y:
        return "high"
    if x >= thresh_x and y < thresh_y:
        return "moderate"
    return "low"


def _as_float_array(values, name):
    arr = np.asarray(values, dtype=float)
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} contains non-finite values")
    return arr


def _check_thresholds(thresh_x, thresh_y):
    if not (math.isfinite(thresh_x) and math.isfinite(thresh_y)):
        raise ValueError(f"Thresholds must be finite, got {thresh_x}, {thresh_y}")


def classify_risk_quadrants(x, y, thresh_x=0.5, thresh_y=0.5):
    """
    Vectorized risk quadrant classification.
    Returns an ordered categorical Series (low < moderate < high < extreme), indexed like x when x is a Series.
    """
    _check_thresholds(thresh_x, thresh_y)
    xs = _as_float_array(x, "x")
    ys = _as_float_array(y, "y")
    if xs.shape != ys.shape:
        raise ValueError(f"x and y must have the same length, got {xs.shape} and {ys.shape}")

    x_suitable = xs >= thresh_x
    y_suitable = ys >= thresh_y
    labels = np.select(
        [x_suitable & y_suitable, ~x_suitable & y_suitable, x_suitable & ~y_suitable],
        ["extreme", "high", "moderate"],
        default="low",
    )

    index = x.index if isinstance(x, pd.Series) else None
    return pd.Series(
        pd.Categorical(labels, categories=RISK_CATEGORIES, ordered=True),
        index=index,
        name="risk_category",
    )


def detect_threshold_crossing(hist_x, hist_y, fut_x, fut_y, thresh_x=0.5, thresh_y=0.5,
                              fut_thresh_x=None, fut_thresh_y=None):
    """
    Flag which axis thresholds a point crosses between the historical and future periods.

    A crossing needs the two endpoints strictly on opposite sides of the threshold;
    landing exactly on the threshold at either endpoint is not a crossing.
    fut_thresh_x / fut_thresh_y set the future period's thresholds when they differ from the historical ones.
    Returns a categorical Series with values 'none', 'x', 'y' or 'both'.
    """
    fut_thresh_x = thresh_x if fut_thresh_x is None else fut_thresh_x
    fut_thresh_y = thresh_y if fut_thresh_y is None else fut_thresh_y
    _check_thresholds(thresh_x, thresh_y)
    _check_thresholds(fut_thresh_x, fut_thresh_y)
    hx = _as_float_array(hist_x, "hist_x")
    hy = _as_float_array(hist_y, "hist_y")
    fx = _as_float_array(fut_x, "fut_x")
    fy = _as_float_array(fut_y, "fut_y")
    if not (hx.shape == hy.shape == fx.shape == fy.shape):
        raise ValueError("Historical and future coordinates must all have the same length")

    crosses_x = ((hx < thresh_x) & (fx > fut_thresh_x)) | ((hx > thresh_x) & (fx < fut_thresh_x))
    crosses_y = ((hy < thresh_y) & (fy > fut_thresh_y)) | ((hy > thresh_y) & (fy < fut_thresh_y))
    labels = np.select(
        [crosses_x & crosses_y, crosses_x, crosses_y],
        ["both", "x", "y"],
        default="none",
    )

    index = hist_x.index if isinstance(hist_x, pd.Series) else None
    return pd.Series(pd.Categorical(labels, categories=CROSSING_CATEGORIES), index=index, name="crossing")


def crosses_threshold(hist_x, hist_y, fut_x, fut_y, thresh_x=0.5, thresh_y=0.5,
                      fut_thresh_x=None, fut_thresh_y=None):
    """Boolean filter: True where the point crosses at least one axis threshold"""
    crossing = detect_threshold_crossing(hist_x, hist_y, fut_x, fut_y, thresh_x, thresh_y, fut_thresh_x, fut_thresh_y)
    return (crossing != "none").rename("crosses_threshold")


def summarize_risk(categories, by=None):
    """
    Count points per risk category, most severe first.
    With `by` (a grouping Series aligned with categories), return one row per group and one column per category.
    """
    categories = pd.Series(categories).astype(str)
    order = RISK_CATEGORIES[::-1]

    if by is None:
        counts = categories.value_counts().reindex(order, fill_value=0)
        total = int(counts.sum())
        summary = pd.DataFrame({
            "risk_category": order,
            "count": counts.to_numpy().astype(int),
        })
        summary["percent"] = (100.0 * summary["count"] / total).round(2) if total else 0.0
        return summary

    groups = pd.Series(np.asarray(by), index=categories.index, name=getattr(by, "name", None) or "group")
    if len(groups) != len(categories):
        raise ValueError("Grouping values must have the same length as categories")
    table = pd.crosstab(groups, categories)
    table = table.reindex(columns=order, fill_value=0)
    table.columns = list(order)
    table["total"] = table.sum(axis=1)
    return table


def risk_transitions(hist_categories, fut_categories):
    """Cross-tabulate historical (rows) against future (columns) risk categories"""
    hist = pd.Series(hist_categories).astype(str).to_numpy()
    fut = pd.Series(fut_categories).astype(str).to_numpy()
    if len(hist) != len(fut):
        raise ValueError("Historical and future categories must have the same length")

    order = RISK_CATEGORIES[::-1]
    table = pd.crosstab(pd.Series(hist, name="historical"), pd.Series(fut, name="future"))
    table = table.reindex(index=order, columns=order, fill_value=0)
    table.index.name = "historical"
    table.columns.name = "future"
    return table

# EOF
