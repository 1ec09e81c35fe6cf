# Parameterized rescale -> classify -> save pipeline for paired global/regional SDM outputs
# Spotted lanternfly SDM post-processing, October 2026

import os
import logging
from dataclasses import dataclass, field, fields
from typing import Optional

import pandas as pd

from sdm_datasets import (
    load_suitability_samples,
    load_threshold_record,
    extract_suitability_at_points,
    deduplicate_coordinates,
    join_time_periods,
)
from rescale_utils import rescale_suitability
from risk_utils import classify_risk_quadrants, detect_threshold_crossing, summarize_risk, risk_transitions

logger = logging.getLogger(__name__)


@dataclass
class RiskPipelineConfig:
    """One dataset (e.g. a time period) scored by a global (x) and a regional (y) model"""
    name: str
    samples_csv: str
    x_column: str
    y_column: str
    x_thresholds_csv: str
    y_thresholds_csv: str
    x_threshold_name: str
    y_threshold_name: str
    x_model: Optional[str] = None
    y_model: Optional[str] = None
    x_label: str = "global_rescaled"
    y_label: str = "regional_rescaled"
    x_raster: Optional[str] = None
    y_raster: Optional[str] = None
    output_dir: str = "outputs"
    extrapolation: str = "raise"
    deduplicate: bool = True
    dedup_tolerance_m: float = 0.0
    threshold_scale: Optional[str] = None

    @classmethod
    def from_dict(cls, config, **overrides):
        known = {f.name for f in fields(cls)}
        unknown = set(config) - known
        if unknown:
            raise ValueError(f"Unknown dataset config keys: {sorted(unknown)}")
        merged = dict(config)
        merged.update({k: v for k, v in overrides.items() if v is not None and k not in config})
        return cls(**merged)


@dataclass
class RiskPipelineResult:
    risk: pd.DataFrame
    reference_thresholds: pd.DataFrame
    summary: pd.DataFrame
    outputs: dict = field(default_factory=dict)

    def selected_thresholds(self):
        """(x, y) rescaled thresholds the risk categories were assigned with"""
        selected = self.reference_thresholds[self.reference_thresholds["selected"]]
        by_axis = selected.drop_duplicates("axis").set_index("axis")["rescaled"]
        return float(by_axis["x"]), float(by_axis["y"])


def rescale_and_classify(samples, x_column, y_column, x_thresholds, y_thresholds,
                         x_threshold_name, y_threshold_name, calibration,
                         x_label="x_rescaled", y_label="y_rescaled", extrapolation="raise"):
    """
    Rescale both model scores around their named thresholds and assign a risk quadrant.
    Returns (risk DataFrame, reference threshold table in raw and rescaled units).
    """
    x_rescaled, x_ref = rescale_suitability(
        samples[x_column], x_thresholds, x_threshold_name, calibration, x_label,
        rescale_thresholds=True, extrapolation=extrapolation,
    )
    y_rescaled, y_ref = rescale_suitability(
        samples[y_column], y_thresholds, y_threshold_name, calibration, y_label,
        rescale_thresholds=True, extrapolation=extrapolation,
    )

    # Classify against the rescaled image of the named threshold so raw points at the threshold stay suitable
    thresh_x = float(x_ref[x_threshold_name])
    thresh_y = float(y_ref[y_threshold_name])

    risk = samples.copy()
    risk[x_label] = x_rescaled
    risk[y_label] = y_rescaled
    risk["risk_category"] = classify_risk_quadrants(risk[x_label], risk[y_label], thresh_x, thresh_y)

    reference = pd.concat([
        _reference_table("x", x_thresholds, x_ref, x_threshold_name),
        _reference_table("y", y_thresholds, y_ref, y_threshold_name),
    ], ignore_index=True)
    return risk, reference


def _reference_table(axis, raw_thresholds, rescaled_thresholds, selected_name):
    raw = pd.Series(raw_thresholds, dtype=float)
    names = list(rescaled_thresholds.index)
    return pd.DataFrame({
        "axis": axis,
        "threshold_name": names,
        "raw": raw[names].to_numpy(),
        "rescaled": rescaled_thresholds.to_numpy(),
        "selected": [name == selected_name for name in names],
    })


def run_risk_pipeline(config, calibration):
    """
    Load samples and thresholds for one dataset, rescale, classify, and write results to config.output_dir
    """
    logger.info(f"Running risk pipeline for {config.name}")
    os.makedirs(config.output_dir, exist_ok=True)

    use_rasters = config.x_raster is not None or config.y_raster is not None
    score_columns = None if use_rasters else [config.x_column, config.y_column]
    samples = load_suitability_samples(config.samples_csv, score_columns=score_columns)

    if use_rasters:
        raster_paths, raster_names = [], []
        for path, column in ((config.x_raster, config.x_column), (config.y_raster, config.y_column)):
            if path is not None:
                raster_paths.append(path)
                raster_names.append(column)
        samples = extract_suitability_at_points(samples, raster_paths, raster_names)
        missing = [c for c in (config.x_column, config.y_column) if c not in samples.columns]
        if missing:
            raise ValueError(f"Dataset {config.name} has no values for score columns: {missing}")

    if config.deduplicate:
        samples = deduplicate_coordinates(samples, tolerance_m=config.dedup_tolerance_m)

    x_thresholds = load_threshold_record(config.x_thresholds_csv, model=config.x_model, scale=config.threshold_scale)
    y_thresholds = load_threshold_record(config.y_thresholds_csv, model=config.y_model, scale=config.threshold_scale)

    risk, reference = rescale_and_classify(
        samples, config.x_column, config.y_column, x_thresholds, y_thresholds,
        config.x_threshold_name, config.y_threshold_name, calibration,
        x_label=config.x_label, y_label=config.y_label, extrapolation=config.extrapolation,
    )
    summary = summarize_risk(risk["risk_category"])

    outputs = {
        "rescaled": os.path.join(config.output_dir, f"{config.name}_rescaled.csv"),
        "risk": os.path.join(config.output_dir, f"{config.name}_risk.csv"),
        "summary": os.path.join(config.output_dir, f"{config.name}_risk_summary.csv"),
        "thresholds": os.path.join(config.output_dir, f"{config.name}_thresholds.csv"),
    }
    risk.drop(columns=["risk_category"]).to_csv(outputs["rescaled"], index=False)
    risk.to_csv(outputs["risk"], index=False)
    summary.to_csv(outputs["summary"], index=False)
    reference.to_csv(outputs["thresholds"], index=False)

    for _, row in summary.iterrows():
        logger.info(f"{config.name}: {row['risk_category']:>8} {row['count']:>6} ({row['percent']}%)")
    logger.info(f"Results for {config.name} saved to {config.output_dir}")

    return RiskPipelineResult(risk=risk, reference_thresholds=reference, summary=summary, outputs=outputs)


def compare_time_periods(historical_risk, future_risk, x_label, y_label, on="id",
                         hist_thresholds=(0.5, 0.5), fut_thresholds=None):
    """
    Join historical and future risk tables, flag threshold crossings and category changes.

    hist_thresholds / fut_thresholds are the (x, y) rescaled thresholds each period was classified with,
    e.g. RiskPipelineResult.selected_thresholds(). fut_thresholds defaults to hist_thresholds.
    Returns (joined DataFrame, historical x future transition table).
    """
    for period, table in (("historical", historical_risk), ("future", future_risk)):
        missing = [c for c in (x_label, y_label, "risk_category") if c not in table.columns]
        if missing:
            raise ValueError(f"The {period} risk table is missing columns: {missing}")

    if fut_thresholds is None:
        fut_thresholds = hist_thresholds

    keep = [c for c in ("x", "y", "id", x_label, y_label, "risk_category") if c in historical_risk.columns]
    joined = join_time_periods(historical_risk[keep], future_risk[[c for c in keep if c in future_risk.columns]], on=on)

    joined["crossing"] = detect_threshold_crossing(
        joined[f"{x_label}_hist"], joined[f"{y_label}_hist"],
        joined[f"{x_label}_fut"], joined[f"{y_label}_fut"],
        hist_thresholds[0], hist_thresholds[1], fut_thresholds[0], fut_thresholds[1],
    )
    joined["risk_changed"] = (
        joined["risk_category_hist"].astype(str) != joined["risk_category_fut"].astype(str)
    )

    transitions = risk_transitions(joined["risk_category_hist"], joined["risk_category_fut"])
    logger.info(f"{int((joined['crossing'] != 'none').sum())} of {len(joined)} points cross a threshold")
    return joined, transitions

# EOF
