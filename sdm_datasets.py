# Loaders for suitability samples, threshold records, and variable importance tables
# Spotted lanternfly SDM post-processing, October 2026

import logging
import numpy as np
import pandas as pd
import geopandas as gpd
import rasterio
from shapely.strtree import STRtree
from tqdm import tqdm

logger = logging.getLogger(__name__)

SAMPLE_KEY_COLUMNS = ["x", "y", "id"]

# Common coordinate column names in occurrence exports (GBIF, iNat, SDM prediction tables)
COORDINATE_ALIASES = {
    "longitude": "x",
    "lon": "x",
    "decimalLongitude": "x",
    "latitude": "y",
    "lat": "y",
    "decimalLatitude": "y",
}


def load_suitability_samples(csv_path, score_columns=None):
    """
    Load a table of suitability samples with x (longitude), y (latitude), id and raw suitability columns
    """
    df = pd.read_csv(csv_path)

    renames = {}
    for alias, target in COORDINATE_ALIASES.items():
        if alias in df.columns and target not in df.columns and target not in renames.values():
            renames[alias] = target
    df = df.rename(columns=renames)

    missing = [c for c in SAMPLE_KEY_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Suitability samples in {csv_path} are missing columns: {missing}")

    if score_columns:
        missing_scores = [c for c in score_columns if c not in df.columns]
        if missing_scores:
            raise ValueError(f"Suitability samples in {csv_path} are missing score columns: {missing_scores}")

    if df["id"].duplicated().any():
        dupes = df.loc[df["id"].duplicated(), "id"].unique()[:5].tolist()
        raise ValueError(f"Suitability samples in {csv_path} have duplicate ids, e.g. {dupes}")

    logger.info(f"Loaded {len(df)} suitability samples from {csv_path}")
    return df


def load_threshold_record(csv_path, model=None, model_column="model", scale=None):
    """
    Load the named thresholds for one model variant from a model summary CSV.
    scale keeps only thresholds whose name contains it, e.g. "cloglog" drops cumulative thresholds.

    Wide form: one row per model, threshold columns named like 'MTSS.cloglog.threshold'.
    Long form: 'threshold' and 'value' columns (and optionally a model column).
    Returns a float Series indexed by threshold name.
    """
    df = pd.read_csv(csv_path)

    if model is not None:
        if model_column not in df.columns:
            raise ValueError(f"Threshold file {csv_path} has no '{model_column}' column to select model {model!r}")
        df = df[df[model_column].astype(str) == str(model)]
        if df.empty:
            raise ValueError(f"Model {model!r} not found in threshold file {csv_path}")

    if {"threshold", "value"}.issubset(df.columns):
        if df["threshold"].duplicated().any():
            raise ValueError(f"Threshold file {csv_path} has repeated threshold names; select a model")
        record = pd.Series(df["value"].to_numpy(dtype=float), index=df["threshold"].astype(str).to_numpy())
    else:
        threshold_columns = [c for c in df.columns if "threshold" in c.lower()]
        if not threshold_columns:
            raise ValueError(f"No threshold columns found in {csv_path}")
        if len(df) != 1:
            raise ValueError(f"Threshold file {csv_path} has {len(df)} rows; select a single model")
        record = df[threshold_columns].iloc[0].astype(float)

    if scale is not None:
        record = record[[scale.lower() in str(name).lower() for name in record.index]]
        if record.empty:
            raise ValueError(f"No {scale!r} thresholds found in {csv_path}")

    record.name = model if model is not None else "thresholds"
    logger.info(f"Loaded {len(record)} thresholds from {csv_path}")
    return record


def load_variable_importance(csv_path):
    """
    Load a variable importance table (Variable, Percent_contribution and/or Permutation_importance),
    sorted by decreasing importance
    """
    df = pd.read_csv(csv_path)
    if "Variable" not in df.columns:
        raise ValueError(f"Variable importance file {csv_path} has no 'Variable' column")

    for column in ("Permutation_importance", "Percent_contribution"):
        if column in df.columns:
            return df.sort_values(column, ascending=False).reset_index(drop=True)

    raise ValueError(f"Variable importance file {csv_path} has no importance column")


def extract_suitability_at_points(samples, raster_paths, raster_names):
    """
    Sample suitability rasters at the sample coordinates (raster CRS assumed to be lon/lat).
    Nodata cells become NaN. Returns a copy of samples with one column per raster.
    """
    if len(raster_paths) != len(raster_names):
        raise ValueError("raster_paths and raster_names must have the same length")

    coords = list(zip(samples["x"], samples["y"]))
    out = samples.copy()
    for path, name in tqdm(list(zip(raster_paths, raster_names)), desc="Sampling rasters"):
        with rasterio.open(path) as src:
            sampled = [np.ma.filled(v.astype(float), np.nan)[0] for v in src.sample(coords, masked=True)]
        out[name] = np.asarray(sampled, dtype=float)
        n_missing = int(np.isnan(out[name]).sum())
        if n_missing:
            logger.warning(f"{n_missing} of {len(out)} points have no data in {path}")
        logger.info(f"Sampled {name} from {path}")
    return out


def deduplicate_coordinates(samples, tolerance_m=0.0):
    """
    Drop duplicate coordinates. With tolerance_m > 0, also drop points within tolerance_m metres
    of an earlier kept point (distances in Web Mercator).
    """
    before = len(samples)
    deduped = samples.drop_duplicates(subset=["x", "y"]).reset_index(drop=True)

    if tolerance_m and tolerance_m > 0:
        gdf = gpd.GeoDataFrame(deduped, geometry=gpd.points_from_xy(deduped.x, deduped.y), crs="EPSG:4326")
        gdf_m = gdf.to_crs(epsg=3857)

        # Walk points in order; each kept point drops every later point within the tolerance
        geometries = list(gdf_m.geometry)
        tree = STRtree(geometries)
        keep = np.ones(len(geometries), dtype=bool)
        for idx, geom in enumerate(geometries):
            if not keep[idx]:
                continue
            neighbors = tree.query(geom, predicate="dwithin", distance=tolerance_m)
            keep[neighbors[neighbors > idx]] = False
        deduped = deduped[keep].reset_index(drop=True)

    logger.info(f"Deduplicated samples: {before} -> {len(deduped)}")
    return deduped


def join_time_periods(historical, future, on="id", suffixes=("_hist", "_fut")):
    """
    Inner-join historical and future snapshots of the same samples.
    on='id' keeps the historical coordinates; on='xy' joins on (x, y) and keeps the historical id.
    """
    if on == "id":
        keys = ["id"]
        future = future.drop(columns=["x", "y"], errors="ignore")
    elif on == "xy":
        keys = ["x", "y"]
        future = future.drop(columns=["id"], errors="ignore")
    else:
        raise ValueError(f"Unknown join key: {on}. Expected 'id' or 'xy'")

    joined = historical.merge(future, on=keys, how="inner", suffixes=suffixes)
    dropped = len(historical) - len(joined)
    if dropped:
        logger.warning(f"{dropped} historical samples have no matching future sample")
    return joined

# EOF
