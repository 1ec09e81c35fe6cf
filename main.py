# Rescale SDM suitability and classify spotted lanternfly risk for every configured dataset
# Spotted lanternfly SDM post-processing, October 2026

# Imports
import os
import time
import logging
import argparse
import json

import pandas as pd

from calibration_utils import CalibrationTable, build_calibration_table
from sdm_datasets import load_variable_importance
from pipeline import RiskPipelineConfig, run_risk_pipeline, compare_time_periods
from plot_utils import plot_risk_quadrants, map_risk_categories, plot_variable_importance, plot_risk_summary_table
from logging_utils import setup_logging


def load_calibration(config, experiment_dir):
    """Load the calibration table from config, or fit one and save it alongside the outputs"""
    calibration_csv = config.get("calibration_csv")
    if calibration_csv:
        return CalibrationTable.from_csv(calibration_csv)

    grid = config.get("calibration_grid", {})
    calibration = build_calibration_table(**grid)
    calibration.to_csv(os.path.join(experiment_dir, "calibration_table.csv"))
    return calibration


def main(argv=None):
    # Argument Parser
    parser = argparse.ArgumentParser(description="Rescale SDM suitability and classify spotted lanternfly risk quadrants")
    parser.add_argument('--config', type=str, required=True, help='Path to the configuration JSON file')
    parser.add_argument('--make-plots', action='store_true', help='Save quadrant plots, maps, and summary tables')
    parser.add_argument('--no-basemap', action='store_true', help='Skip contextily basemaps on risk maps')
    args = parser.parse_args(argv)

    # Load Config
    with open(args.config, 'r') as f:
        config = json.load(f)

    # Create experiment subdirectory
    experiment_name = config.get('experiment', 'slf_risk')
    experiment_dir = os.path.join(config['output_dir'], experiment_name)
    os.makedirs(experiment_dir, exist_ok=True)

    # Logging
    log_path = os.path.join(experiment_dir, f"{experiment_name}.log")
    setup_logging(log_path)
    logging.info(f"Config: {json.dumps(config, indent=4)}")

    start_time = time.time()

    calibration = load_calibration(config, experiment_dir)
    extrapolation = config.get('extrapolation', 'raise')

    # Rescale and classify each dataset
    results = {}
    for dataset in config['datasets']:
        dataset_config = RiskPipelineConfig.from_dict(dataset, output_dir=experiment_dir, extrapolation=extrapolation)
        result = run_risk_pipeline(dataset_config, calibration)
        results[dataset_config.name] = (dataset_config, result)

        if args.make_plots:
            thresh_x, thresh_y = result.selected_thresholds()
            plot_risk_quadrants(
                result.risk, dataset_config.x_label, dataset_config.y_label,
                os.path.join(experiment_dir, f"{dataset_config.name}_risk_quadrants.png"),
                thresh_x=thresh_x, thresh_y=thresh_y,
                title=f"Risk Quadrants: {dataset_config.name}",
            )
            map_risk_categories(
                result.risk, os.path.join(experiment_dir, f"{dataset_config.name}_risk_map.png"),
                basemap=not args.no_basemap, title=f"Risk Categories: {dataset_config.name}",
            )
            plot_risk_summary_table(
                result.summary, os.path.join(experiment_dir, f"{dataset_config.name}_risk_summary.png"),
                title=f"Risk Summary: {dataset_config.name}",
            )

    # Historical vs. future comparisons
    for comparison in config.get('comparisons', []):
        hist_name, fut_name = comparison['historical'], comparison['future']
        if hist_name not in results or fut_name not in results:
            raise ValueError(f"Comparison refers to unknown datasets: {hist_name}, {fut_name}")
        hist_config, hist_result = results[hist_name]
        fut_config, fut_result = results[fut_name]
        if (hist_config.x_label, hist_config.y_label) != (fut_config.x_label, fut_config.y_label):
            raise ValueError(
                f"Comparison {hist_name} vs {fut_name} needs matching labels, got "
                f"{hist_config.x_label}/{hist_config.y_label} and {fut_config.x_label}/{fut_config.y_label}"
            )
        fut_thresholds = fut_result.selected_thresholds()

        joined, transitions = compare_time_periods(
            hist_result.risk, fut_result.risk, fut_config.x_label, fut_config.y_label,
            on=comparison.get('on', 'id'),
            hist_thresholds=hist_result.selected_thresholds(), fut_thresholds=fut_thresholds,
        )
        prefix = os.path.join(experiment_dir, f"{hist_name}_vs_{fut_name}")
        joined.to_csv(f"{prefix}_comparison.csv", index=False)
        transitions.to_csv(f"{prefix}_transitions.csv")
        logging.info(f"Comparison {hist_name} vs {fut_name} saved to {prefix}_comparison.csv")

        if args.make_plots:
            plot_risk_quadrants(
                fut_result.risk, fut_config.x_label, fut_config.y_label,
                f"{prefix}_risk_shift.png", thresh_x=fut_thresholds[0], thresh_y=fut_thresholds[1], comparison=joined,
                title=f"Risk Shift: {hist_name} to {fut_name}",
            )

    # Variable importance tables from the modeling package
    for entry in config.get('variable_importance', []):
        importance = load_variable_importance(entry['csv'])
        out_csv = os.path.join(experiment_dir, f"{entry['name']}_variable_importance.csv")
        importance.to_csv(out_csv, index=False)
        if args.make_plots:
            plot_variable_importance(
                importance, os.path.join(experiment_dir, f"{entry['name']}_variable_importance.png"),
                title=f"Variable Importance: {entry['name']}",
            )

    summaries = [result.summary.assign(dataset=name) for name, (_, result) in results.items()]
    if summaries:
        pd.concat(summaries, ignore_index=True).to_csv(os.path.join(experiment_dir, "risk_summary_all.csv"), index=False)

    elapsed_time = time.time() - start_time
    logging.info(f"Risk post-processing completed in {elapsed_time:.2f} seconds")


if __name__ == "__main__":
    main()
