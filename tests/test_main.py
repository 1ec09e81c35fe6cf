import json
import os

import pandas as pd
import pytest

import main as main_module
from main import main


def write_config(tmp_path, samples, future_labels=None):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    samples.to_csv(data_dir / "slf_1995.csv", index=False)
    samples.assign(global_cloglog=[0.9, 0.9, 0.8, 0.05, 0.3]).to_csv(data_dir / "slf_2055.csv", index=False)
    pd.DataFrame({
        "model": ["1995", "2055"],
        "MTSS.cloglog.threshold": [0.3, 0.3],
        "MTSS.CC.cloglog.threshold": [0.35, 0.4],
        "MTSS.cumulative.threshold": [23.5, 21.0],
    }).to_csv(data_dir / "thresholds.csv", index=False)
    pd.DataFrame({
        "Variable": ["bio1", "bio12"], "Percent_contribution": [60.0, 40.0],
    }).to_csv(data_dir / "vi.csv", index=False)

    def dataset(name, model, threshold_name):
        return {
            "name": name,
            "samples_csv": str(data_dir / f"{name}.csv"),
            "x_column": "global_cloglog",
            "y_column": "regional_cloglog",
            "x_thresholds_csv": str(data_dir / "thresholds.csv"),
            "y_thresholds_csv": str(data_dir / "thresholds.csv"),
            "x_threshold_name": threshold_name,
            "y_threshold_name": threshold_name,
            "x_model": model,
            "y_model": model,
        }

    future = dataset("slf_2055", "2055", "MTSS.CC.cloglog.threshold")
    if future_labels:
        future["x_label"], future["y_label"] = future_labels

    config = {
        "experiment": "test_run",
        "output_dir": str(tmp_path / "outputs"),
        "calibration_grid": {"start": 0.01, "stop": 0.99, "step": 0.01},
        "datasets": [dataset("slf_1995", "1995", "MTSS.cloglog.threshold"), future],
        "comparisons": [{"historical": "slf_1995", "future": "slf_2055", "on": "id"}],
        "variable_importance": [{"name": "global", "csv": str(data_dir / "vi.csv")}],
    }
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps(config))
    return config_path


def test_main_runs_configured_datasets(tmp_path, samples):
    config_path = write_config(tmp_path, samples)

    main(["--config", str(config_path), "--make-plots", "--no-basemap"])

    experiment_dir = tmp_path / "outputs" / "test_run"
    expected = [
        "test_run.log",
        "calibration_table.csv",
        "slf_1995_risk.csv",
        "slf_2055_risk.csv",
        "slf_1995_thresholds.csv",
        "slf_1995_risk_quadrants.png",
        "slf_1995_risk_map.png",
        "slf_1995_vs_slf_2055_comparison.csv",
        "slf_1995_vs_slf_2055_transitions.csv",
        "slf_1995_vs_slf_2055_risk_shift.png",
        "global_variable_importance.csv",
        "global_variable_importance.png",
        "risk_summary_all.csv",
    ]
    for name in expected:
        assert os.path.exists(experiment_dir / name), name

    comparison = pd.read_csv(experiment_dir / "slf_1995_vs_slf_2055_comparison.csv")
    assert comparison.loc[comparison["id"] == 2, "crossing"].item() == "x"

    # Cumulative-scale thresholds in the record are left out of the reference table
    reference = pd.read_csv(experiment_dir / "slf_1995_thresholds.csv")
    assert "MTSS.cumulative.threshold" not in set(reference["threshold_name"])

    summary = pd.read_csv(experiment_dir / "risk_summary_all.csv")
    assert set(summary["dataset"]) == {"slf_1995", "slf_2055"}


def test_plots_use_selected_thresholds(tmp_path, samples, monkeypatch):
    config_path = write_config(tmp_path, samples)
    calls = []

    def fake_plot(risk_df, x_label, y_label, out_path, thresh_x=0.5, thresh_y=0.5, comparison=None, title=""):
        calls.append((os.path.basename(out_path), thresh_x, thresh_y))
        return out_path

    monkeypatch.setattr(main_module, "plot_risk_quadrants", fake_plot)
    main(["--config", str(config_path), "--make-plots", "--no-basemap"])

    experiment_dir = tmp_path / "outputs" / "test_run"
    for out_name, thresh_x, thresh_y in calls:
        dataset = "slf_2055" if out_name.endswith("_risk_shift.png") else out_name.replace("_risk_quadrants.png", "")
        reference = pd.read_csv(experiment_dir / f"{dataset}_thresholds.csv")
        selected = reference[reference["selected"]].set_index("axis")["rescaled"]
        assert thresh_x == pytest.approx(selected["x"], abs=1e-12), out_name
        assert thresh_y == pytest.approx(selected["y"], abs=1e-12), out_name
    assert len(calls) == 3


def test_comparison_rejects_mismatched_labels(tmp_path, samples):
    config_path = write_config(tmp_path, samples, future_labels=("g_2055", "r_2055"))
    with pytest.raises(ValueError, match="matching labels"):
        main(["--config", str(config_path)])
