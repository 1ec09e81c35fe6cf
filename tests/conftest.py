import matplotlib
matplotlib.use("Agg")

import pandas as pd
import pytest

from calibration_utils import build_calibration_table


@pytest.fixture(scope="session")
def calibration():
    return build_calibration_table()


@pytest.fixture
def thresholds():
    return pd.Series({
        "MTSS.cloglog.threshold": 0.3,
        "MTSS.CC.cloglog.threshold": 0.42,
        "10.percentile.training.presence.cloglog.threshold": 0.15,
    })


@pytest.fixture
def samples():
    return pd.DataFrame({
        "x": [-75.1, -75.2, -75.3, -75.4, -75.5],
        "y": [40.1, 40.2, 40.3, 40.4, 40.5],
        "id": [1, 2, 3, 4, 5],
        "global_cloglog": [0.9, 0.1, 0.8, 0.05, 0.3],
        "regional_cloglog": [0.7, 0.6, 0.1, 0.2, 0.42],
    })
