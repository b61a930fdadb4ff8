"""
Pytest configuration and fixtures for incident pipeline tests.
"""
import copy
from pathlib import Path

import pandas as pd
import pytest
import yaml

from make_sample_data import make_incidents

CONFIG_DIR = Path(__file__).resolve().parents[1] / "configs"


@pytest.fixture(scope="session")
def raw_incidents():
    """Synthetic raw incident table with the NYPD column names."""
    return make_incidents(n=2000, seed=42)


@pytest.fixture(scope="session")
def _nypd_config_raw():
    with open(CONFIG_DIR / "nypd_shootings.yaml", encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def nypd_config_dict(_nypd_config_raw):
    """Shipped NYPD config with a mild L2 penalty and no source URL."""
    raw = copy.deepcopy(_nypd_config_raw)
    raw["source"]["url"] = None
    raw["model"]["C"] = 1.0
    return raw


@pytest.fixture
def tiny_raw():
    """Ten incidents, 3 positive and 7 negative, with one missing sex."""
    return pd.DataFrame({
        "INCIDENT_KEY": range(1, 11),
        "BORO": ["A"] * 5 + ["B"] * 5,
        "PERP_SEX": ["M", "M", "M", "F", "F", "M", "M", "F", "F", None],
        "MURDER_FLAG": [
            "false", "true", "false", "false", "false",
            "true", "false", "false", "true", "false",
        ],
    })


@pytest.fixture
def tiny_config_dict():
    """Config for ``tiny_raw``: two nominal features, L2 logit, no resampling."""
    return {
        "imputation": {"categorical": ["perp_sex"]},
        "roles": {"target": "murder_flag", "nominal": ["boro", "perp_sex"]},
        "split": {"test_size": 0.2, "seed": 42},
        "resampling": {"method": "none"},
        "model": {"C": 1.0},
    }


@pytest.fixture
def small_csv(tmp_path):
    """Write a tiny incident CSV to a temp directory and return its path."""
    df = pd.DataFrame({
        "Incident Key": [1, 2, 3, 4],
        "BORO": ["BRONX", "QUEENS", "BRONX", "BRONX"],
        "Latitude": [40.8, 40.7, None, 40.9],
    })
    csv_path = tmp_path / "incidents.csv"
    df.to_csv(csv_path, index=False)
    return str(csv_path)
