"""
Integration tests: the full incident pipeline end-to-end on small tables.
"""
import json

import pandas as pd
import pytest
import yaml

from incident_pipeline.config import PipelineConfig
from incident_pipeline.main import build_parser, main, run_profile_mode
from incident_pipeline.orchestration.pipeline import run_pipeline
from incident_pipeline.utils.exceptions import ConfigurationError, SchemaError


@pytest.mark.integration
@pytest.mark.parametrize("method", ["none", "undersample"])
def test_tiny_pipeline_is_deterministic(tiny_raw, tiny_config_dict, method):
    """Two runs with the same seed produce identical partitions, models and reports."""
    tiny_config_dict["resampling"]["method"] = method
    config = PipelineConfig.from_dict(tiny_config_dict)
    first = run_pipeline(config, data=tiny_raw)
    second = run_pipeline(config, data=tiny_raw)

    assert first["unbalanced_split"].sizes == {"train": 8, "test": 2}
    assert list(first["split"].test.index) == list(second["split"].test.index)
    assert list(first["split"].train.index) == list(second["split"].train.index)
    assert first["report"].to_dict() == second["report"].to_dict()
    pd.testing.assert_series_equal(first["model"].coefficients, second["model"].coefficients)

    report = first["report"]
    assert report.n_scored + report.n_excluded == 2
    assert report.tp + report.fp + report.fn + report.tn == report.n_scored
    assert first["missingness"].loc["perp_sex", "missing_count"] == 1


@pytest.mark.integration
def test_tiny_pipeline_writes_report(tiny_raw, tiny_config_dict, tmp_path):
    config = PipelineConfig.from_dict(tiny_config_dict)
    result = run_pipeline(config, data=tiny_raw, output_dir=str(tmp_path))
    payload = json.loads(result["report_paths"]["json"].read_text(encoding="utf-8"))
    assert payload["config"]["roles"]["target"] == "murder_flag"
    assert "(Intercept)" in payload["coefficients"]


@pytest.mark.integration
def test_synthetic_incidents_end_to_end(raw_incidents, nypd_config_dict):
    """The NYPD configuration runs on a synthetic table with the same schema."""
    config = PipelineConfig.from_dict(nypd_config_dict)
    result = run_pipeline(config, data=raw_incidents)
    target = config.roles.target

    # rebalanced training partition, untouched test partition
    train, test = result["split"].train, result["split"].test
    counts = train[target].value_counts()
    assert counts["Yes"] == counts["No"]
    assert test is result["unbalanced_split"].test

    # test vocabulary is a subset of the training vocabulary
    for col, levels in result["feature_pipeline"].aligner.vocabulary.items():
        assert set(test[col].dropna().unique()) <= set(levels)

    report = result["report"]
    assert report.n_scored + report.n_excluded == len(test)
    assert report.tp + report.fp + report.fn + report.tn == report.n_scored
    for name, value in report.metrics.items():
        assert pd.isna(value) or 0.0 <= value <= 1.0, name

    # older victims are more often murder-flagged in the generator
    coef = result["model"].coefficients
    assert coef["vic_age_group[45-64]"] > 0
    assert result["model"].reference_levels["vic_age_group"] == "<18"


@pytest.mark.integration
def test_train_only_imputation(raw_incidents, nypd_config_dict):
    """With fit_on=train the coordinates are filled from training means only."""
    nypd_config_dict["imputation"]["fit_on"] = "train"
    config = PipelineConfig.from_dict(nypd_config_dict)
    result = run_pipeline(config, data=raw_incidents)

    unbalanced = result["unbalanced_split"]
    for part in (unbalanced.train, unbalanced.test):
        assert part["latitude"].notnull().all()
        assert part["longitude"].notnull().all()


@pytest.mark.integration
def test_missing_required_column_aborts(raw_incidents, nypd_config_dict):
    config = PipelineConfig.from_dict(nypd_config_dict)
    with pytest.raises(SchemaError):
        run_pipeline(config, data=raw_incidents.drop(columns=["VIC_SEX"]))


@pytest.mark.integration
def test_pipeline_without_source_raises(tiny_config_dict):
    with pytest.raises(ConfigurationError):
        run_pipeline(PipelineConfig.from_dict(tiny_config_dict))


# ── CLI ────────────────────────────────────────────────────────────────────────

@pytest.fixture
def cli_files(tmp_path, raw_incidents, nypd_config_dict):
    data_path = tmp_path / "incidents.csv"
    raw_incidents.to_csv(data_path, index=False)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(nypd_config_dict), encoding="utf-8")
    return str(config_path), str(data_path)


@pytest.mark.integration
def test_cli_run(cli_files, tmp_path, capsys):
    config_path, data_path = cli_files
    out_dir = tmp_path / "reports"
    code = main([
        "--log-level", "WARNING",
        "run", "--config", config_path, "--data", data_path,
        "--output-dir", str(out_dir), "--threshold", "0.4",
    ])
    assert code == 0
    assert "roc_auc" in capsys.readouterr().out
    payload = json.loads((out_dir / "report.json").read_text(encoding="utf-8"))
    assert payload["evaluation"]["threshold"] == 0.4


@pytest.mark.integration
def test_cli_profile(cli_files, capsys):
    config_path, data_path = cli_files
    code = main(["--log-level", "WARNING", "profile", "--config", config_path, "--data", data_path])
    assert code == 0
    out = capsys.readouterr().out
    assert "Missing values" in out
    assert "perp_sex" in out


def test_cli_bad_config_returns_error(tmp_path):
    assert main(["--log-level", "ERROR", "run", "--config", str(tmp_path / "absent.yaml")]) == 1


def test_cli_profile_without_source(tmp_path, tiny_config_dict):
    """Both modes report a missing data source as a configuration error."""
    config_path = tmp_path / "tiny.yaml"
    config_path.write_text(yaml.safe_dump(tiny_config_dict), encoding="utf-8")
    args = build_parser().parse_args(["profile", "--config", str(config_path)])
    with pytest.raises(ConfigurationError, match="No data source"):
        run_profile_mode(args)
    assert main(["--log-level", "ERROR", "profile", "--config", str(config_path)]) == 1
