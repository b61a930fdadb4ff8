"""
Unit tests for feature preparation components.
"""
import warnings

import numpy as np
import pandas as pd
import pytest

from incident_pipeline.features.datetime_features import (
    CalendarFeatureExtractor,
    derive_calendar_fields,
)
from incident_pipeline.features.encoder import FeatureEncoder, encode_boolean
from incident_pipeline.features.feature_selector import NearZeroVarianceFilter
from incident_pipeline.features.imputer import UNKNOWN, IncidentImputer
from incident_pipeline.features.pipeline import FeaturePipeline
from incident_pipeline.features.roles import ColumnRole, FeatureRoles
from incident_pipeline.features.vocabulary import VocabularyAligner
from incident_pipeline.utils.exceptions import (
    ConfigurationError,
    ImputationPolicyError,
    ParseError,
    SchemaError,
)

AGE_LEVELS = ["<18", "18-24", "25-44", "45-64", "65+", UNKNOWN]


@pytest.fixture
def dirty_df():
    return pd.DataFrame({
        "perp_sex": ["M", None, "(null)", "U", "F", "M"],
        "perp_age_group": ["18-24", "1020", None, "25-44", "<18", "65+"],
        "latitude": [40.0, np.nan, 41.0, 42.0, np.nan, 43.0],
        "longitude": [-73.0, np.nan, -74.0, -75.0, np.nan, -76.0],
        "lon_lat": ["POINT (-73.0 40.0)", None, "POINT (-74.0 41.0)",
                    "POINT (-75.0 42.0)", None, "POINT (-76.0 43.0)"],
    })


def _imputer(**overrides):
    params = dict(
        categorical_cols=["perp_sex", "perp_age_group"],
        continuous_cols=["latitude", "longitude"],
        sentinels={"perp_sex": ["(null)", "U"], "perp_age_group": ["1020"]},
        composite={"column": "lon_lat", "from": ["longitude", "latitude"]},
    )
    params.update(overrides)
    return IncidentImputer(**params)


# ── Imputation ─────────────────────────────────────────────────────────────────

def test_imputer_fills_every_gap(dirty_df):
    """No nulls or sentinel literals remain in the imputed columns."""
    out = _imputer().fit_transform(dirty_df)
    assert out.isnull().sum().sum() == 0
    assert list(out["perp_sex"]) == ["M", UNKNOWN, UNKNOWN, UNKNOWN, "F", "M"]
    assert out.loc[1, "perp_age_group"] == UNKNOWN
    assert out.loc[2, "perp_age_group"] == UNKNOWN


def test_imputer_mean_fill_keeps_mean(dirty_df):
    """Filling with the mean leaves the column mean unchanged."""
    imputer = _imputer().fit(dirty_df)
    out = imputer.transform(dirty_df)
    assert imputer.means_["latitude"] == pytest.approx(41.5)
    assert out["latitude"].mean() == pytest.approx(dirty_df["latitude"].mean())
    assert out.loc[1, "latitude"] == pytest.approx(41.5)


def test_imputer_rebuilds_composite(dirty_df):
    """Missing composite values are rebuilt from the imputed coordinates."""
    out = _imputer().fit_transform(dirty_df)
    assert out.loc[1, "lon_lat"] == "POINT (-74.5 41.5)"
    assert out.loc[0, "lon_lat"] == "POINT (-73.0 40.0)"


def test_imputer_is_idempotent(dirty_df):
    once = _imputer().fit_transform(dirty_df)
    twice = _imputer().fit_transform(once)
    pd.testing.assert_frame_equal(once, twice)


def test_imputer_is_idempotent_with_rare_floors():
    """Floors on several columns settle in one pass; a second pass drops nothing."""
    df = pd.DataFrame({
        "boro": ["BRONX", "BRONX", "BRONX", "QUEENS", "QUEENS", "STATEN ISLAND"],
        "jurisdiction_code": [0.0, 0.0, 1.0, 1.0, 2.0, 2.0],
        "perp_sex": ["M", None, "F", "M", "U", "M"],
    })
    imputer = dict(
        categorical_cols=["perp_sex"],
        sentinels={"perp_sex": ["U"]},
        rare_categories={"boro": 2, "jurisdiction_code": 2},
    )
    once = IncidentImputer(**imputer).fit_transform(df)
    twice = IncidentImputer(**imputer).fit_transform(once)
    pd.testing.assert_frame_equal(once, twice)
    assert list(once.index) == [0, 1]
    assert list(once["perp_sex"]) == ["M", UNKNOWN]


def test_imputer_rare_floors_cascade():
    """Rows dropped for one column count against the floors of the others."""
    df = pd.DataFrame({"a": ["x", "x", "y", "y"], "b": ["p", "q", "q", "r"]})
    out = IncidentImputer(rare_categories={"a": 2, "b": 2}).fit_transform(df)
    assert len(out) == 0


def test_imputer_does_not_mutate_input(dirty_df):
    before = dirty_df.copy()
    _imputer().fit_transform(dirty_df)
    pd.testing.assert_frame_equal(dirty_df, before)


def test_imputer_drops_rare_rows():
    """Rows whose category occurs fewer than the minimum are dropped, not imputed."""
    df = pd.DataFrame({
        "jurisdiction_code": [0.0] * 6 + [2.0] * 5 + [1.0, np.nan],
        "x": range(13),
    })
    out = IncidentImputer(rare_categories={"jurisdiction_code": 5}).fit_transform(df)
    assert len(out) == 11
    assert set(out["jurisdiction_code"]) == {0.0, 2.0}


def test_imputer_unknown_column_raises(dirty_df):
    """A policy naming an absent column fails with ImputationPolicyError."""
    with pytest.raises(ImputationPolicyError):
        _imputer(categorical_cols=["vic_sex"]).fit(dirty_df)


def test_imputer_missing_stats_include_sentinels(dirty_df):
    stats = _imputer().get_missing_stats(dirty_df)
    assert stats.loc["perp_sex", "missing_count"] == 3
    assert stats.loc["latitude", "missing_count"] == 2


# ── Calendar fields ────────────────────────────────────────────────────────────

def test_calendar_fields_values():
    """Hour, ISO weekday and month are derived from date and time strings."""
    dates = pd.Series(["01/04/2021", "01/10/2021", "12/31/2020"], name="occur_date")
    times = pd.Series(["00:00:00", "23:59:59", "13:30:00"], name="occur_time")
    fields = derive_calendar_fields(dates, times)

    assert list(fields["hour"]) == [0, 23, 13]
    assert list(fields["weekday"]) == [1, 7, 4]  # Monday, Sunday, Thursday
    assert list(fields["month"]) == [1, 1, 12]
    assert fields.loc[2, "timestamp"] == pd.Timestamp("2020-12-31 13:30:00")


def test_calendar_fields_in_range(raw_incidents):
    df = raw_incidents.rename(columns=str.lower)
    fields = derive_calendar_fields(df["occur_date"], df["occur_time"])
    assert fields["hour"].between(0, 23).all()
    assert fields["weekday"].between(1, 7).all()
    assert fields["month"].between(1, 12).all()


def test_calendar_bad_date_raises():
    dates = pd.Series(["01/04/2021", "not a date"], name="occur_date")
    with pytest.raises(ParseError) as exc_info:
        derive_calendar_fields(dates)
    assert exc_info.value.bad_values == ["not a date"]


def test_calendar_missing_time_raises():
    dates = pd.Series(["01/04/2021", "01/05/2021"], name="occur_date")
    times = pd.Series(["10:00:00", None], name="occur_time")
    with pytest.raises(ParseError):
        derive_calendar_fields(dates, times)


def test_calendar_extractor_adds_prefixed_columns():
    df = pd.DataFrame({"occur_date": ["07/04/2022"], "occur_time": ["18:15:00"]})
    out = CalendarFeatureExtractor().fit_transform(df)
    assert {"occur_timestamp", "occur_hour", "occur_weekday", "occur_month"} <= set(out.columns)
    assert out.loc[0, "occur_hour"] == 18
    assert "occur_hour" not in df.columns


# ── Roles ──────────────────────────────────────────────────────────────────────

def test_roles_reject_overlap():
    """A column may carry only one role."""
    with pytest.raises(ConfigurationError, match="more than one role"):
        FeatureRoles(target="y", nominal=["boro"], numeric_as_categorical=["boro"])


def test_roles_reject_target_as_feature():
    with pytest.raises(ConfigurationError):
        FeatureRoles(target="y", nominal=["y"])


def test_roles_require_ordinal_levels():
    with pytest.raises(ConfigurationError, match="level order"):
        FeatureRoles(target="y", ordinal=["vic_age_group"])


def test_roles_require_a_feature():
    with pytest.raises(ConfigurationError):
        FeatureRoles(target="y", date=["occur_timestamp"])


def test_roles_check_columns():
    roles = FeatureRoles(target="y", nominal=["boro"], numeric=["latitude"])
    roles.check_columns(["boro", "latitude", "y", "extra"])
    with pytest.raises(ConfigurationError, match="latitude"):
        roles.check_columns(["boro", "y"])


def test_roles_views():
    roles = FeatureRoles(
        target="y", nominal=["boro"], numeric=["latitude"], date=["occur_timestamp"]
    )
    assert roles.columns == ["boro", "latitude", "occur_timestamp", "y"]
    assert roles.model_columns == ["boro", "latitude"]
    assert roles.role_map()["y"] is ColumnRole.TARGET
    assert roles.columns_with_role(ColumnRole.NUMERIC) == ["latitude"]


# ── Feature Table encoding ─────────────────────────────────────────────────────

@pytest.fixture
def roles():
    return FeatureRoles(
        target="murder",
        nominal=["boro"],
        ordinal=["vic_age_group"],
        ordinal_levels={"vic_age_group": AGE_LEVELS},
        numeric=["latitude"],
        numeric_as_categorical=["occur_hour"],
        boolean=["inside"],
        date=["occur_timestamp"],
    )


@pytest.fixture
def clean_df():
    return pd.DataFrame({
        "boro": ["BRONX", "QUEENS", "BRONX", "BROOKLYN"],
        "vic_age_group": ["25-44", "<18", UNKNOWN, "25-44"],
        "latitude": ["40.8", "40.7", "40.6", "40.9"],
        "occur_hour": [1, 13, 1, 22],
        "inside": ["true", "false", "False", "TRUE"],
        "occur_timestamp": pd.to_datetime(["2021-01-01"] * 4),
        "murder": ["true", "false", "false", "false"],
        "unused": ["a", "b", "c", "d"],
    })


def test_encoder_dtypes(roles, clean_df):
    """Each column gets the dtype its role calls for; undeclared columns are dropped."""
    table = FeatureEncoder(roles).build(clean_df)

    assert "unused" not in table.columns
    assert isinstance(table["boro"].dtype, pd.CategoricalDtype)
    assert not table["boro"].cat.ordered
    assert table["vic_age_group"].cat.ordered
    assert list(table["vic_age_group"].cat.categories) == AGE_LEVELS
    assert table["latitude"].dtype == float
    assert isinstance(table["occur_hour"].dtype, pd.CategoricalDtype)
    assert list(table["murder"].cat.categories) == ["No", "Yes"]
    assert list(table["murder"]) == ["Yes", "No", "No", "No"]
    assert list(table["inside"]) == ["Yes", "No", "No", "Yes"]
    assert pd.api.types.is_datetime64_any_dtype(table["occur_timestamp"])


def test_encoder_ordinal_order(roles, clean_df):
    table = FeatureEncoder(roles).build(clean_df)
    codes = table["vic_age_group"].cat.codes
    assert codes.iloc[1] < codes.iloc[0] < codes.iloc[2]


def test_encoder_unexpected_ordinal_value_is_undefined(roles, clean_df):
    df = clean_df.assign(vic_age_group=["25-44", "1022", UNKNOWN, "<18"])
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        table = FeatureEncoder(roles).build(df)
    assert pd.isna(table["vic_age_group"].iloc[1])
    assert table["vic_age_group"].iloc[3] == "<18"


def test_encoder_rejects_non_boolean_target(roles, clean_df):
    df = clean_df.assign(murder=["true", "maybe", "false", "false"])
    with pytest.raises(SchemaError, match="non-boolean"):
        FeatureEncoder(roles).build(df)


def test_encoder_absent_column_raises(roles, clean_df):
    with pytest.raises(ConfigurationError):
        FeatureEncoder(roles).build(clean_df.drop(columns=["boro"]))


def test_encode_boolean_accepts_bools():
    encoded = encode_boolean(pd.Series([True, False, None], name="flag"))
    assert list(encoded[:2]) == ["Yes", "No"]
    assert pd.isna(encoded[2])


# ── Near-zero-variance filter ──────────────────────────────────────────────────

def test_nzv_drops_dominated_and_constant_columns():
    df = pd.DataFrame({
        "mostly_m": ["M"] * 97 + ["F"] * 3,
        "constant": ["X"] * 100,
        "balanced": ["A", "B"] * 50,
    })
    nzv = NearZeroVarianceFilter(freq_share=0.95).fit(df)
    assert sorted(nzv.dropped_) == ["constant", "mostly_m"]
    assert list(nzv.transform(df).columns) == ["balanced"]
    assert nzv.stats_.loc["mostly_m", "top_share"] == pytest.approx(0.97)


def test_nzv_ignores_unobserved_categories():
    """Declared but unobserved levels do not count as distinct values."""
    df = pd.DataFrame({"c": pd.Categorical(["A"] * 10, categories=["A", "B"])})
    nzv = NearZeroVarianceFilter().fit(df)
    assert nzv.dropped_ == ["c"]
    assert nzv.stats_.loc["c", "n_distinct"] == 1


def test_nzv_restricted_to_cols():
    df = pd.DataFrame({"constant": [1] * 10, "y": [0] * 10})
    nzv = NearZeroVarianceFilter(cols=["constant"]).fit(df)
    assert nzv.dropped_ == ["constant"]
    assert "y" in nzv.transform(df).columns


# ── Vocabulary alignment ───────────────────────────────────────────────────────

def test_vocabulary_is_training_subset():
    """Test categories are a subset of training categories; unseen become NaN."""
    dtype = pd.CategoricalDtype(["BRONX", "QUEENS", "STATEN ISLAND"])
    train = pd.DataFrame({"boro": pd.Series(["BRONX", "QUEENS", "BRONX"], dtype=dtype)})
    test = pd.DataFrame({"boro": pd.Series(["QUEENS", "STATEN ISLAND"], dtype=dtype)})

    aligner = VocabularyAligner().fit(train)
    aligned = aligner.transform(test)

    assert aligner.vocabulary == {"boro": ["BRONX", "QUEENS"]}
    assert set(aligned["boro"].cat.categories) <= set(aligner.vocabulary["boro"])
    assert aligned.loc[0, "boro"] == "QUEENS"
    assert pd.isna(aligned.loc[1, "boro"])
    assert aligner.unseen_ == {"boro": 1}


def test_vocabulary_unseen_values_need_no_lossy_cast():
    """Unseen values are masked before the categorical cast, so pandas never warns."""
    dtype = pd.CategoricalDtype(["F", "M", UNKNOWN])
    train = pd.DataFrame({"perp_sex": pd.Series(["F", "M", "M"], dtype=dtype)})
    test = pd.DataFrame({"perp_sex": pd.Series([UNKNOWN, "F"], dtype=dtype)})
    aligner = VocabularyAligner().fit(train)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        aligned = aligner.transform(test)
    assert aligned["perp_sex"].isnull().tolist() == [True, False]


def test_vocabulary_keeps_ordering():
    dtype = pd.CategoricalDtype(AGE_LEVELS, ordered=True)
    train = pd.DataFrame({"age": pd.Series(["65+", "<18"], dtype=dtype)})
    aligned = VocabularyAligner().fit_transform(train)
    assert aligned["age"].cat.ordered
    assert list(aligned["age"].cat.categories) == ["<18", "65+"]


# ── Post-split feature pipeline ────────────────────────────────────────────────

def test_feature_pipeline_fit_on_train_only():
    roles = FeatureRoles(target="y", nominal=["boro", "flat"], numeric=["x"])
    boro = pd.CategoricalDtype(["BRONX", "QUEENS", "BROOKLYN"])
    train = pd.DataFrame({
        "boro": pd.Series(["BRONX", "QUEENS"] * 5, dtype=boro),
        "flat": ["same"] * 10,
        "x": np.arange(10.0),
        "y": ["No", "Yes"] * 5,
    })
    test = pd.DataFrame({
        "boro": pd.Series(["BROOKLYN", "BRONX"], dtype=boro),
        "flat": ["other", "same"],
        "x": [1.0, 2.0],
        "y": ["No", "Yes"],
    })

    pipe = FeaturePipeline(roles).fit(train)
    out = pipe.transform(test)

    assert pipe.feature_columns == ["boro", "x"]
    assert "flat" not in out.columns
    assert "y" in out.columns
    assert pd.isna(out["boro"].iloc[0])
    assert pipe.unseen_counts == {"boro": 1}


def test_feature_pipeline_all_dropped_raises():
    roles = FeatureRoles(target="y", nominal=["flat"])
    train = pd.DataFrame({"flat": ["same"] * 5, "y": ["No", "Yes", "No", "Yes", "No"]})
    with pytest.raises(ConfigurationError):
        FeaturePipeline(roles).fit(train)
