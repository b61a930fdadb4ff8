"""
Pipeline configuration.
A typed dataclass tree loaded from YAML and validated before any data
is touched. Column names refer to the normalized (lower snake case) names.
"""
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from incident_pipeline.features.datetime_features import DEFAULT_DATE_FORMAT, DEFAULT_TIME_FORMAT
from incident_pipeline.features.encoder import POSITIVE_LABEL
from incident_pipeline.features.imputer import UNKNOWN
from incident_pipeline.features.roles import FeatureRoles
from incident_pipeline.models.resampling import RESAMPLING_METHODS
from incident_pipeline.utils.exceptions import ConfigurationError
from incident_pipeline.utils.logger import get_logger
from incident_pipeline.utils.validators import validate_config_keys

log = get_logger(__name__)

IMPUTE_FIT_ON = ["full", "train"]


@dataclass
class SourceConfig:
    url: Optional[str] = None
    required_columns: list[str] = field(default_factory=list)
    timeout: float = 60.0


@dataclass
class ImputationConfig:
    categorical: list[str] = field(default_factory=list)
    continuous: list[str] = field(default_factory=list)
    sentinels: dict[str, list] = field(default_factory=dict)
    composite: Optional[dict] = None
    rare_categories: dict[str, int] = field(default_factory=dict)
    fit_on: str = "full"
    unknown_label: str = UNKNOWN

    def __post_init__(self) -> None:
        if self.fit_on not in IMPUTE_FIT_ON:
            raise ConfigurationError(
                f"imputation.fit_on must be one of {IMPUTE_FIT_ON}, got '{self.fit_on}'"
            )
        both = sorted(set(self.categorical) & set(self.continuous))
        if both:
            raise ConfigurationError(
                f"Columns declared both categorical and continuous for imputation: {both}"
            )
        if self.composite is not None:
            validate_config_keys("imputation.composite", self.composite, ["column", "from", "template"])
            if "column" not in self.composite or len(self.composite.get("from", [])) != 2:
                raise ConfigurationError(
                    "imputation.composite needs 'column' and exactly two 'from' columns"
                )
        bad = {c: n for c, n in self.rare_categories.items() if not isinstance(n, int) or n < 1}
        if bad:
            raise ConfigurationError(f"rare_categories counts must be positive integers: {bad}")


@dataclass
class CalendarConfig:
    date_column: Optional[str] = None
    time_column: Optional[str] = None
    date_format: Optional[str] = DEFAULT_DATE_FORMAT
    time_format: Optional[str] = DEFAULT_TIME_FORMAT
    prefix: str = "occur_"


@dataclass
class SplitConfig:
    test_size: float = 0.2
    seed: int = 42

    def __post_init__(self) -> None:
        if not 0.0 < self.test_size < 1.0:
            raise ConfigurationError(f"split.test_size must be in (0, 1), got {self.test_size}")


@dataclass
class NzvConfig:
    freq_share: float = 0.95
    min_distinct: int = 2


@dataclass
class ResamplingConfig:
    method: str = "undersample"

    def __post_init__(self) -> None:
        if self.method not in RESAMPLING_METHODS:
            raise ConfigurationError(
                f"resampling.method must be one of {RESAMPLING_METHODS}, got '{self.method}'"
            )


@dataclass
class ModelConfig:
    C: Optional[float] = None
    max_iter: int = 1000
    tol: float = 1e-4

    def __post_init__(self) -> None:
        if self.C is not None and self.C <= 0:
            raise ConfigurationError(f"model.C must be positive, got {self.C}")


@dataclass
class PipelineConfig:
    """Full run configuration. ``roles`` is required; everything else has defaults."""
    roles: FeatureRoles
    source: SourceConfig = field(default_factory=SourceConfig)
    imputation: ImputationConfig = field(default_factory=ImputationConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    split: SplitConfig = field(default_factory=SplitConfig)
    nzv: NzvConfig = field(default_factory=NzvConfig)
    resampling: ResamplingConfig = field(default_factory=ResamplingConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    threshold: float = 0.5
    positive_label: str = POSITIVE_LABEL

    def __post_init__(self) -> None:
        if not 0.0 < self.threshold < 1.0:
            raise ConfigurationError(f"threshold must be in (0, 1), got {self.threshold}")

    @classmethod
    def from_dict(cls, raw: dict) -> "PipelineConfig":
        """Build and validate a config from a plain mapping (e.g. parsed YAML).

        Raises:
            ConfigurationError: On unknown keys, wrong types or invalid values.
        """
        sections = {
            "source": SourceConfig,
            "imputation": ImputationConfig,
            "calendar": CalendarConfig,
            "split": SplitConfig,
            "nzv": NzvConfig,
            "resampling": ResamplingConfig,
            "model": ModelConfig,
        }
        validate_config_keys("root", raw, [f.name for f in fields(cls)])
        if "roles" not in raw:
            raise ConfigurationError("Config is missing the 'roles' section")

        kwargs: dict[str, Any] = {"roles": _build("roles", FeatureRoles, raw["roles"])}
        for name, section_cls in sections.items():
            if raw.get(name) is not None:
                kwargs[name] = _build(name, section_cls, raw[name])
        for name in ("threshold", "positive_label"):
            if name in raw:
                kwargs[name] = raw[name]
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)


def _build(section: str, section_cls, values: dict):
    validate_config_keys(section, values, [f.name for f in fields(section_cls)])
    try:
        return section_cls(**values)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid config section '{section}': {exc}") from exc


def load_config(path: Union[str, Path]) -> PipelineConfig:
    """Load and validate a YAML pipeline configuration.

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid.
    """
    p = Path(path)
    if not p.is_file():
        raise ConfigurationError(f"Config file not found: '{p}'")
    try:
        with open(p, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Could not parse config '{p}': {exc}") from exc
    config = PipelineConfig.from_dict(raw)
    log.info(f"Loaded config from {p} | target={config.roles.target}")
    return config
