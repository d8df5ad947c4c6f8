"""Configuration loader for profiling pipelines.

Provides typed configuration loading from YAML files with
sensible defaults and validation using Pydantic.
"""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field

from ceteris.grids.grid_builder import DEFAULT_RESOLUTION


class PathsConfig(BaseModel):
    """Configuration for file system paths."""

    model_config = {"frozen": True}

    reference_data: Path = Field(default=Path("data/reference.parquet"))
    model_file: Path = Field(default=Path("artifacts/model.json"))
    output_dir: Path = Field(default=Path("artifacts/profiles"))


class ModelSourceConfig(BaseModel):
    """How to load the model and present records to it."""

    model_config = {"frozen": True}

    kind: Literal["xgboost", "sklearn"] = Field(default="xgboost")
    label: str | None = Field(default=None)
    feature_names: list[str] | None = Field(default=None)
    target_column: str | None = Field(default=None)
    categorical: list[str] = Field(default_factory=list)
    encoding: dict[str, dict[str, float]] = Field(default_factory=dict)
    class_index: int | None = Field(default=None, ge=0)
    thread_safe: bool = Field(default=True)


class GridConfig(BaseModel):
    """Configuration for grid construction."""

    model_config = {"frozen": True}

    resolution: int = Field(default=DEFAULT_RESOLUTION, ge=2)
    method: Literal["quantiles", "uniform"] = Field(default="quantiles")
    resolutions: dict[str, int] = Field(default_factory=dict)

    def resolution_for(self, variable: str) -> int:
        """Resolution for one variable, falling back to the global one."""
        return self.resolutions.get(variable, self.resolution)


class ProfilingConfig(BaseModel):
    """Configuration for the what-if run."""

    model_config = {"frozen": True}

    rows: list[int] = Field(default_factory=lambda: [0])
    variables: list[str] | None = Field(default=None)
    workers: int = Field(default=1, ge=1)
    profile_set_name: str = Field(default="profiles")


class AggregationConfig(BaseModel):
    """Configuration for the optional aggregation step."""

    model_config = {"frozen": True}

    enabled: bool = Field(default=False)
    reduce: Literal["mean", "median", "min", "max", "sum"] = Field(default="mean")
    group_by: str | None = Field(default=None)
    variables: list[str] | None = Field(default=None)


class PipelineConfig(BaseModel):
    """Complete pipeline configuration."""

    model_config = {"frozen": True}

    paths: PathsConfig = Field(default_factory=PathsConfig)
    model: ModelSourceConfig = Field(default_factory=ModelSourceConfig)
    grid: GridConfig = Field(default_factory=GridConfig)
    profiling: ProfilingConfig = Field(default_factory=ProfilingConfig)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)

    def with_base_path(self, base_path: Path) -> "PipelineConfig":
        """Return a new config with paths resolved against base_path."""
        def resolve(p: Path) -> Path:
            if not p.is_absolute():
                return base_path / p
            return p

        resolved_paths = PathsConfig(
            reference_data=resolve(self.paths.reference_data),
            model_file=resolve(self.paths.model_file),
            output_dir=resolve(self.paths.output_dir),
        )

        return self.model_copy(update={"paths": resolved_paths})


def load_config(config_path: Path | str, base_path: Path | None = None) -> PipelineConfig:
    """Load pipeline configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file
        base_path: Optional base path for resolving relative paths.
                   Defaults to the parent directory of the config file.

    Returns:
        PipelineConfig with all settings loaded

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If configuration validation fails
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    if base_path is None:
        base_path = config_path.parent

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    config = PipelineConfig.model_validate(data)
    return config.with_base_path(base_path)


def get_default_config(base_path: Path | None = None) -> PipelineConfig:
    """Get default configuration without loading from file.

    Args:
        base_path: Optional base path for resolving relative paths.

    Returns:
        PipelineConfig with all default values
    """
    config = PipelineConfig()
    if base_path:
        return config.with_base_path(base_path)
    return config
