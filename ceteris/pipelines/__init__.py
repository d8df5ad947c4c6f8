"""Pipeline implementations for what-if profiling."""

from .config import (
    PipelineConfig,
    PathsConfig,
    ModelSourceConfig,
    GridConfig,
    ProfilingConfig,
    AggregationConfig,
    load_config,
    get_default_config,
)
from .profiling import (
    ProfilingPipeline,
    create_profiling_pipeline,
    load_reference_data,
    run_profiling_from_config,
)

__all__ = [
    # Config
    "PipelineConfig",
    "PathsConfig",
    "ModelSourceConfig",
    "GridConfig",
    "ProfilingConfig",
    "AggregationConfig",
    "load_config",
    "get_default_config",
    # Profiling
    "ProfilingPipeline",
    "create_profiling_pipeline",
    "load_reference_data",
    "run_profiling_from_config",
]
