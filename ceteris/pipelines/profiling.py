"""Profiling pipeline.

Orchestrates a configuration-driven what-if run:
1. Reference data loading
2. Model loading and adaptation to the predictor interface
3. Explainer construction
4. Profile generation for selected rows
5. Optional aggregation
6. Persistence to the profile store
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path
import pickle
from typing import Any, Sequence

import polars as pl

from ceteris.aggregation.aggregator import AggregationResult, aggregate
from ceteris.domain.entities import Record
from ceteris.domain.errors import ConfigurationError
from ceteris.domain.protocols import IPredictor
from ceteris.explainers.explainer import Explainer
from ceteris.models.adapters import SklearnPredictor, XGBoostPredictor
from ceteris.pipelines.config import PipelineConfig, get_default_config, load_config
from ceteris.profiles.composer import ProfileCollection
from ceteris.profiles.what_if import what_if
from ceteris.store.profile_store import ParquetProfileStore


logger = logging.getLogger(__name__)


def load_reference_data(path: Path) -> pl.DataFrame:
    """Load reference data from a parquet or CSV file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigurationError: If the file type is not supported
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Reference data not found: {path}")
    if path.suffix == ".parquet":
        return pl.read_parquet(path)
    if path.suffix == ".csv":
        return pl.read_csv(path)
    raise ConfigurationError(f"Unsupported reference data format '{path.suffix}' (use .parquet or .csv)")


@dataclass
class ProfilingPipeline:
    """Pipeline computing what-if profiles from configuration.

    A pre-built predictor may be passed instead of loading one from disk.
    """

    config: PipelineConfig = field(default_factory=get_default_config)
    predictor: IPredictor | None = None

    _data: pl.DataFrame | None = field(default=None, init=False)
    _explainer: Explainer | None = field(default=None, init=False)
    _store: ParquetProfileStore | None = field(default=None, init=False)

    @property
    def store(self) -> ParquetProfileStore:
        if self._store is None:
            self._store = ParquetProfileStore(self.config.paths.output_dir)
        return self._store

    def load_data(self) -> pl.DataFrame:
        if self._data is None:
            self._data = load_reference_data(self.config.paths.reference_data)
        return self._data

    def feature_names(self) -> list[str]:
        """Model features: configured names or every non-target column."""
        model_cfg = self.config.model
        if model_cfg.feature_names:
            return list(model_cfg.feature_names)
        return [c for c in self.load_data().columns if c != model_cfg.target_column]

    def load_model(self) -> IPredictor:
        """Load the configured model and wrap it as a predictor."""
        if self.predictor is not None:
            return self.predictor

        model_cfg = self.config.model
        path = self.config.paths.model_file
        if not path.exists():
            raise FileNotFoundError(f"Model not found: {path}")

        if model_cfg.kind == "xgboost":
            self.predictor = XGBoostPredictor.load(
                path,
                feature_names=model_cfg.feature_names,
                encoding=model_cfg.encoding,
            )
        else:
            with open(path, "rb") as f:
                estimator = pickle.load(f)
            self.predictor = SklearnPredictor(
                estimator=estimator,
                feature_names=self.feature_names(),
                encoding=model_cfg.encoding,
                class_index=model_cfg.class_index,
            )
        logger.info("Loaded %s model from %s", model_cfg.kind, path)
        return self.predictor

    def build_explainer(self) -> Explainer:
        """Build (once) the Explainer over the reference data."""
        if self._explainer is not None:
            return self._explainer

        data = self.load_data()
        model_cfg = self.config.model
        y = None
        if model_cfg.target_column:
            if model_cfg.target_column not in data.columns:
                raise ConfigurationError(f"Target column '{model_cfg.target_column}' not in reference data")
            y = data[model_cfg.target_column].to_numpy()

        features = data.select(self.feature_names())
        self._explainer = Explainer.from_predictor(
            self.load_model(),
            features,
            y=y,
            label=model_cfg.label,
            categorical=model_cfg.categorical,
            thread_safe=model_cfg.thread_safe,
        )
        return self._explainer

    def select_observations(self, rows: Sequence[int]) -> list[Record]:
        """Pick observations from the reference data by row index."""
        explainer = self.build_explainer()
        records = explainer.records
        out_of_range = [r for r in rows if not 0 <= r < len(records)]
        if out_of_range:
            raise ConfigurationError(f"Rows {out_of_range} out of range for {len(records)} records")
        return [records[r] for r in rows]

    def run(
        self,
        rows: Sequence[int] | None = None,
        observations: Sequence[Record] | None = None,
    ) -> tuple[ProfileCollection, AggregationResult | None]:
        """Compute profiles and, when enabled, aggregate them.

        Args:
            rows: Reference data rows to profile (defaults to the configured rows)
            observations: Explicit observations; take precedence over rows

        Returns:
            Tuple of (profiles, aggregation result or None)
        """
        explainer = self.build_explainer()
        grid_cfg = self.config.grid
        profiling_cfg = self.config.profiling

        if observations is None:
            rows = list(rows) if rows is not None else profiling_cfg.rows
            observations = self.select_observations(rows)
            observation_ids = [str(r) for r in rows]
        else:
            observation_ids = None

        variables = profiling_cfg.variables or explainer.variables
        profiles = what_if(
            explainer,
            observations,
            variables=variables,
            grid_resolution={v: grid_cfg.resolution_for(v) for v in variables},
            grid_method=grid_cfg.method,
            observation_ids=observation_ids,
            workers=profiling_cfg.workers,
        )

        aggregation_cfg = self.config.aggregation
        aggregated = None
        if aggregation_cfg.enabled:
            aggregated = aggregate(
                profiles,
                reduce_fn=aggregation_cfg.reduce,
                group_by=aggregation_cfg.group_by,
                variables=aggregation_cfg.variables,
            )
        return profiles, aggregated

    def save(self, profiles: ProfileCollection, name: str | None = None) -> Path:
        """Persist profiles to the store under the configured name."""
        name = name or self.config.profiling.profile_set_name
        return self.store.save_profiles(
            profiles,
            name,
            metadata={"model_file": str(self.config.paths.model_file)},
        )


def create_profiling_pipeline(
    config_path: Path | str | None = None,
    predictor: IPredictor | None = None,
) -> ProfilingPipeline:
    """Create a pipeline from a YAML config file (or defaults)."""
    config = load_config(config_path) if config_path else get_default_config()
    return ProfilingPipeline(config=config, predictor=predictor)


def run_profiling_from_config(
    config_path: Path | str,
    rows: Sequence[int] | None = None,
) -> tuple[ProfileCollection, AggregationResult | None, Path]:
    """Run profiling end to end from a config file and persist the profiles.

    Returns:
        Tuple of (profiles, aggregation result or None, saved parquet path)
    """
    pipeline = create_profiling_pipeline(config_path)
    profiles, aggregated = pipeline.run(rows=rows)
    path = pipeline.save(profiles)
    return profiles, aggregated, path
