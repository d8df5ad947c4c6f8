"""Main entry point for ceteris-paribus profiling.

Provides CLI interface for computing, aggregating and listing profiles.

Usage:
    # Profile reference rows 0 and 5 with a config file
    python -m ceteris.main profile --config pipeline_config.yml --rows 0 5

    # Restrict variables and persist under a custom name
    python -m ceteris.main profile --config pipeline_config.yml --variables age income --name age_income

    # Aggregate a stored profile set (partial dependence by default)
    python -m ceteris.main aggregate --name profiles --reduce mean --group-by gender

    # List stored profile sets
    python -m ceteris.main list
"""

import argparse
import logging
from pathlib import Path
import sys

from ceteris.aggregation.aggregator import aggregate, aggregate_to_frame
from ceteris.domain.errors import CeterisParibusError
from ceteris.pipelines.config import PipelineConfig, get_default_config, load_config
from ceteris.pipelines.profiling import ProfilingPipeline
from ceteris.settings import CeterisSettings, get_settings
from ceteris.store.profile_store import ParquetProfileStore


def _load_pipeline_config(config_path: str | None, settings: CeterisSettings) -> PipelineConfig:
    """Load pipeline config from file, the environment default, or built-in defaults."""
    path = config_path or settings.config_path
    if path:
        return load_config(path)
    return get_default_config()


def _output_dir(args: argparse.Namespace, settings: CeterisSettings) -> Path:
    if args.output_dir:
        return Path(args.output_dir)
    if getattr(args, "config", None) or settings.config_path:
        return _load_pipeline_config(args.config, settings).paths.output_dir
    return settings.output_dir


def profile(args: argparse.Namespace, settings: CeterisSettings) -> None:
    """Compute what-if profiles and persist them."""
    config = _load_pipeline_config(args.config, settings)

    profiling = config.profiling.model_copy(update={
        k: v for k, v in {
            "variables": args.variables,
            "workers": args.workers or max(config.profiling.workers, settings.workers),
            "profile_set_name": args.name,
        }.items() if v is not None
    })
    paths = config.paths
    if args.output_dir:
        paths = paths.model_copy(update={"output_dir": Path(args.output_dir)})
    config = config.model_copy(update={"profiling": profiling, "paths": paths})

    print(f"Loading reference data from {config.paths.reference_data}")
    pipeline = ProfilingPipeline(config=config)
    profiles, aggregated = pipeline.run(rows=args.rows)
    path = pipeline.save(profiles)

    print("\n" + "=" * 60)
    print("PROFILING COMPLETE")
    print("=" * 60)
    print(f"Labels: {', '.join(profiles.labels)}")
    print(f"Observations: {len(profiles.observation_ids)}")
    print(f"Variables: {len(profiles.variables)}")
    print(f"Profiles: {len(profiles)}")
    for skipped in profiles.skipped_variables:
        print(f"Skipped variable: {skipped}")
    if profiles.dropped_points:
        print(f"Dropped grid points: {len(profiles.dropped_points)}")
        for dropped in profiles.dropped_points:
            print(f"  {dropped.variable}={dropped.value!r} (observation {dropped.observation_id}): {dropped}")
    if aggregated is not None:
        print(f"Aggregated curves: {len(aggregated)}")
    print(f"\nProfiles saved to: {path}")


def aggregate_profiles(args: argparse.Namespace, settings: CeterisSettings) -> None:
    """Aggregate a stored profile set."""
    store = ParquetProfileStore(_output_dir(args, settings))
    profiles = store.load_profiles(args.name)

    result = aggregate(profiles, reduce_fn=args.reduce, group_by=args.group_by, variables=args.variables)
    if args.keep_profiles:
        frame = aggregate_to_frame(
            profiles,
            reduce_fn=args.reduce,
            group_by=args.group_by,
            variables=args.variables,
            keep_profiles=True,
        )
    else:
        frame = result.to_frame()

    print("\n" + "=" * 60)
    print(f"AGGREGATED PROFILES ({args.reduce})")
    print("=" * 60)
    for curve in result:
        print(f"{curve.variable} [{curve.group}]: {len(curve.values)} points from {curve.n_profiles} profiles")
    for diagnostic in result.diagnostics:
        print(f"Omitted: {diagnostic}")

    if args.export:
        export_path = Path(args.export)
        if export_path.suffix == ".csv":
            frame.write_csv(export_path)
        else:
            frame.write_parquet(export_path)
        print(f"\nExported {len(frame)} rows to: {export_path}")
    else:
        print(frame)


def list_profiles(args: argparse.Namespace, settings: CeterisSettings) -> None:
    """List stored profile sets."""
    store = ParquetProfileStore(_output_dir(args, settings))
    names = store.list_profile_sets()
    if not names:
        print(f"No profile sets in {store.storage_path}")
        return
    for name in names:
        meta = store.get_metadata(name)
        print(f"{name}: {meta.get('n_profiles', '?')} profiles, labels={meta.get('labels', [])}")


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    parser = argparse.ArgumentParser(description="Ceteris-paribus profiling")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Profile subcommand
    profile_parser = subparsers.add_parser("profile", help="Compute what-if profiles")
    profile_parser.add_argument("--config", type=str, help="Path to YAML config file")
    profile_parser.add_argument("--rows", type=int, nargs="+", help="Reference rows to profile (overrides config)")
    profile_parser.add_argument("--variables", type=str, nargs="+", help="Variables to profile (overrides config)")
    profile_parser.add_argument("--workers", type=int, help="Thread pool size (overrides config)")
    profile_parser.add_argument("--name", type=str, help="Profile set name (overrides config)")
    profile_parser.add_argument("--output-dir", type=str, help="Profile store directory (overrides config)")

    # Aggregate subcommand
    aggregate_parser = subparsers.add_parser("aggregate", help="Aggregate stored profiles")
    aggregate_parser.add_argument("--config", type=str, help="Path to YAML config file")
    aggregate_parser.add_argument("--output-dir", type=str, help="Profile store directory (overrides config)")
    aggregate_parser.add_argument("--name", type=str, default="profiles", help="Profile set to aggregate")
    aggregate_parser.add_argument("--reduce", type=str, default="mean",
                                  choices=["mean", "median", "min", "max", "sum"], help="Reduction")
    aggregate_parser.add_argument("--group-by", type=str, help="Observation attribute to group by (default: label)")
    aggregate_parser.add_argument("--variables", type=str, nargs="+", help="Variables to aggregate jointly")
    aggregate_parser.add_argument("--keep-profiles", action="store_true", help="Include raw profile rows")
    aggregate_parser.add_argument("--export", type=str, help="Write the result to a .parquet or .csv file")

    # List subcommand
    list_parser = subparsers.add_parser("list", help="List stored profile sets")
    list_parser.add_argument("--config", type=str, help="Path to YAML config file")
    list_parser.add_argument("--output-dir", type=str, help="Profile store directory (overrides config)")

    args = parser.parse_args(argv)

    commands = {
        "profile": profile,
        "aggregate": aggregate_profiles,
        "list": list_profiles,
    }
    if args.command not in commands:
        parser.print_help()
        return

    try:
        commands[args.command](args, settings)
    except (CeterisParibusError, FileNotFoundError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
