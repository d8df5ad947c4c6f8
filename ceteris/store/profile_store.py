"""Parquet-based profile store.

Persists profile collections so a renderer, or a later aggregation run, can
consume profiles computed earlier.

Organizes collections in a directory structure:
    storage_path/
        profile_set_name/
            profiles.parquet   one row per profile point
            index.parquet      one row per profile (grid, observation)
            metadata.json
"""

from dataclasses import dataclass, field
from datetime import datetime
import json
import logging
from pathlib import Path
from typing import Any

import polars as pl

from ceteris.profiles.composer import ProfileCollection
from ceteris.profiles.frames import frame_to_profiles, profile_index_frame, profiles_to_frame


logger = logging.getLogger(__name__)


@dataclass
class ParquetProfileStore:
    """Profile store using parquet files for persistence.

    Diagnostics are not restored on load; their messages are kept in the
    metadata file for inspection.
    """

    storage_path: Path
    _metadata_cache: dict[str, dict[str, Any]] = field(default_factory=dict, init=False)

    def __post_init__(self) -> None:
        self.storage_path = Path(self.storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)

    def save_profiles(
        self,
        collection: ProfileCollection,
        name: str,
        metadata: dict[str, Any] | None = None,
    ) -> Path:
        """Save a profile collection to parquet storage.

        Args:
            collection: Profiles to store
            name: Identifier for this profile set
            metadata: Optional extra metadata stored alongside

        Returns:
            Path to the saved parquet file
        """
        profile_dir = self.storage_path / name
        profile_dir.mkdir(parents=True, exist_ok=True)

        parquet_path = profile_dir / "profiles.parquet"
        frame = profiles_to_frame(collection.profiles, include_profile_ids=True)
        frame.write_parquet(parquet_path)
        profile_index_frame(collection.profiles).write_parquet(profile_dir / "index.parquet")

        meta = {
            "labels": collection.labels,
            "variables": collection.variables,
            "n_profiles": len(collection),
            "n_rows": len(frame),
            "cancelled": collection.cancelled,
            "diagnostics": [
                {"type": type(d).__name__, "message": str(d)} for d in collection.diagnostics
            ],
            "created_at": datetime.now().isoformat(),
            **(metadata or {}),
        }
        with open(profile_dir / "metadata.json", "w") as f:
            json.dump(meta, f, indent=2, default=str)
        self._metadata_cache[name] = meta

        logger.info("Saved %d profiles to %s", len(collection), parquet_path)
        return parquet_path

    def load_frame(self, name: str) -> pl.DataFrame:
        """Load the raw profile frame of a stored set.

        Raises:
            FileNotFoundError: If the profile set doesn't exist
        """
        parquet_path = self.storage_path / name / "profiles.parquet"

        if not parquet_path.exists():
            raise FileNotFoundError(f"Profile set '{name}' not found at {parquet_path}")

        return pl.read_parquet(parquet_path)

    def load_profiles(self, name: str) -> ProfileCollection:
        """Load a stored profile set.

        Profiles keep the grid they were probed on, including profiles
        whose points were all dropped. Categorical levels come back as strings.

        Raises:
            FileNotFoundError: If the profile set doesn't exist
        """
        frame = self.load_frame(name)
        index_path = self.storage_path / name / "index.parquet"
        index = pl.read_parquet(index_path) if index_path.exists() else None
        meta = self.get_metadata(name)
        return ProfileCollection(
            profiles=tuple(frame_to_profiles(frame, index)),
            cancelled=bool(meta.get("cancelled", False)),
        )

    def get_metadata(self, name: str) -> dict[str, Any]:
        """Get the metadata of a stored set (empty if none was written)."""
        if name in self._metadata_cache:
            return self._metadata_cache[name]

        metadata_path = self.storage_path / name / "metadata.json"
        if metadata_path.exists():
            with open(metadata_path) as f:
                metadata = json.load(f)
            self._metadata_cache[name] = metadata
            return metadata

        return {}

    def list_profile_sets(self) -> list[str]:
        """List all stored profile sets."""
        return sorted(
            d.name for d in self.storage_path.iterdir()
            if d.is_dir() and (d / "profiles.parquet").exists()
        )

    def delete_profile_set(self, name: str) -> bool:
        """Delete a stored profile set.

        Returns:
            True if deleted, False if it didn't exist
        """
        profile_dir = self.storage_path / name
        if not profile_dir.exists():
            return False

        for path in profile_dir.iterdir():
            path.unlink()
        profile_dir.rmdir()
        self._metadata_cache.pop(name, None)
        return True
