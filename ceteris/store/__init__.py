"""Profile store module for persisting and retrieving profiles."""

from .profile_store import ParquetProfileStore

__all__ = ["ParquetProfileStore"]
