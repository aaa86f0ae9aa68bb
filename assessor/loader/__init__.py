"""Routine bundle loading.

- RoutineLoader: fetch a bundle and instantiate it as an isolated module
- BlobStoreRouter / BuiltinBlobStore: resolve bundle locations by scheme
"""

from assessor.loader.loader import (
    BlobStoreRouter,
    BuiltinBlobStore,
    LoadedBundle,
    Routine,
    RoutineLoader,
)

__all__ = [
    "BlobStoreRouter",
    "BuiltinBlobStore",
    "LoadedBundle",
    "Routine",
    "RoutineLoader",
]
