"""Protocols for routine bundles and the stores they come from."""

from typing import Any, Protocol

from assessor.models.domain import Credentials, EnvironmentTarget


class BlobStore(Protocol):
    """Fetches raw bundle content by location.

    Implementations raise BundleUnavailable when the content cannot be fetched.
    """

    def get(self, location: str) -> bytes: ...


class CheckRoutine(Protocol):
    """A loaded routine implementing one criterion's check.

    Returns a CheckOutcome-shaped value; the sandbox validates the shape.
    """

    name: str

    def invoke(
        self, subject_id: str, target: EnvironmentTarget, credentials: Credentials
    ) -> Any: ...


class RoutineProvider(Protocol):
    """Turns a bundle location into named routines for one assessment run."""

    def load(self, bundle_location: str, required: set[str]) -> "LoadedBundleLike": ...


class LoadedBundleLike(Protocol):
    routines: dict[str, CheckRoutine]
    missing: frozenset[str]
