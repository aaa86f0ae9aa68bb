"""Routine bundle loading.

A bundle is the Python source of a module whose routines implement the
criteria of one assessment definition. Bundles are fetched at run time, so
check logic can change without redeploying the engine.

Each load compiles the source into a brand new module object with a unique
name. The module is never registered in sys.modules, so concurrent runs
(different subjects, different definitions, or the same bundle twice) never
share loaded state.

Routines are resolved by name:
- from a module-level ``ROUTINES`` mapping when the bundle defines one
- otherwise from module-level callables

Every routine is called as ``routine(subject_id, environment_target, credentials)``.
"""

import logging
import types
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from importlib.resources import files
from typing import Any
from urllib.parse import urlparse
from uuid import uuid4

from assessor.errors import BundleInvalid, BundleUnavailable
from assessor.loader.protocols import BlobStore
from assessor.models.domain import Credentials, EnvironmentTarget

logger = logging.getLogger(__name__)

BUILTIN_SCHEME = "builtin"
BUILTIN_PACKAGE = "assessor.routines"
ROUTINES_ATTRIBUTE = "ROUTINES"


class Routine:
    """A named callable from a loaded bundle (implements CheckRoutine)."""

    def __init__(self, name: str, fn: Callable[..., Any], module_name: str):
        self.name = name
        self.module_name = module_name
        self._fn = fn

    def invoke(
        self, subject_id: str, target: EnvironmentTarget, credentials: Credentials
    ) -> Any:
        return self._fn(subject_id, target, credentials)

    def __repr__(self) -> str:
        return f"Routine({self.name!r}, module={self.module_name!r})"


@dataclass(frozen=True)
class LoadedBundle:
    """Routines loaded for one assessment run.

    Attributes:
        location: Where the bundle was fetched from
        module_name: Unique name of the module instantiated for this load
        routines: Required routine names that resolved to callables
        missing: Required routine names the bundle does not provide
    """

    location: str
    module_name: str
    routines: dict[str, Routine] = field(default_factory=dict)
    missing: frozenset[str] = frozenset()


class BuiltinBlobStore:
    """Serves bundles shipped inside the package (builtin://<name>).

    The source is read as bytes and compiled fresh per load like any remote
    bundle, so built-in routines get the same per-run isolation.
    """

    def get(self, location: str) -> bytes:
        name = urlparse(location).netloc
        if not name or not name.isidentifier():
            msg = f"Invalid builtin bundle location: {location}"
            raise BundleUnavailable(msg)

        resource = files(BUILTIN_PACKAGE).joinpath(f"{name}.py")
        if not resource.is_file():
            msg = f"Builtin bundle '{name}' does not exist"
            raise BundleUnavailable(msg)
        return resource.read_bytes()


class BlobStoreRouter:
    """Routes bundle locations to a store by URI scheme."""

    def __init__(self, stores: Mapping[str, BlobStore]):
        self.stores = dict(stores)

    def get(self, location: str) -> bytes:
        scheme = urlparse(location).scheme
        store = self.stores.get(scheme)
        if store is None:
            msg = f"Unsupported bundle location scheme '{scheme}' in {location}"
            raise BundleUnavailable(msg)
        return store.get(location)


class RoutineLoader:
    """Fetches bundles and instantiates them as isolated modules (RoutineProvider)."""

    def __init__(self, blob_store: BlobStore):
        self.blob_store = blob_store

    def load(self, bundle_location: str, required: set[str]) -> LoadedBundle:
        """Fetch and instantiate a bundle, resolving the required routines.

        Args:
            bundle_location: Bundle location (e.g., "s3://bucket/key.py", "builtin://reliability")
            required: Routine names referenced by the definition's criteria

        Returns:
            LoadedBundle exclusively owned by the caller

        Raises:
            BundleUnavailable: If the bundle cannot be fetched
            BundleInvalid: If the bundle cannot be decoded, compiled or executed
        """
        logger.info(f"Loading routine bundle: {bundle_location}")
        raw = self.blob_store.get(bundle_location)

        module = self._instantiate(raw, bundle_location)
        registry = self._registry(module, bundle_location)

        routines: dict[str, Routine] = {}
        missing: set[str] = set()
        for name in sorted(required):
            fn = registry.get(name) if registry is not None else None
            if fn is None:
                fn = getattr(module, name, None)
            if callable(fn):
                routines[name] = Routine(name, fn, module.__name__)
            else:
                missing.add(name)

        if missing:
            logger.warning(f"Bundle {bundle_location} is missing routines: {sorted(missing)}")
        logger.info(
            f"Loaded {len(routines)} routine(s) from {bundle_location} as {module.__name__}"
        )
        return LoadedBundle(
            location=bundle_location,
            module_name=module.__name__,
            routines=routines,
            missing=frozenset(missing),
        )

    def _instantiate(self, raw: bytes, location: str) -> types.ModuleType:
        try:
            source = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            msg = f"Bundle {location} is not valid UTF-8 source"
            raise BundleInvalid(msg) from e

        try:
            code = compile(source, filename=f"<bundle {location}>", mode="exec")
        except (SyntaxError, ValueError, RecursionError, MemoryError) as e:
            logger.error(f"Bundle compilation failed: {e}")
            msg = f"Bundle {location} failed to compile: {e}"
            raise BundleInvalid(msg) from e

        module_name = f"assessor_bundle_{uuid4().hex}"
        module = types.ModuleType(module_name)
        module.__file__ = location

        try:
            exec(code, module.__dict__)  # noqa: S102 - bundles are executed by design
        except (Exception, SystemExit, KeyboardInterrupt) as e:
            logger.error(f"Bundle initialisation failed: {e}")
            msg = f"Bundle {location} raised during import: {type(e).__name__}: {e}"
            raise BundleInvalid(msg) from e

        return module

    def _registry(self, module: types.ModuleType, location: str) -> Mapping | None:
        registry = getattr(module, ROUTINES_ATTRIBUTE, None)
        if registry is None:
            return None
        if not isinstance(registry, Mapping):
            msg = (
                f"Bundle {location} defines {ROUTINES_ATTRIBUTE} as "
                f"{type(registry).__name__}, expected a mapping"
            )
            raise BundleInvalid(msg)
        return registry
