"""Unit tests for the routine loader."""

import sys

import pytest

from assessor.errors import BundleInvalid, BundleUnavailable
from assessor.loader import BlobStoreRouter, BuiltinBlobStore, RoutineLoader
from tests.utils import BUNDLE_LOCATION, DictBlobStore


def _loader(source: str | bytes, location: str = "mem://b.py") -> RoutineLoader:
    raw = source.encode("utf-8") if isinstance(source, str) else source
    return RoutineLoader(DictBlobStore({location: raw}))


def test_load_resolves_required_routines(blob_store):
    """Test only required routines are exposed and missing ones are reported."""
    bundle = RoutineLoader(blob_store).load(BUNDLE_LOCATION, {"checkBackup", "checkNope"})

    assert set(bundle.routines) == {"checkBackup"}
    assert bundle.missing == frozenset({"checkNope"})
    assert bundle.location == BUNDLE_LOCATION


def test_each_load_gets_an_isolated_module(blob_store, target, credentials):
    """Test two loads of the same bundle share no module state."""
    loader = RoutineLoader(blob_store)
    first = loader.load(BUNDLE_LOCATION, {"checkBackup"})
    second = loader.load(BUNDLE_LOCATION, {"checkBackup"})

    first.routines["checkBackup"].invoke("alice", target, credentials)

    assert first.module_name != second.module_name
    assert first.module_name not in sys.modules
    assert second.module_name not in sys.modules
    calls_first = first.routines["checkBackup"]._fn.__globals__["CALLS"]
    calls_second = second.routines["checkBackup"]._fn.__globals__["CALLS"]
    assert calls_first == ["alice"]
    assert calls_second == []


def test_module_level_callables_without_registry():
    """Test routines are found as module attributes when ROUTINES is absent."""
    source = "def checkAlarms(subject_id, target, credentials):\n    return {'implemented': True}\n"

    bundle = _loader(source).load("mem://b.py", {"checkAlarms"})

    assert "checkAlarms" in bundle.routines


def test_registry_takes_precedence_over_attributes():
    """Test the ROUTINES mapping wins over a same-named module attribute."""
    source = (
        "def checkAlarms(s, t, c):\n    return {'implemented': False}\n"
        "def _real(s, t, c):\n    return {'implemented': True}\n"
        "ROUTINES = {'checkAlarms': _real}\n"
    )

    bundle = _loader(source).load("mem://b.py", {"checkAlarms"})

    assert bundle.routines["checkAlarms"].invoke("a", None, None) == {"implemented": True}


def test_non_callable_is_missing():
    """Test a non-callable attribute is reported as missing."""
    bundle = _loader("checkAlarms = 42\n").load("mem://b.py", {"checkAlarms"})

    assert bundle.missing == frozenset({"checkAlarms"})


def test_unavailable_bundle():
    """Test fetch failures surface as BundleUnavailable."""
    with pytest.raises(BundleUnavailable):
        RoutineLoader(DictBlobStore()).load("mem://missing.py", {"checkBackup"})


@pytest.mark.parametrize(
    "source",
    [
        b"\xff\xfe\x00not utf-8",
        "def broken(:\n",
        "raise RuntimeError('import-time failure')\n",
        "ROUTINES = ['checkBackup']\n",
    ],
    ids=["undecodable", "syntax-error", "raises-on-import", "registry-not-mapping"],
)
def test_invalid_bundles(source):
    """Test each invalid bundle shape raises BundleInvalid."""
    with pytest.raises(BundleInvalid):
        _loader(source).load("mem://b.py", {"checkBackup"})


@pytest.mark.parametrize(
    "source",
    ["import sys\nsys.exit(3)\n", "raise KeyboardInterrupt\n"],
    ids=["sys-exit", "keyboard-interrupt"],
)
def test_bundle_exiting_on_import_is_invalid(source):
    """Test an import-time exit cannot escape the loader and stop the worker."""
    with pytest.raises(BundleInvalid, match="raised during import"):
        _loader(source).load("mem://b.py", {"checkBackup"})


def test_bundle_exhausting_compiler_is_invalid(mocker):
    """Test a bundle too deeply nested to compile raises BundleInvalid."""
    mocker.patch("builtins.compile", side_effect=RecursionError("maximum recursion depth"))

    with pytest.raises(BundleInvalid, match="failed to compile"):
        _loader("ROUTINES = {}\n").load("mem://b.py", {"checkBackup"})


def test_builtin_reliability_bundle_loads():
    """Test the shipped reliability bundle exposes every routine."""
    required = {
        "checkBackup",
        "checkMultiRegion",
        "checkDLQ",
        "checkAlarms",
        "checkHealthCheck",
        "checkErrorHandling",
        "checkRetryLogic",
        "checkCircuitBreaker",
        "checkIdempotency",
        "checkAsyncProcessing",
    }
    loader = RoutineLoader(BlobStoreRouter({"builtin": BuiltinBlobStore()}))

    bundle = loader.load("builtin://reliability", required)

    assert set(bundle.routines) == required
    assert not bundle.missing


@pytest.mark.parametrize("location", ["builtin://nope", "builtin://../etc", "builtin://"])
def test_builtin_unknown_bundle(location):
    with pytest.raises(BundleUnavailable):
        BuiltinBlobStore().get(location)


def test_router_rejects_unknown_scheme():
    with pytest.raises(BundleUnavailable, match="Unsupported bundle location scheme"):
        BlobStoreRouter({"builtin": BuiltinBlobStore()}).get("ftp://host/bundle.py")
