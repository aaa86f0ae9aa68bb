"""In-memory fakes for the engine's ports, shared by unit and integration tests."""

from datetime import UTC, datetime, timedelta

from pydantic import SecretStr

from assessor.errors import AccessDenied, BundleUnavailable, PersistenceFailure
from assessor.models.domain import (
    AssessmentDefinition,
    AssessmentResult,
    Credentials,
    Criterion,
    EnvironmentTarget,
)

BUNDLE_LOCATION = "mem://bundles/reliability.py"

BUNDLE_SOURCE = '''
import time

CALLS = []


def check_backup(subject_id, target, credentials):
    CALLS.append(subject_id)
    return {"implemented": True, "details": {"tables": ["Orders"], "stack": target.stack_name}}


def check_dlq(subject_id, target, credentials):
    return {"implemented": False, "details": {"functions_with_dlq": []}}


def check_slow(subject_id, target, credentials):
    time.sleep(3)
    return {"implemented": True}


def check_boom(subject_id, target, credentials):
    raise RuntimeError("template unreadable")


def check_malformed(subject_id, target, credentials):
    return {"implemented": "yes"}


ROUTINES = {
    "checkBackup": check_backup,
    "checkDLQ": check_dlq,
    "checkSlow": check_slow,
    "checkBoom": check_boom,
    "checkMalformed": check_malformed,
}
'''


class DictBlobStore:
    """BlobStore serving bundles from a dict."""

    def __init__(self, blobs: dict[str, bytes] | None = None):
        self.blobs = dict(blobs or {})
        self.requests: list[str] = []

    def get(self, location: str) -> bytes:
        self.requests.append(location)
        if location not in self.blobs:
            msg = f"No bundle at {location}"
            raise BundleUnavailable(msg)
        return self.blobs[location]


class InMemoryDefinitionStore:
    def __init__(self, *definitions: AssessmentDefinition):
        self.definitions = {d.definition_id: d for d in definitions}

    def get(self, definition_id: str) -> AssessmentDefinition | None:
        return self.definitions.get(definition_id)


class InMemoryResultsStore:
    def __init__(self, fail: bool = False):
        self.results: list[AssessmentResult] = []
        self.fail = fail

    def put(self, result: AssessmentResult) -> None:
        if self.fail:
            msg = "results table unavailable"
            raise PersistenceFailure(msg)
        self.results.append(result)


class FakeBroker:
    """IdentityProvider that denies access to listed subjects."""

    def __init__(self, denied: set[str] | None = None):
        self.denied = denied or set()
        self.targets: list[EnvironmentTarget] = []

    def acquire(self, target: EnvironmentTarget) -> Credentials:
        self.targets.append(target)
        if target.subject_id in self.denied:
            msg = f"Not authorized to assume {target.role_arn}"
            raise AccessDenied(msg)
        return make_credentials()


class RecordingMetrics:
    def __init__(self, fail: bool = False):
        self.emitted: list[tuple] = []
        self.fail = fail

    def emit(self, name, value, unit="Count", dimensions=None):
        if self.fail:
            msg = "metrics agent unreachable"
            raise ConnectionError(msg)
        self.emitted.append((name, value, unit, dimensions))

    def names(self) -> list[str]:
        return [e[0] for e in self.emitted]


def make_credentials() -> Credentials:
    return Credentials(
        access_key_id="ASIATESTKEY",
        secret_access_key=SecretStr("secret-key"),
        session_token=SecretStr("session-token"),
        expiration=datetime.now(UTC) + timedelta(minutes=15),
    )


def make_definition(*criteria: tuple, **overrides) -> AssessmentDefinition:
    """Build a definition from (criterion_id, points, routine) tuples."""
    values = {
        "definition_id": "reliability-pillar",
        "name": "Reliability Pillar",
        "criteria": tuple(
            Criterion(
                criterion_id=cid,
                name=cid.upper(),
                points=points,
                routine=routine,
                remediation=f"Fix {cid}",
            )
            for cid, points, routine in criteria
        ),
        "pass_threshold": 15,
        "bundle_location": BUNDLE_LOCATION,
    }
    values.update(overrides)
    return AssessmentDefinition(**values)


