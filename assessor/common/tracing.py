"""Correlation id propagation.

Every dispatch record carries a correlation id which travels with the job to
the assessment run it starts. This module keeps the id for the current run in
a context variable so loggers can attach it to every record.
"""

import contextvars
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import uuid4

ctx_correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)
ctx_subject_id: contextvars.ContextVar[str] = contextvars.ContextVar("subject_id", default="")


def new_correlation_id() -> str:
    return str(uuid4())


@contextmanager
def correlation_scope(correlation_id: str, subject_id: str = "") -> Iterator[str]:
    """Bind a correlation id (and subject) for the duration of a block."""
    cid_token = ctx_correlation_id.set(correlation_id)
    subject_token = ctx_subject_id.set(subject_id)
    try:
        yield correlation_id
    finally:
        ctx_subject_id.reset(subject_token)
        ctx_correlation_id.reset(cid_token)
