"""Logging utilities for ECS-compatible structured logging.

Provides filters that enhance log records with assessment-specific fields:
- Correlation id tying a dispatch to the run it started
- Subject id of the assessment in progress
- Endpoint filtering to reduce noise from health checks
"""

import json
import logging
import logging.config
import os
from pathlib import Path

from assessor.common.tracing import ctx_correlation_id, ctx_subject_id

logger = logging.getLogger(__name__)


def is_running_in_ecs() -> bool:
    """Detect if running in AWS ECS.

    ECS automatically injects metadata URI environment variables into containers.
    These are always present in ECS and never present locally.
    """
    return bool(
        os.environ.get("ECS_CONTAINER_METADATA_URI_V4")
        or os.environ.get("ECS_CONTAINER_METADATA_URI")
    )


def configure_logging() -> None:
    """Configure logging based on environment.

    In ECS: Uses logging.json with structured JSON-style output and
    correlation id injection.

    Locally: Uses logging-dev.json with simple text format for readability.
    """
    config_file = "logging.json" if is_running_in_ecs() else "logging-dev.json"
    config_path = Path(__file__).parent.parent.parent / config_file

    if config_path.exists():
        with open(config_path) as f:
            logging.config.dictConfig(json.load(f))
    else:
        # Fallback to basic config if file not found
        logging.basicConfig(
            level=logging.INFO,
            format=(
                '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
                '"logger": "%(name)s", "message": "%(message)s"}'
            ),
            datefmt="%Y-%m-%dT%H:%M:%S",
        )


class CorrelationIdFilter(logging.Filter):
    """Adds correlation and subject ids to log records.

    Enhances log records with:
    - correlation_id: dispatch/run correlation id ("-" outside a run)
    - subject_id: subject under assessment ("-" outside a run)
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = ctx_correlation_id.get() or "-"
        record.subject_id = ctx_subject_id.get() or "-"
        return True


class EndpointFilter(logging.Filter):
    """Filters out log messages for specific endpoints.

    Useful for suppressing verbose health check logs in production.

    Args:
        path: The endpoint path to filter (e.g., "/health")
    """

    def __init__(self, path: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._path = path

    def filter(self, record: logging.LogRecord) -> bool:
        return record.getMessage().find(self._path) == -1
