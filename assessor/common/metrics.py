"""CloudWatch metrics integration via AWS Embedded Metrics Format (EMF).

Provides utilities for sending assessment metrics to CloudWatch. The EMF
library handles formatting and transmission to the CloudWatch agent or the
function log stream.

Metrics are best-effort: a failing or unavailable sink is logged and never
propagates to the caller.

Configuration via environment variables:
- AWS_EMF_ENVIRONMENT: Set to "local" for local CloudWatch agent
- AWS_EMF_AGENT_ENDPOINT: CloudWatch agent endpoint (e.g., tcp://127.0.0.1:25888)
- AWS_EMF_NAMESPACE: CloudWatch namespace for metrics
- AWS_EMF_LOG_GROUP_NAME: Log group for EMF metrics
"""

from logging import getLogger
from typing import Protocol

from aws_embedded_metrics import metric_scope
from aws_embedded_metrics.storage_resolution import StorageResolution

logger = getLogger(__name__)


class MetricsSink(Protocol):
    """Port for best-effort metric emission."""

    def emit(
        self, name: str, value: float, unit: str = "Count", dimensions: dict | None = None
    ) -> None: ...


@metric_scope
def _put_metric(
    metric_name: str, value: float, unit: str, dimensions: dict | None, metrics
) -> None:
    """Internal function to put a metric with EMF decorator.

    Note: The aws_embedded_metrics library has known issues with async frameworks.
    See: https://github.com/awslabs/aws-embedded-metrics-python/issues/52
    """
    logger.debug("put metric: %s - %s - %s", metric_name, value, unit)
    if dimensions:
        metrics.put_dimensions({k: str(v) for k, v in dimensions.items()})
    metrics.put_metric(metric_name, value, unit, StorageResolution.STANDARD)


class EmfMetricsSink:
    """MetricsSink backed by CloudWatch EMF."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def emit(
        self, name: str, value: float, unit: str = "Count", dimensions: dict | None = None
    ) -> None:
        if not self.enabled:
            return
        try:
            _put_metric(name, value, unit, dimensions)
        except Exception as e:
            logger.error("Error calling put_metric: %s", e)
