"""Health check endpoint for ECS monitoring.

The health server runs in a separate process from the SQS consumer so the
endpoint stays responsive while routines are running.
"""

from fastapi import FastAPI

SERVICE_NAME = "reliability-assessment-engine"

app = FastAPI(title=SERVICE_NAME)


@app.get("/health")
def health():
    """Return health status for ECS health checks."""
    return {"status": "ok", "service": SERVICE_NAME}
