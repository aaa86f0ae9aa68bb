"""S3 operations for routine bundle download."""

import logging
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from assessor.errors import BundleUnavailable

logger = logging.getLogger(__name__)

# Bundles are source files; anything larger is almost certainly the wrong object
MAX_BUNDLE_BYTES = 5 * 1024 * 1024


def parse_s3_location(location: str) -> tuple[str, str]:
    """Split an s3://bucket/key location into (bucket, key).

    Raises:
        BundleUnavailable: If the location is not a well-formed S3 URI
    """
    parsed = urlparse(location)
    bucket = parsed.netloc
    key = parsed.path.lstrip("/")
    if parsed.scheme != "s3" or not bucket or not key:
        msg = f"Invalid S3 bundle location: {location}. Expected s3://bucket/key"
        raise BundleUnavailable(msg)
    return bucket, key


class S3BlobStore:
    """Reads routine bundles from S3."""

    def __init__(self, region: str, endpoint_url: str | None = None, client=None):
        self.region = region
        if client is None:
            client_kwargs: dict = {"region_name": region}
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **client_kwargs)
        self.s3 = client

    def get(self, location: str) -> bytes:
        """Download bundle content.

        Args:
            location: S3 URI of the bundle (e.g., "s3://ctf-routines/reliability/v3.py")

        Returns:
            Raw bundle bytes

        Raises:
            BundleUnavailable: If the object cannot be fetched or is too large
        """
        bucket, key = parse_s3_location(location)
        logger.info(f"Downloading routine bundle from s3://{bucket}/{key}")

        try:
            response = self.s3.get_object(Bucket=bucket, Key=key)
            size = response.get("ContentLength") or 0
            if size > MAX_BUNDLE_BYTES:
                msg = f"Bundle {location} is {size} bytes, limit is {MAX_BUNDLE_BYTES}"
                raise BundleUnavailable(msg)
            body = response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to download from S3: {e}")
            msg = f"Bundle {location} could not be fetched: {e}"
            raise BundleUnavailable(msg) from e

        logger.info(f"Downloaded routine bundle: {location} ({len(body)} bytes)")
        return body
