"""Credential brokering via STS AssumeRole.

Each subject environment carries a pre-provisioned access role whose trust
policy requires an external id known only to the engine and the role. The
broker presents it on every AssumeRole call so a third party cannot get the
engine to assume the role just by naming the target (confused deputy).
"""

import logging
import re

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import SecretStr

from assessor.errors import AccessDenied
from assessor.models.domain import Credentials, EnvironmentTarget

logger = logging.getLogger(__name__)

# STS limits: RoleSessionName is 2-64 chars of [\w+=,.@-]
_SESSION_NAME_INVALID = re.compile(r"[^\w+=,.@-]")
MAX_SESSION_NAME = 64


class CredentialBroker:
    """Exchanges an environment target for short-lived credentials."""

    def __init__(
        self,
        external_id: SecretStr,
        duration_seconds: int = 900,
        session_prefix: str = "reliability-assessment",
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        client=None,
    ):
        self._external_id = external_id
        self.duration_seconds = duration_seconds
        self.session_prefix = session_prefix
        if client is None:
            client_kwargs: dict = {"region_name": region}
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("sts", **client_kwargs)
        self.sts = client

    def session_name(self, subject_id: str) -> str:
        name = _SESSION_NAME_INVALID.sub("-", f"{self.session_prefix}-{subject_id}")
        return name[:MAX_SESSION_NAME]

    def acquire(self, target: EnvironmentTarget) -> Credentials:
        """Assume the target's access role.

        Args:
            target: Environment target holding the role ARN

        Returns:
            Credentials valid for duration_seconds

        Raises:
            AccessDenied: If the role is missing, misconfigured, or the trust
                policy rejects the external id
        """
        logger.info(f"Assuming access role {target.role_arn} for subject {target.subject_id}")
        try:
            response = self.sts.assume_role(
                RoleArn=target.role_arn,
                RoleSessionName=self.session_name(target.subject_id),
                ExternalId=self._external_id.get_secret_value(),
                DurationSeconds=self.duration_seconds,
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(f"AssumeRole rejected for {target.role_arn}: {code}")
            msg = f"Cannot assume {target.role_arn} for subject {target.subject_id}: {code}"
            raise AccessDenied(msg) from e
        except BotoCoreError as e:
            logger.error(f"AssumeRole failed for {target.role_arn}: {e}")
            msg = f"Cannot assume {target.role_arn} for subject {target.subject_id}: {e}"
            raise AccessDenied(msg) from e

        raw = response["Credentials"]
        credentials = Credentials(
            access_key_id=raw["AccessKeyId"],
            secret_access_key=raw["SecretAccessKey"],
            session_token=raw["SessionToken"],
            expiration=raw["Expiration"],
        )
        logger.info(f"Credentials issued for {target.subject_id}, expire {credentials.expiration}")
        return credentials
