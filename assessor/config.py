"""Configuration for the Reliability Assessment Engine.

This module defines the runtime settings for the assessment core and the
AWS adapters it talks to.

Includes configuration for:
- Routine execution and credential brokering (EngineConfig with ENGINE_ prefix)
- AWS resources (AWSConfig with AWS_ prefix)
- Trigger dispatch (DispatchConfig with DISPATCH_ prefix)
- SQS worker polling (WorkerConfig with SQS_ prefix)
- Optional PostgreSQL results store (DatabaseSettings with DB_ prefix)

Configuration can be overridden via:
1. Environment variables (e.g., ENGINE_ROUTINE_TIMEOUT_SECONDS=10, DISPATCH_MODE=lambda)
2. .env file in the current directory
3. Default values in code
"""

from enum import Enum

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseSettings):
    """Configuration for running assessments.

    Can be overridden via environment variables with ENGINE_ prefix:
    - ENGINE_ROUTINE_TIMEOUT_SECONDS
    - ENGINE_MAX_PARALLEL_ROUTINES
    - ENGINE_CREDENTIAL_DURATION_SECONDS
    - ENGINE_EXTERNAL_ID
    - ENGINE_ROLE_ARN_TEMPLATE / ENGINE_ROLE_NAME / ENGINE_TARGET_ACCOUNT_ID
    - ENGINE_ENVIRONMENT_TEMPLATE

    Attributes:
        routine_timeout_seconds: Default wall-clock deadline per routine
        max_parallel_routines: Criteria evaluated concurrently within one run
        credential_duration_seconds: Lifetime requested for assumed-role credentials
        role_session_prefix: Prefix for the STS role session name
        external_id: Confirmation secret shared with the subject's access role
        role_arn_template: Template for the role assumed in a subject's environment
        role_name: Name of the pre-provisioned access role
        target_account_id: Account holding subject environments
        environment_template: Naming convention mapping a subject to its stack
        metrics_enabled: Emit CloudWatch EMF metrics for completed runs
    """

    model_config = SettingsConfigDict(
        env_prefix="ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    routine_timeout_seconds: float = Field(
        default=30.0, gt=0, le=900, description="Default routine deadline (seconds)"
    )
    max_parallel_routines: int = Field(
        default=8, ge=1, le=64, description="Criteria evaluated concurrently per assessment"
    )
    credential_duration_seconds: int = Field(
        default=900, ge=900, le=3600, description="Assumed-role credential lifetime (seconds)"
    )
    role_session_prefix: str = Field(
        default="reliability-assessment", description="STS role session name prefix"
    )
    external_id: SecretStr = Field(
        default=SecretStr("ctf-assessment-engine"),
        description="External id presented when assuming the access role",
    )
    role_arn_template: str = Field(
        default="arn:aws:iam::{account_id}:role/{role_name}",
        description="Role ARN template, formatted with account_id, role_name and subject_id",
    )
    role_name: str = Field(
        default="ctf-assessment-engine-access", description="Pre-provisioned access role name"
    )
    target_account_id: str = Field(
        default="000000000000", description="Account holding subject environments"
    )
    environment_template: str = Field(
        default="ctf-unreliable-app-{subject_id}-dev",
        description="Stack naming convention, formatted with subject_id",
    )
    metrics_enabled: bool = Field(default=True, description="Emit EMF metrics")


class AWSConfig(BaseSettings):
    """AWS resource configuration for the engine's adapters."""

    model_config = SettingsConfigDict(
        env_prefix="AWS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    region: str = Field(default="us-east-1")

    # DynamoDB tables
    definitions_table: str = Field(default="ctf-assessment-definitions")
    results_table: str = Field(default="ctf-assessment-results")
    subjects_table: str = Field(default="ctf-challenges")
    subjects_status_index: str = Field(default="StatusIndex")

    # Optional endpoint URL for LocalStack (local development)
    endpoint_url: str | None = Field(default=None, description="LocalStack endpoint override")

    @field_validator("definitions_table", "results_table", "subjects_table")
    @classmethod
    def must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            msg = "AWS resource identifiers cannot be empty"
            raise ValueError(msg)
        return v

    def client_kwargs(self) -> dict:
        """Keyword arguments for boto3.client()."""
        client_kwargs: dict = {"region_name": self.region}
        if self.endpoint_url:
            client_kwargs["endpoint_url"] = self.endpoint_url
        return client_kwargs


class DispatchMode(Enum):
    """How the dispatcher hands work items to the assessment worker."""

    SQS = "sqs"
    LAMBDA = "lambda"


class DispatchConfig(BaseSettings):
    """Trigger dispatcher configuration.

    Can be overridden via environment variables with DISPATCH_ prefix:
    - DISPATCH_MODE: sqs (default) or lambda
    - DISPATCH_QUEUE_URL: Worker queue for SQS mode
    - DISPATCH_ASSESSMENT_FUNCTION: Function name for lambda mode
    - DISPATCH_DEFAULT_DEFINITION_ID
    - DISPATCH_SCHEDULED_DEFINITION_IDS: JSON list, e.g. '["reliability-pillar"]'
    - DISPATCH_RESOURCE_PREFIX
    """

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    mode: DispatchMode = Field(default=DispatchMode.SQS)
    queue_url: str = Field(default="", description="Worker queue URL (sqs mode)")
    assessment_function: str = Field(
        default="ctf-assessment-engine", description="Assessment function name (lambda mode)"
    )
    default_definition_id: str = Field(
        default="reliability-pillar",
        description="Definition used for resource-change and manual events without one",
    )
    scheduled_definition_ids: list[str] = Field(
        default_factory=lambda: ["reliability-pillar"],
        description="Definitions enumerated by scheduled events",
    )
    resource_prefix: str = Field(
        default="ctf-unreliable-app-", description="Stack name prefix identifying subjects"
    )
    max_workers: int = Field(default=16, ge=1, le=128, description="Concurrent enqueue calls")
    stack_fallback_enabled: bool = Field(
        default=True,
        description="List CloudFormation stacks when the active-subjects query fails",
    )


class WorkerConfig(BaseSettings):
    """Worker polling and processing configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SQS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    queue_url: str = Field(default="", description="Queue polled for assessment jobs")
    wait_time_seconds: int = Field(default=20, ge=1, le=20)
    visibility_timeout: int = Field(default=300, ge=30, le=43200)
    max_messages: int = Field(default=1, ge=1, le=10)


class ResultsBackend(Enum):
    """Where completed assessment results are persisted."""

    DYNAMODB = "dynamodb"
    POSTGRES = "postgres"


class ResultsConfig(BaseSettings):
    """Results store selection (RESULTS_BACKEND=dynamodb|postgres)."""

    model_config = SettingsConfigDict(
        env_prefix="RESULTS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    backend: ResultsBackend = Field(default=ResultsBackend.DYNAMODB)


class DatabaseSettings(BaseSettings):
    """Database connection configuration for the PostgreSQL results store.

    Supports two modes:
    1. Local development: Uses static password from DB_LOCAL_PASSWORD
    2. Cloud (IAM): Uses IAM authentication with short-lived RDS tokens

    Environment variables:
    - DB_HOST: Database host (default: localhost)
    - DB_PORT: Database port (default: 5432)
    - DB_DATABASE: Database name (default: reliability_assessment)
    - DB_USER: Database user (default: postgres)
    - DB_IAM_AUTHENTICATION: Enable IAM auth (default: false)
    - DB_LOCAL_PASSWORD: Static password for local dev (default: empty)
    - DB_SSL_MODE: SSL mode - require, verify-ca, verify-full (default: require)
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="reliability_assessment", description="Database name")
    user: str = Field(default="postgres", description="Database user")

    iam_authentication: bool = Field(
        default=False,
        description="Use IAM authentication for RDS",
    )
    local_password: SecretStr = Field(
        default=SecretStr(""),
        description="Static password for local development",
    )
    ssl_mode: str = Field(
        default="require",
        description="SSL mode for database connections (require, verify-ca, verify-full)",
    )

    @property
    def connection_url(self) -> str:
        """Build connection URL from individual parameters.

        Password is not included - it's injected by the engine factory
        (either static password or IAM token).
        """
        return f"postgresql://{self.user}@{self.host}:{self.port}/{self.database}"


class HealthConfig(BaseSettings):
    """Health server configuration (HEALTH_PORT, default 8085)."""

    model_config = SettingsConfigDict(
        env_prefix="HEALTH_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    port: int = Field(default=8085, ge=1, le=65535, description="Port for the health server")
