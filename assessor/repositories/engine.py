"""SQLAlchemy engine factory for the PostgreSQL results store.

Supports both local development (static password) and cloud deployment
(IAM authentication with short-lived RDS tokens).
"""

import logging

import boto3
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool, QueuePool

from assessor.config import AWSConfig, DatabaseSettings

logger = logging.getLogger(__name__)

# RDS tokens live 15 minutes; pooled IAM connections are replaced after 10
IAM_TOKEN_POOL_RECYCLE_SECONDS = 600


def _rds_auth_token(settings: DatabaseSettings, region: str) -> str:
    rds = boto3.client("rds", region_name=region)
    return rds.generate_db_auth_token(
        DBHostname=settings.host,
        Port=settings.port,
        DBUsername=settings.user,
        Region=region,
    )


def _connection_password(settings: DatabaseSettings, region: str) -> str:
    if settings.iam_authentication:
        logger.debug(f"Requesting RDS auth token for {settings.user}@{settings.host}")
        return _rds_auth_token(settings, region)
    return settings.local_password.get_secret_value()


def create_db_engine(
    settings: DatabaseSettings | None = None,
    aws_config: AWSConfig | None = None,
    *,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False,
    use_null_pool: bool = False,
) -> Engine:
    """Create the results-store engine.

    The password never appears in the URL. A do_connect hook supplies it per
    connection: the local password, or a fresh RDS token when IAM
    authentication is on. IAM connections also use the configured sslmode
    and, when pooled, are recycled before their token expires.

    Args:
        settings: Database settings (default: from DB_* environment)
        aws_config: Supplies the region for RDS tokens (default: from AWS_* environment)
        pool_size: Connections kept in the pool
        max_overflow: Extra connections allowed beyond pool_size
        echo: Log emitted SQL
        use_null_pool: Open a new connection per checkout (startup probes, scripts)
    """
    settings = settings or DatabaseSettings()
    region = (aws_config or AWSConfig()).region

    engine_kwargs: dict = {"echo": echo, "connect_args": {}}
    if use_null_pool:
        engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs.update(
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
        )

    if settings.iam_authentication:
        engine_kwargs["connect_args"]["sslmode"] = settings.ssl_mode
        if not use_null_pool:
            engine_kwargs["pool_recycle"] = IAM_TOKEN_POOL_RECYCLE_SECONDS

    engine = create_engine(settings.connection_url, **engine_kwargs)

    @event.listens_for(engine, "do_connect")
    def provide_password(_dialect, _conn_rec, _cargs, cparams):
        password = _connection_password(settings, region)
        if password:
            cparams["password"] = password

    auth = "IAM" if settings.iam_authentication else "local"
    logger.info(f"Created results engine for {settings.host}/{settings.database} ({auth} auth)")
    return engine
