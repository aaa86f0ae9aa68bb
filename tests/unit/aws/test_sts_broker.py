"""Unit tests for the STS credential broker."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from pydantic import SecretStr

from assessor.aws.sts import CredentialBroker
from assessor.errors import AccessDenied


@pytest.fixture
def sts():
    client = MagicMock()
    client.assume_role.return_value = {
        "Credentials": {
            "AccessKeyId": "ASIAEXAMPLE",
            "SecretAccessKey": "wJalrXUtnFEMI",
            "SessionToken": "FwoGZXIvYXdzE",
            "Expiration": datetime(2030, 1, 1, tzinfo=UTC),
        }
    }
    return client


@pytest.fixture
def broker(sts):
    return CredentialBroker(external_id=SecretStr("ext-7f3a9c"), client=sts)


def test_acquire_presents_external_id(broker, sts, target):
    """Test AssumeRole is called with the role, external id and lifetime."""
    credentials = broker.acquire(target)

    sts.assume_role.assert_called_once_with(
        RoleArn=target.role_arn,
        RoleSessionName="reliability-assessment-alice",
        ExternalId="ext-7f3a9c",
        DurationSeconds=900,
    )
    assert credentials.access_key_id == "ASIAEXAMPLE"
    assert credentials.session_token.get_secret_value() == "FwoGZXIvYXdzE"


def test_credentials_repr_hides_secrets(broker, target):
    credentials = broker.acquire(target)

    assert "wJalrXUtnFEMI" not in repr(credentials)
    assert "FwoGZXIvYXdzE" not in repr(credentials)


def test_access_denied_on_client_error(broker, sts, target):
    """Test an STS rejection becomes AccessDenied."""
    sts.assume_role.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "not authorized"}}, "AssumeRole"
    )

    with pytest.raises(AccessDenied, match="AccessDenied"):
        broker.acquire(target)


def test_access_denied_on_connection_error(broker, sts, target):
    sts.assume_role.side_effect = EndpointConnectionError(endpoint_url="https://sts.amazonaws.com")

    with pytest.raises(AccessDenied):
        broker.acquire(target)


def test_external_id_not_logged(broker, sts, target, caplog):
    sts.assume_role.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "bad external id"}}, "AssumeRole"
    )

    with caplog.at_level("DEBUG"), pytest.raises(AccessDenied):
        broker.acquire(target)

    assert "ext-7f3a9c" not in caplog.text


def test_session_name_is_sanitized_and_bounded(broker):
    name = broker.session_name("al ice/" + "x" * 80)

    assert " " not in name
    assert "/" not in name
    assert len(name) == 64
