"""Unit tests for the S3 bundle store."""

import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from assessor.aws.s3 import MAX_BUNDLE_BYTES, S3BlobStore, parse_s3_location
from assessor.errors import BundleUnavailable


def test_parse_s3_location():
    assert parse_s3_location("s3://ctf-routines/reliability/v3.py") == (
        "ctf-routines",
        "reliability/v3.py",
    )


@pytest.mark.parametrize("location", ["s3://bucket-only", "https://x/y.py", "ctf-routines/v3.py"])
def test_parse_rejects_malformed_locations(location):
    with pytest.raises(BundleUnavailable):
        parse_s3_location(location)


def test_get_downloads_bundle():
    s3 = MagicMock()
    s3.get_object.return_value = {"ContentLength": 5, "Body": io.BytesIO(b"x = 1")}

    assert S3BlobStore(region="us-east-1", client=s3).get("s3://b/k.py") == b"x = 1"
    s3.get_object.assert_called_once_with(Bucket="b", Key="k.py")


def test_missing_object_is_unavailable():
    s3 = MagicMock()
    s3.get_object.side_effect = ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")

    with pytest.raises(BundleUnavailable, match="could not be fetched"):
        S3BlobStore(region="us-east-1", client=s3).get("s3://b/k.py")


def test_oversized_object_is_unavailable():
    s3 = MagicMock()
    s3.get_object.return_value = {"ContentLength": MAX_BUNDLE_BYTES + 1, "Body": io.BytesIO()}

    with pytest.raises(BundleUnavailable, match="limit"):
        S3BlobStore(region="us-east-1", client=s3).get("s3://b/k.py")
