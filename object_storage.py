"""
S3 access for survey video proofs.

A missing object is a normal answer (exists() -> False). Endpoint and
credential problems mean the bucket is unreachable and raise ConnectivityError;
any other refusal from S3 is a StorageError the caller can count per record.
"""

import os
import random
import string
import time

import boto3
from botocore.exceptions import (
    BotoCoreError, ClientError, EndpointConnectionError, NoCredentialsError,
)

from config import Config
from errors import ConfigurationError, ConnectivityError, SurveyOpsError
from logger_config import get_logger

logger = get_logger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class StorageError(SurveyOpsError):
    pass


def new_video_key(original_key, prefix="uploads"):
    """uploads/<epoch ms>_<6 random chars><original extension>"""
    ext = os.path.splitext(original_key or "")[1]
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"{prefix}/{int(time.time() * 1000)}_{suffix}{ext}"


def _error_code(error):
    return error.response.get("Error", {}).get("Code")


class S3Storage:
    def __init__(self, bucket, client):
        self.bucket = bucket
        self.client = client

    @classmethod
    def from_config(cls, config=Config):
        if not config.S3BUCKET_NAME:
            raise ConfigurationError("S3BUCKET_NAME environment variable is required")
        session = boto3.Session(
            aws_access_key_id=config.S3ACCESS_KEY,
            aws_secret_access_key=config.S3SECRET_KEY,
            region_name=config.S3_REGION,
        )
        return cls(config.S3BUCKET_NAME, session.client("s3"))

    def _call(self, operation, **params):
        try:
            return getattr(self.client, operation)(Bucket=self.bucket, **params)
        except (EndpointConnectionError, NoCredentialsError) as e:
            raise ConnectivityError(f"S3 unreachable during {operation}: {e}") from e
        except BotoCoreError as e:
            raise ConnectivityError(f"S3 {operation} failed: {e}") from e

    def exists(self, key):
        if not key:
            return False
        try:
            self._call("head_object", Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return False
            raise StorageError(f"head_object {key}: {e}") from e

    def get(self, key):
        try:
            response = self._call("get_object", Key=key)
        except ClientError as e:
            raise StorageError(f"get_object {key}: {e}") from e
        return response["Body"].read()

    def download(self, key, local_path):
        body = self.get(key)
        os.makedirs(os.path.dirname(os.path.abspath(local_path)), exist_ok=True)
        with open(local_path, "wb") as fh:
            fh.write(body)
        return local_path

    def put(self, key, body):
        try:
            self._call("put_object", Key=key, Body=body)
        except ClientError as e:
            raise StorageError(f"put_object {key}: {e}") from e
        logger.debug(f"Uploaded s3://{self.bucket}/{key}")
        return key

    def upload_file(self, local_path, key):
        with open(local_path, "rb") as fh:
            return self.put(key, fh.read())
