"""
Object storage for archived CSV reports.

Reports are written under a configurable key prefix and handed back to the
caller as time-limited download links. Tencent COS is reached through its
S3-compatible API; an in-memory client backs tests and local runs.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Protocol

import boto3
from botocore.config import Config


class StorageClient(Protocol):
    def upload_bytes(
        self, path: str, payload: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        ...

    def get_bytes(self, path: str) -> bytes:
        ...

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        ...


@dataclass
class StoredObject:
    payload: bytes
    content_type: str


@dataclass
class InMemoryStorageClient:
    """Keeps uploaded reports in a dict; links point at a fake host."""

    base_url: str = "https://example.test/storage"
    objects: dict[str, StoredObject] = field(default_factory=dict)

    def upload_bytes(
        self, path: str, payload: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        self.objects[path] = StoredObject(bytes(payload), content_type)

    def get_bytes(self, path: str) -> bytes:
        if path not in self.objects:
            raise FileNotFoundError(path)
        return self.objects[path].payload

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{path}?op=get&expires={expires_in}"

    def reset(self) -> None:
        self.objects.clear()


@dataclass
class CosStorageClient:
    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    key_prefix: str = ""

    def __post_init__(self):
        # COS only accepts virtual-hosted style addressing.
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=Config(s3={"addressing_style": "virtual"}, signature_version="s3v4"),
        )

    def _key(self, path: str) -> str:
        return posixpath.join(self.key_prefix, path) if self.key_prefix else path

    def upload_bytes(
        self, path: str, payload: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        filename = posixpath.basename(path)
        self._client.put_object(
            Bucket=self.bucket,
            Key=self._key(path),
            Body=payload,
            ContentType=content_type,
            ContentDisposition=f'attachment; filename="{filename}"',
        )

    def get_bytes(self, path: str) -> bytes:
        response = self._client.get_object(Bucket=self.bucket, Key=self._key(path))
        return response["Body"].read()

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": self._key(path)},
            ExpiresIn=expires_in,
        )
