"""
Object storage for uploaded files (S3 API; GCS interoperability or MinIO).
"""

import asyncio
import functools
from datetime import datetime, timezone
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from shared.errors import ExternalServiceError
from shared.logging import get_logger


class BlobStore:
    """Uploads files to one bucket and lists its objects."""

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        public_base_url: str = "https://storage.googleapis.com",
    ):
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.region = region
        self.public_base_url = public_base_url.rstrip("/")
        self.logger = get_logger("api.storage.blob")
        self.client = None

    def start(self):
        """Create the S3 client. Credentials come from the environment."""
        self.client = boto3.client("s3", endpoint_url=self.endpoint_url, region_name=self.region)
        self.logger.info("Storage client initialized", bucket=self.bucket, endpoint=self.endpoint_url)

    async def _run(self, func, *args, **kwargs):
        if self.client is None:
            raise ExternalServiceError("storage", "Storage client not started")
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
        except (BotoCoreError, ClientError) as e:
            raise ExternalServiceError("storage", str(e))

    async def put(self, filename: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Store ``data`` under a timestamped name and return its public URL."""
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        object_name = f"{timestamp}_{filename}"

        extra = {"ContentType": content_type} if content_type else {}
        self.logger.info("Uploading file", object_name=object_name, size=len(data))
        await self._run(self.client.put_object, Bucket=self.bucket, Key=object_name, Body=data, **extra)

        url = f"{self.public_base_url}/{self.bucket}/{object_name}"
        self.logger.info("File uploaded", url=url)
        return url

    async def list_files(self) -> List[str]:
        """Names of every object in the bucket."""
        def _list() -> List[str]:
            names: List[str] = []
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket):
                names.extend(obj["Key"] for obj in page.get("Contents", []))
            return names

        names = await self._run(_list)
        self.logger.info("Listed files", count=len(names))
        return names

    async def health_check(self) -> bool:
        """Check the bucket is reachable."""
        if self.client is None:
            return False
        try:
            await self._run(self.client.head_bucket, Bucket=self.bucket)
            return True
        except ExternalServiceError:
            return False
