"""
File upload path.
"""

from typing import List, Optional

from shared.errors import ValidationError
from shared.logging import get_logger

from ..kafka.producer import EventPublisher
from ..models import UploadedFile
from ..storage.blob_store import BlobStore


class UploadService:
    """Stores uploads in the blob store and announces them on the bus."""

    def __init__(self, blob_store: BlobStore, publisher: EventPublisher, max_bytes: int = 10 * 1024 * 1024):
        self.blob_store = blob_store
        self.publisher = publisher
        self.max_bytes = max_bytes
        self.logger = get_logger("api.uploads")

    async def upload(self, filename: str, data: bytes, content_type: Optional[str] = None) -> UploadedFile:
        if not filename or not data:
            raise ValidationError("No file uploaded")
        if len(data) > self.max_bytes:
            raise ValidationError(
                f"File size exceeds {self.max_bytes // (1024 * 1024)}MB limit",
                {"size": len(data), "limit": self.max_bytes},
            )

        url = await self.blob_store.put(filename, data, content_type)
        await self.publisher.publish_file_uploaded(filename, url)

        return UploadedFile(file_name=filename, file_size=len(data), content_type=content_type, url=url)

    async def list_files(self) -> List[str]:
        return await self.blob_store.list_files()
