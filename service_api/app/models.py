"""
Data models for the API service.

JSON field names are camelCase on the wire, in the cache and on the bus.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EventSource(str, Enum):
    """Originating operation of a feed event."""
    SQL = "sql"
    BUCKET = "bucket"


class LatestSource(str, Enum):
    """Where a latest-users answer came from."""
    CACHE = "cache"
    STORE = "store"


class User(CamelModel):
    """A row of the users table."""
    id: int
    name: str
    email: str
    created_at: datetime


class Event(CamelModel):
    """A notification held by the event feed."""
    source: EventSource
    message: str
    timestamp: datetime


class BusMessage(CamelModel):
    """Event-shaped payload carried by the message bus.

    ``source`` stays a plain string so that unknown tags reach the feed,
    which rejects them, instead of being redelivered forever.
    """
    source: str
    message: str
    timestamp: Optional[datetime] = None


class LatestUsers(BaseModel):
    """Result of a latest-users lookup."""
    users: List[User]
    source: LatestSource


class CreateUserRequest(BaseModel):
    """Request model for user creation."""
    name: str = Field("", description="Display name")
    email: str = Field("", description="Unique email address")


class UserResponse(BaseModel):
    success: bool = True
    message: str
    data: User


class UserListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[User]


class LatestUsersResponse(BaseModel):
    success: bool = True
    source: LatestSource
    count: int
    data: List[User]


class EventListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[Event]


class UploadedFile(CamelModel):
    file_name: str
    file_size: int
    content_type: Optional[str] = None
    url: str


class UploadResponse(BaseModel):
    success: bool = True
    message: str
    data: UploadedFile


class FileListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[str]
