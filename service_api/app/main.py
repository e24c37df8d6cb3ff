"""
API service for the cloud sample: users, uploads and the event feed.
"""

from typing import Dict, Optional

from fastapi import File, UploadFile

from shared.base_service import BaseService
from shared.errors import ServiceException, ValidationError
from shared.secrets_manager import SecretsManager

from .cache.latest_users import LatestUsersCache
from .cache.redis_store import RedisStore
from .events.feed import EventFeed
from .kafka.consumer import EventSubscriber
from .kafka.producer import EventPublisher
from .models import (
    CreateUserRequest, EventListResponse, FileListResponse, LatestUsersResponse,
    UploadResponse, UserListResponse, UserResponse,
)
from .persistence.postgres import UserStore
from .storage.blob_store import BlobStore
from .uploads.service import UploadService
from .users.service import UserService


class ApiService(BaseService):
    """API service implementation."""

    def __init__(self):
        super().__init__("api", 8080)
        cfg = self.config

        dsn = cfg.postgres_dsn or SecretsManager().build_postgres_dsn()

        self.redis_store = RedisStore(cfg.redis_url, cfg.redis_timeout_seconds)
        self.user_store = UserStore(dsn)
        self.latest_cache = LatestUsersCache(
            self.redis_store,
            self.user_store,
            count=cfg.latest_users_count,
            ttl_seconds=cfg.latest_users_ttl_seconds,
            metrics=self.metrics,
        )
        self.event_feed = EventFeed(self.redis_store, max_events=cfg.event_feed_size, metrics=self.metrics)
        self.publisher = EventPublisher(
            cfg.kafka_bootstrap, cfg.kafka_topic, cfg.bus_timeout_seconds, metrics=self.metrics
        )
        self.subscriber = EventSubscriber(
            cfg.kafka_bootstrap,
            cfg.kafka_group_id,
            cfg.kafka_topic,
            self.event_feed,
            poll_timeout_ms=cfg.subscriber_poll_timeout_ms,
            handler_timeout_seconds=cfg.bus_handler_timeout_seconds,
            shutdown_grace_seconds=cfg.subscriber_shutdown_grace_seconds,
            metrics=self.metrics,
        )
        self.blob_store = BlobStore(
            cfg.storage_bucket,
            endpoint_url=cfg.storage_endpoint_url,
            region=cfg.storage_region,
            public_base_url=cfg.storage_public_base_url,
        )

        self.user_service = UserService(self.user_store, self.latest_cache, self.publisher)
        self.upload_service = UploadService(self.blob_store, self.publisher, cfg.max_upload_bytes)

        self._setup_api_routes()

    def _setup_api_routes(self):
        """Set up API routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "api",
                "message": "Cloud Sample - API Service",
                "version": "1.0.0",
                "capabilities": ["users", "latest_users_cache", "uploads", "event_feed"]
            }

        @self.app.get("/api/users", response_model=UserListResponse)
        async def list_users():
            """All users, newest first."""
            users = await self.user_service.list_users()
            return UserListResponse(count=len(users), data=users)

        @self.app.get("/api/users/latest", response_model=LatestUsersResponse)
        async def latest_users():
            """Most recent users, served from the cache when possible."""
            latest = await self.user_service.latest_users()
            return LatestUsersResponse(source=latest.source, count=len(latest.users), data=latest.users)

        @self.app.post("/api/users", response_model=UserResponse)
        async def create_user(request: CreateUserRequest):
            """Create a user."""
            user = await self.user_service.create_user(request.name, request.email)
            self.metrics.record_business_event("user_created")
            return UserResponse(message="User created successfully", data=user)

        @self.app.post("/api/upload", response_model=UploadResponse)
        async def upload_file(file: Optional[UploadFile] = File(None)):
            """Upload one file to the bucket."""
            if file is None:
                raise ValidationError("No file uploaded")
            data = await file.read()
            uploaded = await self.upload_service.upload(file.filename, data, file.content_type)
            self.metrics.record_business_event("file_uploaded")
            return UploadResponse(message="File uploaded successfully", data=uploaded)

        @self.app.get("/api/upload/files", response_model=FileListResponse)
        async def list_files():
            """Object names in the bucket."""
            files = await self.upload_service.list_files()
            return FileListResponse(count=len(files), data=files)

        @self.app.get("/api/pubsub/events", response_model=EventListResponse)
        async def list_events():
            """Recent events, newest first."""
            events = await self.event_feed.get_all()
            return EventListResponse(count=len(events), data=events)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check API service dependencies."""
        dependencies = {}

        try:
            dependencies["redis"] = "ok" if await self.redis_store.health_check() else "error"
        except Exception:
            dependencies["redis"] = "error"

        try:
            dependencies["postgres"] = "ok" if await self.user_store.health_check() else "error"
        except Exception:
            dependencies["postgres"] = "error"

        bus_ok = self.publisher.is_started() and self.subscriber.is_running()
        dependencies["kafka"] = "ok" if bus_ok else "error"

        try:
            dependencies["storage"] = "ok" if await self.blob_store.health_check() else "error"
        except Exception:
            dependencies["storage"] = "error"

        return dependencies

    async def start(self):
        """Start API service components.

        The user store is required. The cache, bus and blob store start
        degraded when their backend is unavailable.
        """
        await self.user_store.start()
        await self.redis_store.start()

        try:
            await self.publisher.start()
        except ServiceException as e:
            self.logger.error("Event publishing disabled", error=e.message)

        try:
            await self.subscriber.start()
        except ServiceException as e:
            self.logger.error("Event subscription disabled", error=e.message)

        try:
            self.blob_store.start()
        except Exception as e:
            self.logger.error("Storage client unavailable", error=str(e))

        self.logger.info("API service started")

    async def stop(self):
        """Stop API service components."""
        await self.subscriber.stop()
        await self.publisher.stop()
        await self.redis_store.stop()
        await self.user_store.stop()

        self.logger.info("API service stopped")


def create_app():
    """Create API service application."""
    service = ApiService()
    return service.app


if __name__ == "__main__":
    service = ApiService()
    service.run()
