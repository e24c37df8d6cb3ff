"""
Kafka producer publishing feed events.
"""

import asyncio
import contextlib
import functools
import json
from datetime import datetime, timezone
from typing import Optional

from kafka import KafkaProducer

from shared.errors import AdvisoryOutcome, ServiceException
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..models import BusMessage, EventSource, User


class EventPublisher:
    """Publishes Event-shaped messages to one topic."""

    def __init__(
        self,
        bootstrap_servers: str,
        topic: str,
        timeout_seconds: float = 5.0,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.topic = topic
        self.timeout_seconds = timeout_seconds
        self.metrics = metrics
        self.logger = get_logger("api.kafka.producer")
        self.producer: Optional[KafkaProducer] = None

    async def start(self):
        """Start the Kafka producer."""
        loop = asyncio.get_running_loop()
        try:
            self.producer = await loop.run_in_executor(None, functools.partial(
                KafkaProducer,
                bootstrap_servers=self.bootstrap_servers,
                value_serializer=lambda x: json.dumps(x).encode('utf-8'),
                acks='all',
                linger_ms=10,
                request_timeout_ms=int(self.timeout_seconds * 1000),
                max_block_ms=int(self.timeout_seconds * 1000),
            ))
        except Exception as e:
            self.logger.error("Failed to start Kafka producer", error=str(e))
            raise ServiceException("KAFKA_PRODUCER_START_FAILED", str(e))

        self.logger.info("Kafka producer started", topic=self.topic)

    async def stop(self):
        """Flush pending messages and close the producer."""
        if self.producer:
            producer, self.producer = self.producer, None
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, functools.partial(producer.close, timeout=self.timeout_seconds))
            self.logger.info("Kafka producer stopped")

    async def publish(self, message: BusMessage) -> str:
        """Publish and wait for the broker acknowledgement.

        Returns a ``topic:partition:offset`` message id. Raises on failure.
        """
        if not self.producer:
            raise ServiceException("KAFKA_PRODUCER_NOT_STARTED", "Producer not started")

        payload = message.model_dump(mode="json", by_alias=True)
        producer = self.producer

        def _send():
            future = producer.send(self.topic, value=payload)
            return future.get(timeout=self.timeout_seconds)

        loop = asyncio.get_running_loop()
        with self._timer():
            metadata = await loop.run_in_executor(None, _send)

        message_id = f"{metadata.topic}:{metadata.partition}:{metadata.offset}"
        self.logger.info("Message published", message_id=message_id, source=message.source)
        return message_id

    async def publish_user_created(self, user: User) -> AdvisoryOutcome:
        """Announce a new user; failure never affects user creation."""
        return await self._publish_best_effort(
            EventSource.SQL,
            f"User created: {user.name} ({user.email})",
        )

    async def publish_file_uploaded(self, file_name: str, file_url: str) -> AdvisoryOutcome:
        """Announce an upload; failure never affects the upload."""
        return await self._publish_best_effort(
            EventSource.BUCKET,
            f"File uploaded: {file_name} - URL: {file_url}",
        )

    async def _publish_best_effort(self, source: EventSource, text: str) -> AdvisoryOutcome:
        message = BusMessage(source=source.value, message=text, timestamp=datetime.now(timezone.utc))
        try:
            await self.publish(message)
        except Exception as e:
            self.logger.error("Error publishing event", source=source.value, error=str(e))
            self._count(source, "failed")
            return AdvisoryOutcome.failure("publish_event", e)

        self._count(source, "published")
        return AdvisoryOutcome.success("publish_event")

    def _timer(self):
        if self.metrics is None:
            return contextlib.nullcontext()
        return self.metrics.time_operation("bus_publish_duration_seconds")

    def _count(self, source: EventSource, status: str):
        if self.metrics is not None:
            self.metrics.increment_counter("events_published_total", source=source.value, status=status)

    def is_started(self) -> bool:
        return self.producer is not None

