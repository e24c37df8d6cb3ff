"""
Kafka subscriber feeding the event feed.
"""

import asyncio
import functools
from enum import Enum
from typing import Any, Dict, List, Optional

import kafka
from kafka.errors import KafkaError
from pydantic import ValidationError as PydanticValidationError

from shared.errors import ServiceException
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..events.feed import EventFeed
from ..models import BusMessage


class Reply(str, Enum):
    """Handler verdict for one bus message."""
    ACK = "ack"
    NACK = "nack"


class EventSubscriber:
    """Long-running consumer that appends every bus message to the feed.

    Offsets are committed manually after each batch. A nacked message
    rewinds its partition to that offset so the next poll redelivers it.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        group_id: str,
        topic: str,
        feed: EventFeed,
        poll_timeout_ms: int = 1000,
        handler_timeout_seconds: float = 10.0,
        shutdown_grace_seconds: float = 5.0,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.group_id = group_id
        self.topic = topic
        self.feed = feed
        self.poll_timeout_ms = poll_timeout_ms
        self.handler_timeout_seconds = handler_timeout_seconds
        self.shutdown_grace_seconds = shutdown_grace_seconds
        self.metrics = metrics
        self.logger = get_logger("api.kafka.consumer")
        self.consumer: Optional[kafka.KafkaConsumer] = None
        self.running = False
        self._stopping: Optional[asyncio.Event] = None
        self._consumer_task: Optional[asyncio.Task] = None

    async def start(self):
        """Connect, subscribe and launch the consume loop."""
        loop = asyncio.get_running_loop()
        try:
            self.consumer = await loop.run_in_executor(None, functools.partial(
                kafka.KafkaConsumer,
                bootstrap_servers=self.bootstrap_servers,
                group_id=self.group_id,
                value_deserializer=lambda x: x,  # Raw bytes, decoded by the handler
                auto_offset_reset='latest',
                enable_auto_commit=False,
                max_poll_records=100,
                session_timeout_ms=30000,
                heartbeat_interval_ms=10000
            ))
            await loop.run_in_executor(None, self.consumer.subscribe, [self.topic])
        except Exception as e:
            self.logger.error("Failed to start Kafka consumer", error=str(e))
            raise ServiceException("KAFKA_CONSUMER_START_FAILED", str(e))

        self._stopping = asyncio.Event()
        self.running = True
        self._consumer_task = asyncio.create_task(self._consume_loop())
        self.logger.info("Kafka consumer started", group_id=self.group_id, topic=self.topic)

    async def stop(self):
        """Stop polling within the grace period and leave the consumer group."""
        self.running = False
        if self._stopping is not None:
            self._stopping.set()

        if self._consumer_task:
            try:
                await asyncio.wait_for(asyncio.shield(self._consumer_task), timeout=self.shutdown_grace_seconds)
            except asyncio.TimeoutError:
                self.logger.warning("Consume loop did not stop in time, cancelling",
                                    grace_seconds=self.shutdown_grace_seconds)
                self._consumer_task.cancel()
                try:
                    await self._consumer_task
                except asyncio.CancelledError:
                    pass
            self._consumer_task = None

        if self.consumer:
            consumer, self.consumer = self.consumer, None
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, consumer.close)
            self.logger.info("Kafka consumer stopped")

    async def handle_message(self, raw: bytes) -> Reply:
        """Deserialize one message and append it to the feed.

        Malformed payloads are nacked. Everything else is acked once the
        append has been attempted, whether or not it succeeded.
        """
        try:
            message = BusMessage.model_validate_json(raw)
        except (PydanticValidationError, ValueError) as e:
            self.logger.error("Error processing bus message", error=str(e))
            self._count(Reply.NACK)
            return Reply.NACK

        self.logger.info("Received bus message", source=message.source, message=message.message)
        outcome = await self.feed.append(message.source, message.message)
        if not outcome.ok:
            self.logger.warning("Event dropped", source=message.source, error=outcome.error)

        self._count(Reply.ACK)
        return Reply.ACK

    async def _dispatch(self, raw: bytes) -> Reply:
        try:
            return await asyncio.wait_for(self.handle_message(raw), timeout=self.handler_timeout_seconds)
        except asyncio.TimeoutError:
            self.logger.error("Handler timed out", timeout_seconds=self.handler_timeout_seconds)
            self._count(Reply.NACK)
            return Reply.NACK

    async def _process_batch(self, batch: Dict[Any, List[Any]]) -> None:
        for topic_partition, messages in batch.items():
            for message in messages:
                reply = await self._dispatch(message.value)
                if reply is Reply.NACK:
                    # Redeliver from here on the next poll
                    self.consumer.seek(topic_partition, message.offset)
                    break

    async def _consume_loop(self):
        """Main consumption loop."""
        loop = asyncio.get_running_loop()
        while not self._stopping.is_set():
            try:
                batch = await loop.run_in_executor(
                    None, functools.partial(self.consumer.poll, timeout_ms=self.poll_timeout_ms)
                )
                if not batch:
                    continue

                await self._process_batch(batch)
                await loop.run_in_executor(None, self.consumer.commit)

            except KafkaError as e:
                self.logger.error("Kafka error in consume loop", error=str(e))
                await self._wait_for_stop(5)

            except Exception as e:
                self.logger.error("Unexpected error in consume loop", error=str(e))
                await self._wait_for_stop(1)

        self.logger.info("Consume loop exited")

    async def _wait_for_stop(self, seconds: float):
        """Back off, waking early on shutdown."""
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _count(self, reply: Reply):
        if self.metrics is not None:
            self.metrics.increment_counter("bus_messages_total", reply=reply.value)

    def is_running(self) -> bool:
        """Check if the consume loop is active."""
        return self.running and self._consumer_task is not None and not self._consumer_task.done()
