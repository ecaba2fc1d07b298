"""Kafka consumer wrapper yielding completion signals."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from confluent_kafka import Consumer, KafkaError

from tms_orchestrator.configuration.runtime_settings import KafkaSettings

from .signal_messages import (
    CompletionSignalError,
    ReceivedCompletionSignal,
    parse_completion_signal,
)

_KAFKA_CLIENT_LOGGER = logging.getLogger("tms_orchestrator.kafka.client")
_KAFKA_CLIENT_LOGGER.addHandler(logging.NullHandler())
_KAFKA_CLIENT_LOGGER.propagate = False
_KAFKA_CLIENT_LOGGER.setLevel(logging.CRITICAL + 1)

logger = logging.getLogger(__name__)


class KafkaConsumerProtocol(Protocol):
    """Protocol implemented by both real and fake consumers."""

    def subscribe(self, topics: list[str], **kwargs: Any) -> None: ...

    def poll(self, timeout: float) -> _KafkaRawMessage | None: ...

    def close(self) -> None: ...


class _KafkaRawMessage(Protocol):
    """Subset of Kafka message API required by the service."""

    def error(self) -> Any: ...

    def key(self) -> bytes | None: ...

    def value(self) -> bytes | None: ...

    def timestamp(self) -> tuple[int, int | None]: ...


class CompletionSignalReader:
    """Consume JSON completion signals from the configured topic.

    Messages are read until `timeout_seconds` have elapsed since `consume` was
    called. A message that is not a valid signal is yielded with its decode
    error instead of a signal, so later messages are still read. The consumer
    never commits offsets; reprocessing is safe because completion signals are
    idempotent.
    """

    def __init__(
        self,
        kafka_settings: KafkaSettings,
        consumer: KafkaConsumerProtocol | None = None,
    ) -> None:
        self._settings = kafka_settings
        self._consumer = consumer or self._create_consumer()

    def consume(self, start_time: datetime | None = None) -> Iterator[ReceivedCompletionSignal]:
        """Yield decoded signals until the configured timeout expires."""
        started = start_time or datetime.now(UTC)
        end_time = started + timedelta(seconds=self._settings.timeout_seconds)
        self._consumer.subscribe([self._settings.topic])
        try:
            while datetime.now(UTC) < end_time:
                message = self._consumer.poll(timeout=self._settings.poll_interval_ms / 1000.0)
                if message is None:
                    continue
                if message.error():
                    if message.error().code() == KafkaError._PARTITION_EOF:
                        continue
                    raise CompletionSignalError(f"Kafka error: {message.error()}")
                yield _received(message)
        finally:
            self._consumer.close()

    def _create_consumer(self) -> KafkaConsumerProtocol:
        config = {
            "bootstrap.servers": ",".join(self._settings.bootstrap_servers),
            "group.id": self._settings.group_id or "tms-orchestrator",
            "enable.auto.commit": False,
            "auto.offset.reset": self._settings.auto_offset_reset,
        }
        config.update(self._settings.security)
        try:
            return Consumer(config, logger=_KAFKA_CLIENT_LOGGER)
        except TypeError:
            # Older/mock Consumer implementations may not support the logger kwarg.
            return Consumer(config)


def _received(message: _KafkaRawMessage) -> ReceivedCompletionSignal:
    key = _decode_key(message.key())
    timestamp = _message_time(message)
    try:
        signal = parse_completion_signal(_decode_json(message.value()))
    except CompletionSignalError as exc:
        logger.warning("skipping undecodable completion signal (key=%s): %s", key, exc)
        return ReceivedCompletionSignal(
            key=key, timestamp=timestamp, signal=None, decode_error=str(exc)
        )
    return ReceivedCompletionSignal(key=key, timestamp=timestamp, signal=signal)


def _decode_json(payload: bytes | None) -> Any:
    if payload is None:
        raise CompletionSignalError("Received empty message payload.")
    try:
        return json.loads(bytes(payload).decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CompletionSignalError(f"Completion signal is not valid JSON: {exc}") from exc


def _decode_key(key: bytes | None) -> str | None:
    if key is None:
        return None
    return bytes(key).decode("utf-8", errors="replace")


def _message_time(message: _KafkaRawMessage) -> datetime | None:
    _, timestamp_value = message.timestamp()
    if timestamp_value is None:
        return None
    return datetime.fromtimestamp(timestamp_value / 1000, tz=UTC)
