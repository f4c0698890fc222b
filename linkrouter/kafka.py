"""Kafka producer management for click and evaluation messages."""

import json

from aiokafka import AIOKafkaProducer

from linkrouter.config import get_settings
from linkrouter.errors import DownstreamDispatchError
from linkrouter.enums import DispatchStep
from linkrouter.schemas import EvaluationRequest, LinkClickMessage

__all__ = [
    "KafkaClickQueue",
    "KafkaEvaluationWorkflowStarter",
    "close_kafka",
    "init_kafka",
    "publish_click_message",
    "publish_evaluation_request",
]

settings = get_settings()

_producer: AIOKafkaProducer | None = None


async def init_kafka() -> None:
    global _producer
    if _producer is not None:
        return

    producer = AIOKafkaProducer(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        value_serializer=lambda payload: json.dumps(payload).encode("utf-8"),
    )
    try:
        await producer.start()
        _producer = producer
    except Exception:
        await producer.stop()
        _producer = None


async def close_kafka() -> None:
    global _producer
    if _producer is None:
        return
    await _producer.stop()
    _producer = None


async def publish_click_message(message: LinkClickMessage) -> bool:
    if _producer is None:
        return False

    await _producer.send_and_wait(
        settings.KAFKA_CLICK_TOPIC,
        message.model_dump(mode="json"),
        key=message.data.id.encode("utf-8"),
    )
    return True


async def publish_evaluation_request(request: EvaluationRequest) -> bool:
    if _producer is None:
        return False

    await _producer.send_and_wait(
        settings.KAFKA_EVALUATION_TOPIC,
        request.model_dump(mode="json"),
        key=f"{request.link_id}:{request.destination}".encode("utf-8"),
    )
    return True


class KafkaClickQueue:
    """Queue adapter handed to the click dispatcher."""

    async def send(self, message: LinkClickMessage) -> None:
        if not await publish_click_message(message):
            raise DownstreamDispatchError(DispatchStep.QUEUE, "Kafka producer is not running")


class KafkaEvaluationWorkflowStarter:
    """Starts a page evaluation by publishing the request to the evaluation topic."""

    async def __call__(self, request: EvaluationRequest) -> None:
        if not await publish_evaluation_request(request):
            raise RuntimeError("Kafka producer is not running; evaluation not started")
