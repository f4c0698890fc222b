"""Queue consumer that drives evaluation scheduling for link clicks.

Consumes LINK_CLICK messages from Kafka and forwards each one to the
evaluation scheduler actor for its (link, destination) pair. Messages are
keyed by link id, so every click on a link lands on the same partition and
therefore on the same consumer process and actor instance.

Run with::

    python -m linkrouter.consumer
"""

import asyncio
import json
import logging

from aiokafka import AIOKafkaConsumer
from prometheus_client import Counter, start_http_server
from pydantic import ValidationError

from linkrouter.actors import EvaluationSchedulerClient, build_evaluation_scheduler_namespace
from linkrouter.click_dispatcher import schedule_evaluation
from linkrouter.config import get_settings
from linkrouter.kafka import KafkaEvaluationWorkflowStarter, close_kafka, init_kafka
from linkrouter.schemas import LinkClickMessage

__all__ = ["process_records", "run"]

settings = get_settings()
logger = logging.getLogger(__name__)

CONSUMER_MESSAGES_TOTAL = Counter(
    "linkrouter_consumer_messages_total",
    "Click messages consumed by the evaluation consumer",
    ["outcome"],
)


async def process_records(scheduler: EvaluationSchedulerClient, payloads: list[dict]) -> int:
    """Forward a batch of raw queue payloads to the evaluation scheduler.

    Returns the number of messages that reached their scheduler actor.
    Invalid payloads and per-message failures are logged and skipped.
    """
    forwarded = 0
    for payload in payloads:
        try:
            message = LinkClickMessage.model_validate(payload)
        except ValidationError:
            CONSUMER_MESSAGES_TOTAL.labels(outcome="invalid").inc()
            logger.warning("invalid link click payload", exc_info=True)
            continue

        try:
            await schedule_evaluation(scheduler, message.data)
        except Exception:
            CONSUMER_MESSAGES_TOTAL.labels(outcome="failed").inc()
            logger.warning(f"evaluation scheduling failed for {message.data.evaluation_key}", exc_info=True)
            continue

        CONSUMER_MESSAGES_TOTAL.labels(outcome="forwarded").inc()
        forwarded += 1
    return forwarded


async def run() -> None:
    start_http_server(settings.CONSUMER_METRICS_PORT)
    await init_kafka()

    scheduler = EvaluationSchedulerClient(
        build_evaluation_scheduler_namespace(settings, KafkaEvaluationWorkflowStarter())
    )
    consumer = AIOKafkaConsumer(
        settings.KAFKA_CLICK_TOPIC,
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        group_id=settings.CONSUMER_GROUP,
        value_deserializer=lambda payload: json.loads(payload.decode("utf-8")),
        client_id=settings.CONSUMER_NAME,
    )
    await consumer.start()

    try:
        while True:
            try:
                records = await consumer.getmany(
                    timeout_ms=settings.CONSUMER_BLOCK_MS, max_records=settings.CONSUMER_BATCH_SIZE
                )
                payloads = [record.value for partition in records.values() for record in partition]
                if payloads:
                    await process_records(scheduler, payloads)
            except Exception:
                logger.warning("evaluation consumer loop iteration failed", exc_info=True)
                await asyncio.sleep(1)
    finally:
        await consumer.stop()
        await close_kafka()


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    asyncio.run(run())
