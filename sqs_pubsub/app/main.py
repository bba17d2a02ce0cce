"""Worker entry point: consume the SQS queue, optionally forward to SNS, acknowledge.

SIGINT/SIGTERM request a graceful stop: polling ends, messages already taken finish
processing, and their deletes are flushed before the process exits.
"""
from __future__ import annotations

import asyncio
import signal
from typing import Any

from loguru import logger

from sqs_pubsub.app.composition import WorkerDependencies, create_worker_dependencies
from sqs_pubsub.app.core import SERVICE_NAME
from sqs_pubsub.app.infrastructure.messaging.sqs.constants import SubscriberState
from sqs_pubsub.app.infrastructure.messaging.sqs.sqs_message import SQSMessage
from sqs_pubsub.app.ports.queue_client import QueueClientError


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


async def handle_message(deps: WorkerDependencies, message: SQSMessage) -> None:
    body = message.message()
    _log("message_received", message_id=message.message_id, size=len(body))
    if deps.publisher is not None:
        await deps.publisher.publish_raw(deps.settings.forward_subject, body)
    try:
        await message.done()
    except QueueClientError as e:
        # Not fatal: the message is redelivered after its visibility timeout.
        logger.warning("delete failed for {}: {}", message.message_id, e)


async def run_worker(deps: WorkerDependencies | None = None) -> None:
    deps = deps or create_worker_dependencies()
    await deps.connect()
    subscriber = deps.subscriber

    stop_task: asyncio.Task[None] | None = None

    def request_shutdown() -> None:
        nonlocal stop_task
        if stop_task is None and subscriber.state is SubscriberState.RUNNING:
            _log("shutdown_signal")
            stop_task = asyncio.create_task(subscriber.stop())

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_shutdown)
        except NotImplementedError:
            pass

    slots = asyncio.Semaphore(deps.settings.max_concurrency)
    tasks: set[asyncio.Task[None]] = set()

    async def process(message: SQSMessage) -> None:
        try:
            await handle_message(deps, message)
        except Exception as e:
            logger.exception("message handling failed for {}: {}", message.message_id, e)
            if not message.finished:
                message.release()
        finally:
            slots.release()

    _log("worker_started")
    try:
        stream = subscriber.start()
        while True:
            await slots.acquire()
            try:
                message = await anext(stream)
            except StopAsyncIteration:
                slots.release()
                break
            task = asyncio.create_task(process(message))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
        if tasks:
            await asyncio.gather(*tasks)
    finally:
        await deps.close()
        if stop_task is not None:
            await stop_task

    if subscriber.err is not None:
        _log("worker_failed", error=str(subscriber.err))
        raise subscriber.err
    _log("worker_stopped")


def main() -> None:
    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        _log("worker_interrupted")
    except Exception as e:
        logger.exception("worker failed: {}", e)
        raise


if __name__ == "__main__":
    main()
