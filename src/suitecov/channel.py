"""JSON messages carrying suite coverage from workers to the main process."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any, Protocol

from suitecov._meta import logger
from suitecov.errors import IngestionError
from suitecov.providers.base import AfterSuiteRunMeta

if TYPE_CHECKING:
    from suitecov.orchestrator import CoverageOrchestrator


class MessageQueue(Protocol):
    """The subset of :class:`queue.Queue` / :class:`multiprocessing.Queue` used here."""

    def get(self) -> Any: ...

    def put(self, item: Any) -> None: ...


def encode_message(meta: AfterSuiteRunMeta) -> str:
    """Serialise *meta*; raises :class:`IngestionError` when the payload is not plain data."""
    try:
        return json.dumps({
            "coverage": meta.coverage,
            "worker_id": meta.worker_id,
            "test_files": list(meta.test_files),
            "all_tests_run": meta.all_tests_run,
        })
    except (TypeError, ValueError) as exc:
        msg = f"coverage from worker {meta.worker_id} is not serializable: {exc}"
        raise IngestionError(msg) from exc


def decode_message(raw: str | bytes) -> AfterSuiteRunMeta:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        msg = f"undecodable coverage message: {exc}"
        raise IngestionError(msg) from exc
    if not isinstance(data, dict):
        msg = f"coverage message must be an object, got {type(data).__name__}"
        raise IngestionError(msg)

    worker_id = data.get("worker_id")
    test_files = data.get("test_files") or []
    all_tests_run = data.get("all_tests_run", True)
    if not isinstance(test_files, list) or not isinstance(all_tests_run, bool):
        msg = "coverage message has malformed test_files or all_tests_run"
        raise IngestionError(msg)
    return AfterSuiteRunMeta(
        coverage=data.get("coverage"),
        worker_id=None if worker_id is None else str(worker_id),
        test_files=tuple(str(f) for f in test_files),
        all_tests_run=all_tests_run,
    )


def send(queue: MessageQueue, meta: AfterSuiteRunMeta) -> None:
    """Put *meta* on *queue*, dropping a payload that cannot be serialised."""
    try:
        message = encode_message(meta)
    except IngestionError as exc:
        logger.warning("%s; sending an empty payload instead", exc)
        message = encode_message(
            AfterSuiteRunMeta(worker_id=meta.worker_id, test_files=meta.test_files, all_tests_run=meta.all_tests_run)
        )
    queue.put(message)


def close(queue: MessageQueue) -> None:
    """Signal the consumer that no more messages will arrive."""
    queue.put(None)


async def consume(queue: MessageQueue, orchestrator: CoverageOrchestrator) -> int:
    """Forward queued messages to *orchestrator* in arrival order until ``None`` is received.

    Returns the number of messages processed, undecodable ones included.
    """
    count = 0
    while True:
        raw = await asyncio.to_thread(queue.get)
        if raw is None:
            break
        try:
            meta = decode_message(raw)
        except IngestionError as exc:
            logger.warning("%s; counting suite as empty", exc)
            meta = AfterSuiteRunMeta()
        await orchestrator.on_after_suite_run(meta)
        count += 1
    return count


__all__ = ["MessageQueue", "close", "consume", "decode_message", "encode_message", "send"]
