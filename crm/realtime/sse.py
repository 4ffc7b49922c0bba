"""
Server-sent events for dashboards watching group, meeting and attendance changes.

Subscribers are in-process queues; a slow client whose queue fills up is
dropped rather than allowed to stall the writers.
"""

import asyncio
import json
import logging
from enum import StrEnum
from typing import Any, Dict, Set

import anyio
from fastapi import APIRouter
from sse_starlette.sse import EventSourceResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


class CrmEvent(StrEnum):
    GROUP_DELETED = "GROUP_DELETED"
    GROUP_MEMBER_ADDED = "GROUP_MEMBER_ADDED"
    GROUP_MEMBER_REMOVED = "GROUP_MEMBER_REMOVED"
    MEETING_CREATED = "MEETING_CREATED"
    MEETING_DELETED = "MEETING_DELETED"
    ATTENDANCE_UPDATED = "ATTENDANCE_UPDATED"


_subscribers: Set[asyncio.Queue] = set()


async def broadcast(event: CrmEvent, payload: Dict[str, Any]) -> None:
    dropped = []
    for queue in _subscribers:
        try:
            queue.put_nowait({"event": str(event), "data": payload})
        except asyncio.QueueFull:
            dropped.append(queue)

    for queue in dropped:
        _subscribers.discard(queue)
    if dropped:
        logger.warning("Dropped %d slow SSE subscriber(s) on %s", len(dropped), event)


def publish(event: CrmEvent, payload: Dict[str, Any]) -> None:
    """Broadcast from a sync endpoint (runs in the threadpool)."""
    anyio.from_thread.run(broadcast, event, payload)


@router.get("/events")
async def sse_events():
    queue: asyncio.Queue = asyncio.Queue(maxsize=100)
    _subscribers.add(queue)
    logger.debug("SSE subscriber connected (%d open)", len(_subscribers))

    async def generator():
        try:
            while True:
                msg = await queue.get()
                yield {
                    "event": msg["event"],
                    "data": json.dumps(msg["data"], ensure_ascii=False, default=str),
                }
        except asyncio.CancelledError:
            pass
        finally:
            _subscribers.discard(queue)

    return EventSourceResponse(generator(), ping=15)
