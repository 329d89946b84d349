"""Best-effort delivery of commit changes to a remote collaborator."""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from commitment_engine.logging_config import get_logger
from commitment_engine.schema import SYNC_OPS, DayCommit, SyncRequest

SyncSink = Callable[[DayCommit, str], None]

logger = get_logger(__name__)


def dispatch(requests: Iterable[SyncRequest], sink: Optional[SyncSink]) -> list[SyncRequest]:
    """Send each request to ``sink`` and return the ones that failed.

    Failures are logged and never propagate: the local state has already been
    saved by the time this runs.
    """

    failed: list[SyncRequest] = []
    if sink is None:
        return failed

    for request in requests:
        if request.op not in SYNC_OPS:
            raise ValueError(f"invalid sync op '{request.op}'")
        try:
            sink(request.commit, request.op)
        except Exception as exc:  # noqa: BLE001
            logger.warning("sync_failed", date=request.commit.date, op=request.op, error=str(exc))
            failed.append(request)
        else:
            logger.debug("sync_sent", date=request.commit.date, op=request.op)
    return failed
