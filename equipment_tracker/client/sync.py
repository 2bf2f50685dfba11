from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from client.state_cache import AssignedRef, ClientStateCache, RowRef
from client.transport import TrackerTransport
from services.reconciliation_service import STATUS_RECEIVED
from services.tracker_errors import NetworkFailure, TrackerError, error_from_result


SYNC_LOGGER = logging.getLogger("equipment_tracker.sync")

NOTICE_TTL_SECONDS = 3.0


def _as_tracker_error(exc: Exception) -> TrackerError:
    if isinstance(exc, TrackerError):
        return exc
    SYNC_LOGGER.exception("Unexpected error talking to the tracker API")
    return NetworkFailure(f"Unexpected response from tracker API: {exc!r}")


@dataclass
class Notice:
    message: str
    kind: str = "success"
    created_at: float = 0.0


class NoticeBoard:
    """Auto-dismissing user notices; expired notices drop out of ``active()``."""

    def __init__(self, ttl_seconds: float = NOTICE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._notices: list[Notice] = []

    def post(self, message: str, kind: str = "success") -> Notice:
        notice = Notice(message=message, kind=kind, created_at=self._clock())
        self._notices.append(notice)
        return notice

    def active(self) -> list[Notice]:
        cutoff = self._clock() - self.ttl_seconds
        self._notices = [notice for notice in self._notices if notice.created_at > cutoff]
        return list(self._notices)


class SyncCommand:
    """One local action: validated, applied optimistically, then committed."""

    action = ""
    success_message = "Saved Successfully!"

    def validate(self, cache: ClientStateCache) -> None:
        return None

    def apply(self, cache: ClientStateCache) -> None:
        raise NotImplementedError

    def payload(self) -> dict[str, Any]:
        raise NotImplementedError


class AddTransactionCommand(SyncCommand):
    action = "addTransaction"

    def __init__(self, fields: dict[str, Any]):
        self.fields = dict(fields)
        self.fields.pop("action", None)

    def apply(self, cache: ClientStateCache) -> None:
        cache.apply_new_transaction(self.fields)

    def payload(self) -> dict[str, Any]:
        return {"action": self.action, **self.fields}


class UpdateInventoryCommand(SyncCommand):
    action = "updateInventory"
    success_message = "Inventory updated."

    def __init__(self, device: str, new_total: int):
        self.device = device
        self.new_total = new_total

    def apply(self, cache: ClientStateCache) -> None:
        cache.apply_inventory_total(self.device, self.new_total)

    def payload(self) -> dict[str, Any]:
        return {"action": self.action, "device": self.device, "newTotal": self.new_total}


class MarkReceivedCommand(SyncCommand):
    action = "updateStatus"
    success_message = "Status Updated!"

    def __init__(self, ref: RowRef):
        self.ref = ref

    def validate(self, cache: ClientStateCache) -> None:
        cache.require_assigned(self.ref)

    def apply(self, cache: ClientStateCache) -> None:
        cache.apply_mark_received(self.ref)

    def payload(self) -> dict[str, Any]:
        row = self.ref.row if isinstance(self.ref, AssignedRef) else None
        return {"action": self.action, "row": row, "status": STATUS_RECEIVED}


@dataclass
class SyncOutcome:
    ok: bool
    error: Optional[TrackerError] = None
    refreshed: bool = False
    notices: list[Notice] = field(default_factory=list)


class TrackerSync:
    """Runs commands against a cache: snapshot, apply, render, commit, then pull or roll back.

    Cycles are serialized per instance so a rollback never restores a
    snapshot taken before another cycle's changes.
    """

    def __init__(self, cache: ClientStateCache, transport: TrackerTransport, notices: NoticeBoard | None = None):
        self.cache = cache
        self.transport = transport
        self.notices = notices or NoticeBoard()
        self._lock = threading.RLock()

    def refresh(self) -> SyncOutcome:
        with self._lock:
            try:
                self._pull()
            except Exception as exc:
                exc = _as_tracker_error(exc)
                SYNC_LOGGER.warning("Refresh failed: %s", exc.message)
                notice = self.notices.post(f"Error syncing data: {exc.message}", "error")
                return SyncOutcome(ok=False, error=exc, notices=[notice])
            self.cache.render()
            return SyncOutcome(ok=True, refreshed=True)

    def run(self, command: SyncCommand) -> SyncOutcome:
        with self._lock:
            try:
                command.validate(self.cache)
            except TrackerError as exc:
                notice = self.notices.post(exc.message, "error")
                return SyncOutcome(ok=False, error=exc, notices=[notice])

            snapshot = self.cache.snapshot()
            command.apply(self.cache)
            self.cache.render()

            try:
                result = self.transport.write(command.payload())
                if not isinstance(result, dict):
                    raise NetworkFailure("Tracker API payload is not an object")
                if result.get("status") != "success":
                    raise error_from_result(result)
            except Exception as exc:
                exc = _as_tracker_error(exc)
                self.cache.restore(snapshot)
                self.cache.render()
                SYNC_LOGGER.warning("%s failed, local changes rolled back: %s", command.action, exc.message)
                notice = self.notices.post(f"Error: {exc.message}", "error")
                return SyncOutcome(ok=False, error=exc, notices=[notice])
            except BaseException:
                self.cache.restore(snapshot)
                self.cache.render()
                raise

            notices = [self.notices.post(command.success_message)]
            try:
                self._pull()
            except Exception as exc:
                exc = _as_tracker_error(exc)
                # The write was accepted; keep the provisional view until a later pull.
                SYNC_LOGGER.warning("%s saved but refresh failed: %s", command.action, exc.message)
                notices.append(self.notices.post(f"Saved, but refresh failed: {exc.message}", "warning"))
                return SyncOutcome(ok=True, error=exc, refreshed=False, notices=notices)
            self.cache.render()
            return SyncOutcome(ok=True, refreshed=True, notices=notices)

    def add_transaction(self, fields: dict[str, Any]) -> SyncOutcome:
        return self.run(AddTransactionCommand(fields))

    def update_inventory(self, device: str, new_total: int) -> SyncOutcome:
        return self.run(UpdateInventoryCommand(device, new_total))

    def mark_received(self, ref: RowRef | int) -> SyncOutcome:
        if isinstance(ref, int):
            ref = AssignedRef(ref)
        return self.run(MarkReceivedCommand(ref))

    def _pull(self) -> None:
        response = self.transport.read()
        if not isinstance(response, dict):
            raise NetworkFailure("Tracker API payload is not an object")
        if response.get("status") != "success":
            raise error_from_result(response)
        self.cache.replace_from_response(response)
