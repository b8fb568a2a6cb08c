"""Best-effort activity recorder.

Request handlers capture what they need into a plain ``ActivityEntry`` and hand
it to the ``ActivitySink``. The sink writes entries from its own thread with
its own session, so a slow or broken audit table never affects a response.
"""
import json
import logging
import queue
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from app.models.activity import UserActivity

logger = logging.getLogger(__name__)

SERIALIZATION_FAILED = "Serialization failed"


@dataclass(frozen=True)
class RequestContext:
    """Actor and request facts captured on the request thread."""
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    user_role: Optional[str] = None
    http_method: Optional[str] = None
    endpoint: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    started_at: float = field(default_factory=time.perf_counter)

    def for_user(self, user) -> "RequestContext":
        """Copy with the actor replaced, used once a login resolves the user."""
        return replace(self, user_id=user.id, user_name=user.name, user_role=user.role_name)

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self.started_at) * 1000)


@dataclass
class ActivityEntry:
    user_id: Optional[int]
    user_name: Optional[str]
    user_role: Optional[str]
    action: str
    entity_type: str
    entity_id: Optional[int]
    description: Optional[str]
    details: Optional[str]
    http_method: Optional[str]
    endpoint: Optional[str]
    ip_address: Optional[str]
    user_agent: Optional[str]
    status_code: int
    is_success: bool
    error_message: Optional[str]
    timestamp: datetime
    duration: Optional[int]

    def to_model(self) -> UserActivity:
        return UserActivity(
            user_id=self.user_id,
            user_name=self.user_name,
            user_role=self.user_role,
            action=self.action,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            description=self.description,
            details=self.details,
            http_method=self.http_method,
            endpoint=self.endpoint,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            status_code=self.status_code,
            is_success=self.is_success,
            error_message=self.error_message,
            timestamp=self.timestamp,
            duration=self.duration,
        )


def serialize_details(details: Any) -> Optional[str]:
    """Compact JSON for the details column, or a fixed placeholder."""
    if details is None:
        return None
    try:
        return json.dumps(details, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        logger.warning("Could not serialize activity details of type %s", type(details).__name__)
        return SERIALIZATION_FAILED


class ActivitySink:
    """Bounded queue drained by one writer thread.

    ``enqueue`` never blocks; when the queue is full the entry is dropped.
    Each entry is written with a fresh session from ``session_factory``.
    Write failures are logged and the entry is lost (at-most-once).
    """

    _STOP = object()

    def __init__(self, session_factory: Callable[[], Session], maxsize: int = 1000):
        self._session_factory = session_factory
        self._queue: "queue.Queue" = queue.Queue(maxsize=maxsize)
        self._thread: Optional[threading.Thread] = None
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._thread = threading.Thread(target=self._run, name="activity-writer", daemon=True)
        self._thread.start()
        logger.info("Activity writer started")

    def stop(self, timeout: float = 5.0) -> None:
        """Drain what is queued, then stop the writer."""
        if not self.running:
            return
        self._queue.put(self._STOP)
        self._thread.join(timeout)
        self._thread = None
        logger.info("Activity writer stopped")

    def enqueue(self, entry: ActivityEntry) -> bool:
        try:
            self._queue.put_nowait(entry)
            return True
        except queue.Full:
            self.dropped += 1
            logger.warning(
                "Activity queue full; dropping %s on %s (dropped so far: %s)",
                entry.action, entry.entity_type, self.dropped,
            )
            return False

    def join(self) -> None:
        """Block until every queued entry has been handled."""
        self._queue.join()

    def _run(self) -> None:
        while True:
            entry = self._queue.get()
            try:
                if entry is self._STOP:
                    return
                self._write(entry)
            finally:
                self._queue.task_done()

    def _write(self, entry: ActivityEntry) -> None:
        db = None
        try:
            db = self._session_factory()
            db.add(entry.to_model())
            db.commit()
        except Exception:
            logger.exception(
                "Failed to write activity %s on %s for user %s",
                entry.action, entry.entity_type, entry.user_id,
            )
            if db is not None:
                db.rollback()
        finally:
            if db is not None:
                db.close()


_sink: Optional[ActivitySink] = None


def get_activity_sink() -> Optional[ActivitySink]:
    return _sink


def set_activity_sink(sink: Optional[ActivitySink]) -> None:
    global _sink
    _sink = sink


def _clip(column: str, value: Optional[str]) -> Optional[str]:
    """Cut a captured header or path down to the width of its audit column."""
    length = UserActivity.__table__.c[column].type.length
    if value is None or length is None or len(value) <= length:
        return value
    return value[:length]


def record_activity(
    context: RequestContext,
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    description: Optional[str] = None,
    details: Any = None,
    status_code: int = 200,
    is_success: bool = True,
    error_message: Optional[str] = None,
) -> Optional[ActivityEntry]:
    """Capture an activity entry now and queue it for writing.

    Returns the captured entry, or None when no sink is installed.
    """
    entry = ActivityEntry(
        user_id=context.user_id,
        user_name=context.user_name,
        user_role=context.user_role,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        details=serialize_details(details),
        http_method=context.http_method,
        endpoint=_clip("endpoint", context.endpoint),
        ip_address=_clip("ip_address", context.ip_address),
        user_agent=_clip("user_agent", context.user_agent),
        status_code=status_code,
        is_success=is_success,
        error_message=error_message,
        timestamp=datetime.utcnow(),
        duration=context.elapsed_ms(),
    )
    sink = _sink
    if sink is None:
        logger.debug("No activity sink installed; %s on %s not recorded", action, entity_type)
        return None
    sink.enqueue(entry)
    return entry
