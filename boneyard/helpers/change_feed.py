"""
In-process change feed for climb log writes.

Every committed create / update / delete of a log row is published as a
LogChangeEvent to each subscriber as ``callback(climb_id, event)``.
Subscribers don't know (or care) how the write happened: a route, a CLI
command or a script all go through the same SQLAlchemy session hooks.

Delivery rules:
- events are only published after the writing transaction commits;
  a rollback drops them
- each subscriber is called independently; one failing never stops the
  others, and never reaches the code that did the write
- transient DB errors are retried FEED_MAX_ATTEMPTS times with backoff,
  then logged and dropped (the next write recomputes anyway)
"""
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from flask import current_app, has_app_context
from sqlalchemy import event, inspect

from boneyard.helpers.errors import ClimbNotFound
from boneyard.helpers.retry import retry_with_backoff, is_transient_db_error

PENDING_EVENTS_KEY = "boneyard_pending_log_events"

EVENT_CREATE = "create"
EVENT_UPDATE = "update"
EVENT_DELETE = "delete"


@dataclass(frozen=True)
class LogChangeEvent:
    climb_id: str
    log_id: str
    kind: str
    before: Optional[dict] = None
    after: Optional[dict] = None


Subscriber = Callable[[str, LogChangeEvent], None]


class ChangeFeed:
    def __init__(self, app=None):
        self._subscribers: list = []
        self._lock = threading.Lock()
        self.app = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        app.extensions["change_feed"] = self

    # --- subscriptions ---

    def subscribe(self, callback: Subscriber) -> Subscriber:
        """Register a callback. Registering the same callback twice is a no-op."""
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    @property
    def subscribers(self) -> list:
        with self._lock:
            return list(self._subscribers)

    # --- delivery ---

    def publish(self, evt: LogChangeEvent) -> int:
        """Deliver to every subscriber. Returns how many succeeded."""
        delivered = 0
        for callback in self.subscribers:
            if self.deliver(callback, evt):
                delivered += 1
        return delivered

    def deliver(self, callback: Subscriber, evt: LogChangeEvent) -> bool:
        if has_app_context() or self.app is None:
            return self._deliver(callback, evt)

        with self.app.app_context():
            return self._deliver(callback, evt)

    def _deliver(self, callback: Subscriber, evt: LogChangeEvent) -> bool:
        app = current_app if has_app_context() else None
        attempts = app.config.get("FEED_MAX_ATTEMPTS", 3) if app else 3
        base_delay = app.config.get("FEED_RETRY_BASE_DELAY", 0.05) if app else 0.05
        name = getattr(callback, "__name__", repr(callback))

        try:
            retry_with_backoff(
                lambda: callback(evt.climb_id, evt),
                attempts=attempts,
                base_delay=base_delay,
                is_retryable=is_transient_db_error,
            )
        except ClimbNotFound as e:
            # Log written for a climb that's gone (deleted mid-flight).
            # Nothing to update; `flask prune-orphans` cleans these up.
            _log("warning",
                 "FEED orphaned log write climb_id=%s log_id=%s kind=%s subscriber=%s error=%s",
                 evt.climb_id, evt.log_id, evt.kind, name, e)
            return False
        except Exception as e:
            _log("error",
                 "FEED delivery failed climb_id=%s log_id=%s kind=%s subscriber=%s error=%s",
                 evt.climb_id, evt.log_id, evt.kind, name, e)
            return False

        return True


def _log(level: str, msg: str, *args) -> None:
    if has_app_context():
        getattr(current_app.logger, level)(msg, *args)


# --- SQLAlchemy session hooks ---

# column attribute -> snapshot key
_SNAPSHOT_FIELDS = {
    "email": "email",
    "comment": "comment",
    "rating": "rating",
    "grade": "grade",
}


def _before_state(obj) -> dict:
    """Snapshot with modified attributes rolled back to their loaded values."""
    before = obj.snapshot()
    state = inspect(obj)
    for attr_key, snap_key in _SNAPSHOT_FIELDS.items():
        hist = state.attrs[attr_key].history
        if hist.deleted:
            before[snap_key] = hist.deleted[0]
    return before


def _collect_events(session, model) -> list:
    out = []

    for obj in session.new:
        if isinstance(obj, model):
            out.append(LogChangeEvent(
                climb_id=obj.climb_id,
                log_id=obj.user_id,
                kind=EVENT_CREATE,
                after=obj.snapshot(),
            ))

    for obj in session.dirty:
        if isinstance(obj, model) and session.is_modified(obj, include_collections=False):
            out.append(LogChangeEvent(
                climb_id=obj.climb_id,
                log_id=obj.user_id,
                kind=EVENT_UPDATE,
                before=_before_state(obj),
                after=obj.snapshot(),
            ))

    for obj in session.deleted:
        if isinstance(obj, model):
            out.append(LogChangeEvent(
                climb_id=obj.climb_id,
                log_id=obj.user_id,
                kind=EVENT_DELETE,
                before=obj.snapshot(),
            ))

    return out


def _innermost_transaction(session):
    return session.get_nested_transaction() or session.get_transaction()


def _rollback_boundary(transaction):
    # a rollback unwinds to the nearest savepoint, or to the root
    while not transaction.nested and transaction.parent is not None:
        transaction = transaction.parent
    return transaction


def _inside(transaction, boundary) -> bool:
    while transaction is not None:
        if transaction is boundary:
            return True
        transaction = transaction.parent
    return False


_hooked = set()


def watch_model(session_target, model, feed: ChangeFeed) -> None:
    """
    Publish committed writes of `model` rows to `feed`.

    `session_target` is anything SQLAlchemy accepts for session events
    (Flask-SQLAlchemy's scoped session, a sessionmaker or a Session class).
    Safe to call more than once per (target, model).

    Pending events are tagged with the transaction that flushed them:
    rolling back a savepoint drops only what was flushed inside it, and
    the root transaction ending without a commit (rollback or close())
    drops everything.
    """
    key = (id(session_target), model)
    if key in _hooked:
        return
    _hooked.add(key)

    @event.listens_for(session_target, "after_flush")
    def _collect(session, flush_context):
        found = _collect_events(session, model)
        if found:
            txn = _innermost_transaction(session)
            session.info.setdefault(PENDING_EVENTS_KEY, []).extend((txn, evt) for evt in found)

    @event.listens_for(session_target, "after_commit")
    def _publish(session):
        # savepoint release; wait for the outer commit
        if session.in_nested_transaction():
            return
        pending = session.info.pop(PENDING_EVENTS_KEY, None)
        for _, evt in pending or []:
            feed.publish(evt)

    @event.listens_for(session_target, "after_soft_rollback")
    def _discard(session, previous_transaction):
        pending = session.info.get(PENDING_EVENTS_KEY)
        if not pending:
            return
        boundary = _rollback_boundary(previous_transaction)
        pending[:] = [(txn, evt) for txn, evt in pending if not _inside(txn, boundary)]

    @event.listens_for(session_target, "after_transaction_end")
    def _forget(session, transaction):
        if transaction.parent is None:
            session.info.pop(PENDING_EVENTS_KEY, None)
