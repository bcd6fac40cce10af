import math
import numbers
import threading
import weakref
from collections import namedtuple
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from boneyard.extensions import db
from boneyard.models import Climb, ClimbLog
from boneyard.helpers.errors import ClimbNotFound, StatsUpdateError

ClimbStats = namedtuple("ClimbStats", ["ascent_count", "avg_rating"])


def is_numeric_rating(value) -> bool:
    """
    A rating counts if it's a real, finite number.

    None / strings / booleans are excluded. A present 0 still counts.
    """
    if isinstance(value, bool):
        return False
    if not isinstance(value, numbers.Real):
        return False
    return math.isfinite(value)


def aggregate_ratings(ratings) -> ClimbStats:
    total = 0
    count = 0
    for r in ratings:
        if not is_numeric_rating(r):
            continue
        total += r
        count += 1

    avg = (total / count) if count > 0 else 0
    return ClimbStats(ascent_count=count, avg_rating=float(avg))


# --- per-climb serialisation ---

# entries go away once no thread holds or waits on the lock
_CLIMB_LOCKS = weakref.WeakValueDictionary()
_CLIMB_LOCKS_GUARD = threading.Lock()


def _lock_for(climb_id: str) -> threading.Lock:
    with _CLIMB_LOCKS_GUARD:
        lock = _CLIMB_LOCKS.get(climb_id)
        if lock is None:
            lock = _CLIMB_LOCKS[climb_id] = threading.Lock()
        return lock


@contextmanager
def climb_lock(climb_id: str, enabled: bool = True):
    """Serialise read-recompute-write for one climb within this process."""
    if not enabled:
        yield
        return

    lock = _lock_for(climb_id)
    with lock:
        yield


# --- aggregator ---

def recompute_climb_stats(climb_id: str, session: Session = None) -> ClimbStats:
    """
    Recompute ascentCount / avgRating for a climb from all of its logs and
    write exactly those two fields back onto the climb.

    Runs in its own session unless one is passed in. Raises ClimbNotFound
    when the climb row is gone, StatsUpdateError for DB failures.
    """
    serialize = current_app.config.get("STATS_SERIALIZE_PER_CLIMB", True)

    with climb_lock(climb_id, enabled=serialize):
        if session is not None:
            return _recompute(session, climb_id)

        with Session(db.engine) as own_session:
            return _recompute(own_session, climb_id)


def _recompute(session: Session, climb_id: str) -> ClimbStats:
    try:
        ratings = session.execute(
            select(ClimbLog.rating).where(ClimbLog.climb_id == climb_id)
        ).scalars().all()

        stats = aggregate_ratings(ratings)

        result = session.execute(
            update(Climb)
            .where(Climb.id == climb_id)
            .values(ascent_count=stats.ascent_count, avg_rating=stats.avg_rating)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            session.rollback()
            raise ClimbNotFound(climb_id)

        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        current_app.logger.error(
            "STATS failed climb_id=%s error=%s", climb_id, e
        )
        raise StatsUpdateError(climb_id, e) from e

    current_app.logger.info(
        "STATS updated climb_id=%s ascents=%s avg=%.2f",
        climb_id, stats.ascent_count, stats.avg_rating,
    )
    return stats


def update_climb_stats(climb_id: str, event) -> None:
    """Change feed subscriber: a log under `climb_id` was written."""
    recompute_climb_stats(climb_id)


def recompute_all_climb_stats() -> dict:
    """
    Manual sweep over every climb. Returns {climb_id: ClimbStats}.
    Climbs deleted while the sweep runs are skipped.
    """
    out = {}
    climb_ids = db.session.execute(select(Climb.id)).scalars().all()
    for climb_id in climb_ids:
        try:
            out[climb_id] = recompute_climb_stats(climb_id)
        except ClimbNotFound:
            current_app.logger.warning("STATS skipped deleted climb climb_id=%s", climb_id)
    return out
