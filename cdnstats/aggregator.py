# cdnstats/aggregator.py

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Dict, Iterable, List, Optional
from sqlalchemy.orm import Session as DBSession
from cdnstats.config import settings
from cdnstats.database import SessionLocal
from cdnstats.matcher import match_owner
from cdnstats.models import TrafficGraph
from cdnstats.schemas import BandwidthSample, DomainOwnership
from cdnstats.sources import fetch_bandwidth_report, fetch_domain_list
import logging

logger = logging.getLogger(__name__)


@dataclass
class Attribution:
    """Bandwidth sample resolved to its owning account"""
    username: str
    domain: str
    host: str
    bandwidth: float


class AggregationState:
    """
    Idle/Running state of the aggregation job.
    Only one pass may run at a time; overlapping ticks are skipped.
    """

    def __init__(self):
        self._pass_lock = Lock()
        self._lock = Lock()
        self.running: bool = False
        self.last_started: Optional[datetime] = None
        self.last_finished: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.last_users: int = 0
        self.passes: int = 0
        self.skipped: int = 0

    def try_begin(self) -> bool:
        if not self._pass_lock.acquire(blocking=False):
            with self._lock:
                self.skipped += 1
            return False

        with self._lock:
            self.running = True
            self.last_started = datetime.now(timezone.utc)
        return True

    def finish(self, users: int = 0, error: Optional[str] = None) -> None:
        with self._lock:
            self.running = False
            self.last_finished = datetime.now(timezone.utc)
            self.last_error = error
            self.last_users = users
            self.passes += 1
        self._pass_lock.release()

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "state": "running" if self.running else "idle",
                "last_started": self.last_started.isoformat() if self.last_started else None,
                "last_finished": self.last_finished.isoformat() if self.last_finished else None,
                "last_error": self.last_error,
                "last_users": self.last_users,
                "passes": self.passes,
                "skipped_ticks": self.skipped,
            }


# Global singleton
aggregation_state = AggregationState()


def get_pass_timestamp() -> datetime:
    """Current UTC time truncated to the second"""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def attribute_samples(
    samples: Iterable[BandwidthSample],
    ownerships: List[DomainOwnership],
) -> List[Attribution]:
    """
    Resolve each sample to its owning account.
    Unmatched samples are dropped. Result is ordered by bandwidth, largest first.
    """
    attributed: List[Attribution] = []

    for sample in samples:
        owner = match_owner(sample.host, ownerships)
        if owner is None or not owner.username:
            continue
        attributed.append(Attribution(
            username=owner.username,
            domain=owner.domain,
            host=sample.host,
            bandwidth=sample.bandwidth,
        ))

    attributed.sort(key=lambda a: a.bandwidth, reverse=True)
    return attributed


def collapse_by_user(attributions: Iterable[Attribution]) -> Dict[str, float]:
    """Sum bandwidth per username, highest total first"""
    totals: Dict[str, float] = {}
    for a in attributions:
        totals[a.username] = totals.get(a.username, 0) + a.bandwidth

    return dict(sorted(totals.items(), key=lambda item: item[1], reverse=True))


def purge_expired(db: DBSession, now: datetime, retention_days: int) -> int:
    """Delete time-series rows older than the retention window"""
    cutoff = now - timedelta(days=retention_days)
    return (
        db.query(TrafficGraph)
        .filter(TrafficGraph.timeline < cutoff)
        .delete(synchronize_session=False)
    )


def write_traffic_graph(db: DBSession, now: datetime, totals: Dict[str, float]) -> int:
    """Append one row per username with positive bandwidth"""
    written = 0
    for user_name, bandwidth in totals.items():
        if bandwidth <= 0:
            continue
        db.add(TrafficGraph(user_name=user_name, bandwidth=bandwidth, timeline=now))
        written += 1
    return written


def run_traffic_pass(
    db: DBSession,
    samples: List[BandwidthSample],
    ownerships: List[DomainOwnership],
    now: Optional[datetime] = None,
    retention_days: Optional[int] = None,
) -> Dict[str, float]:
    """
    Attribute samples, purge expired rows and append this pass's rows.
    Rolls back and re-raises on any database error.
    """
    now = now or get_pass_timestamp()
    retention_days = retention_days if retention_days is not None else settings.retention_days

    totals = collapse_by_user(attribute_samples(samples, ownerships))

    try:
        purged = purge_expired(db, now, retention_days)
        written = write_traffic_graph(db, now, totals)
        db.commit()
        logger.info(f"Traffic pass for {now}: {len(samples)} samples, {written} users written, {purged} expired rows purged")

    except Exception as e:
        db.rollback()
        logger.error(f"Traffic pass write failed: {e}")
        raise

    return totals


def run_aggregation() -> bool:
    """
    Called every interval by scheduler.
    Fetches bandwidth and ownership data and writes per-account rows.
    Returns False when the tick was skipped or the pass failed.
    """
    if not aggregation_state.try_begin():
        logger.warning("Aggregation pass still running - skipping this tick")
        return False

    users = 0
    error: Optional[str] = None
    try:
        samples = fetch_bandwidth_report()
        ownerships = fetch_domain_list()

        db = SessionLocal()
        try:
            totals = run_traffic_pass(db, samples, ownerships)
            users = sum(1 for v in totals.values() if v > 0)
        finally:
            db.close()

        logger.info("Traffic table processed successfully")

    except Exception as e:
        error = str(e)
        logger.error(f"Aggregation error: {e}")

    finally:
        aggregation_state.finish(users=users, error=error)

    return error is None
