# cdnstats/models.py

from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Index
)
from cdnstats.database import Base


class TrafficGraph(Base):
    """Append-only per-pass bandwidth per account, pruned by retention"""
    __tablename__ = "traffic_graph"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_name = Column(String(100), nullable=False)
    bandwidth = Column(Float, nullable=False, default=0)
    timeline = Column(DateTime, nullable=False)  # Pass time, second precision (UTC)

    __table_args__ = (
        Index("ix_traffic_graph_timeline", "timeline"),
        Index("ix_traffic_graph_user_timeline", "user_name", "timeline"),
    )

    def to_dict(self) -> dict:
        return {
            "user_name": self.user_name,
            "bandwidth": self.bandwidth,
            "timeline": self.timeline.strftime("%Y-%m-%d %H:%M:%S"),
        }


class Traffic(Base):
    """Cumulative bandwidth per account, written by a separate ingestion path"""
    __tablename__ = "traffic"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_name = Column(String(100), nullable=False)
    domain = Column(String(255), nullable=True)
    bandwidth = Column(Float, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_name": self.user_name,
            "domain": self.domain,
            "bandwidth": self.bandwidth,
            "updated_at": self.updated_at.strftime("%Y-%m-%d %H:%M:%S") if self.updated_at else None,
        }
