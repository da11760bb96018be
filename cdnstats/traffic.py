# cdnstats/traffic.py

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session as DBSession
from cdnstats.aggregator import aggregation_state
from cdnstats.database import get_db
from cdnstats.errors import error_response
from cdnstats.models import Traffic, TrafficGraph
from cdnstats.sources import fetch_domain_list_raw
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/getusername_dns")
def get_username_dns(db: DBSession = Depends(get_db)):
    """Cumulative bandwidth per account"""
    try:
        rows = db.query(Traffic).order_by(Traffic.id).all()
        return [row.to_dict() for row in rows]
    except Exception as e:
        logger.error(f"Failed to read traffic table: {e}")
        return error_response(e, "Failed to fetch data")


@router.get("/getusername_dns_graph")
def get_username_dns_graph(
    user_name: Optional[str] = Query(None),
    db: DBSession = Depends(get_db),
):
    """Per-pass bandwidth history, oldest first"""
    try:
        query = db.query(TrafficGraph)
        if user_name:
            query = query.filter(TrafficGraph.user_name == user_name)
        rows = query.order_by(TrafficGraph.timeline, TrafficGraph.id).all()
        return [row.to_dict() for row in rows]
    except Exception as e:
        logger.error(f"Failed to read traffic graph: {e}")
        return error_response(e, "Failed to fetch data")


@router.get("/getdns/traffic")
def get_dns_traffic():
    """Domain ownership list as the authority returns it"""
    try:
        return fetch_domain_list_raw()
    except Exception as e:
        logger.error(f"Failed to fetch domain list: {e}")
        return error_response(e)


@router.get("/health")
def health_check():
    """Simple health check endpoint"""
    return {"status": "healthy", "aggregation": aggregation_state.snapshot()}
