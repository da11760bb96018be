# cdnstats/logs.py

from typing import List, Optional, Tuple

import aiohttp
from fastapi import APIRouter, Query

from cdnstats.config import settings
from cdnstats.errors import error_response
from cdnstats.hoststats import aggregate_host_stats, host_summary
from cdnstats.logparser import parse_log_file, read_log_lines
from cdnstats.nodes import (
    NodeLogResult,
    build_target,
    collect_node_logs,
    fetch_summary,
    fetch_view,
    filter_category,
    invalid_node_view,
    process_node_logs,
    valid_node_view,
    valid_summary,
)
from cdnstats.schemas import EdgeNode
from cdnstats.sources import fetch_node_list
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def query_flag(value: Optional[str], default: bool) -> bool:
    """Interpret "true"/"false" query strings, anything else means default"""
    if value is None:
        return default
    if default:
        return value.lower() != "false"
    return value.lower() == "true"


def query_int(value: Optional[str]) -> Optional[int]:
    try:
        parsed = int(value) if value is not None else None
    except ValueError:
        return None
    return parsed if parsed and parsed > 0 else None


async def load_category_nodes(fetch_logs: bool) -> Tuple[List[dict], List[EdgeNode], List[NodeLogResult]]:
    """Node list, the nodes of the configured category and optionally their logs"""
    headers = {"User-Agent": settings.node_user_agent}
    async with aiohttp.ClientSession(headers=headers) as session:
        all_nodes = await fetch_node_list(session)
        nodes = filter_category(all_nodes)
        logger.info(f"Category {settings.node_category} servers found: {len(nodes)}")

        results: List[NodeLogResult] = []
        if fetch_logs:
            results = await collect_node_logs(nodes, session=session)

    return all_nodes, nodes, results


# ──────────────────────────────────────────────────────────────────────────────
# Local log file
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/getlogs")
def get_log_lines():
    """Raw lines of the local log file"""
    try:
        lines = read_log_lines(settings.log_file_path)
        return {"success": True, "totalLines": len(lines), "lines": lines}
    except Exception as e:
        logger.error(f"Failed to read log file: {e}")
        return error_response(e)


@router.get("/getlogs/parsed")
def get_parsed_logs():
    try:
        records = parse_log_file(settings.log_file_path)
        return {
            "success": True,
            "totalEntries": len(records),
            "entries": [r.model_dump(by_alias=True) for r in records],
        }
    except Exception as e:
        logger.error(f"Failed to parse log file: {e}")
        return error_response(e)


@router.get("/getlogs/hosts/stats-with-size")
def get_host_stats_with_size():
    """Per-host request count, bytes and transfer rate, largest first"""
    try:
        stats = aggregate_host_stats(parse_log_file(settings.log_file_path))
        return {
            "success": True,
            "totalHosts": len(stats),
            "hostStats": [s.model_dump(by_alias=True) for s in stats],
        }
    except Exception as e:
        logger.error(f"Failed to compute host stats: {e}")
        return error_response(e)


@router.get("/getlogs/hosts/{host}/summary")
def get_host_summary(host: str):
    try:
        summary = host_summary(parse_log_file(settings.log_file_path), host)
        return {"success": True, "summary": summary}
    except Exception as e:
        logger.error(f"Failed to summarize host {host}: {e}")
        return error_response(e)


# ──────────────────────────────────────────────────────────────────────────────
# Edge node logs
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/getlogs/category4/nodes")
async def get_category_nodes():
    """Fetch every category node's log"""
    try:
        all_nodes, nodes, results = await load_category_nodes(fetch_logs=True)
        return {
            "success": True,
            "summary": fetch_summary(len(all_nodes), results),
            "categoryServers": [n.model_dump() for n in nodes],
            "logResults": [fetch_view(r) for r in results],
        }
    except Exception as e:
        logger.error(f"Error in category nodes endpoint: {e}")
        return error_response(e, "Failed to fetch node list or read log files")


@router.get("/getlogs/category4/nodes-only")
async def get_category_nodes_only():
    """Node list with derived log URLs, nothing is fetched"""
    try:
        all_nodes, nodes, _ = await load_category_nodes(fetch_logs=False)
        servers = []
        for node in nodes:
            target = build_target(node)
            servers.append({**node.model_dump(), "ipLong": target.ip_long, "logUrl": target.log_url})

        return {
            "success": True,
            "summary": {"totalNodes": len(all_nodes), "categoryServers": len(nodes)},
            "categoryServers": servers,
            "allNodes": all_nodes,
        }
    except Exception as e:
        logger.error(f"Error in category nodes-only endpoint: {e}")
        return error_response(e, "Failed to fetch node list")


@router.get("/getlogs/category4/valid-nodes")
async def get_valid_nodes(
    include_content: Optional[str] = Query(None, alias="includeContent"),
    include_lines: Optional[str] = Query(None, alias="includeLines"),
    max_content_length: Optional[str] = Query(None, alias="maxContentLength"),
):
    """Split category nodes into those with log content and those without"""
    with_content = query_flag(include_content, True)
    with_lines = query_flag(include_lines, False)
    max_length = query_int(max_content_length)

    try:
        all_nodes, _, results = await load_category_nodes(fetch_logs=True)
        valid = [valid_node_view(r, with_content, with_lines, max_length) for r in results if r.is_valid]
        invalid = [invalid_node_view(r) for r in results if not r.is_valid]

        return {
            "success": True,
            "summary": valid_summary(len(all_nodes), results),
            "validNodes": valid,
            "invalidNodes": invalid,
            "validServerIPs": [
                {"ip": v["ip"], "ipLong": v["ipLong"], "logUrl": v["logUrl"], "logSizeMB": v["logSizeMB"]}
                for v in valid
            ],
        }
    except Exception as e:
        logger.error(f"Error in category valid-nodes endpoint: {e}")
        return error_response(e, "Failed to fetch node list or check log content validity")


@router.get("/getlogs/category4/process-content")
async def get_processed_content():
    """Host statistics for each node with valid log content"""
    try:
        _, _, results = await load_category_nodes(fetch_logs=True)
        valid_count = sum(1 for r in results if r.is_valid)
        processed = process_node_logs(results)

        return {
            "success": True,
            "summary": {
                "validNodesProcessed": valid_count,
                "successfullyProcessed": sum(1 for p in processed if "error" not in p),
                "processingErrors": sum(1 for p in processed if "error" in p),
            },
            "processedLogContent": processed,
        }
    except Exception as e:
        logger.error(f"Error in process-content endpoint: {e}")
        return error_response(e, "Failed to process log content from valid nodes")
