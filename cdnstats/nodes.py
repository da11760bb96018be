# cdnstats/nodes.py

import asyncio
import ipaddress
from dataclasses import dataclass
from typing import List, Optional

import aiohttp
from pydantic import ValidationError

from cdnstats.config import settings
from cdnstats.hoststats import aggregate_host_stats
from cdnstats.logparser import parse_many
from cdnstats.schemas import EdgeNode
import logging

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_INVALID_CONTENT = "invalid_content"
STATUS_NETWORK_ERROR = "network_error"

PREVIEW_LENGTH = 200
BYTES_PER_MB = 1024 * 1024
BYTES_PER_GB = 1024 * 1024 * 1024


def ip_to_long(ip: str) -> int:
    """Dotted IPv4 address as an unsigned 32-bit integer"""
    return int(ipaddress.IPv4Address(ip.strip()))


@dataclass
class NodeTarget:
    """Edge node plus the log URL derived from its address"""
    node: EdgeNode
    ip: str
    ip_long: Optional[int]
    log_url: Optional[str]

    def describe(self) -> dict:
        return {
            "server": self.node.model_dump(),
            "ip": self.ip,
            "ipLong": self.ip_long,
            "logUrl": self.log_url,
        }


@dataclass
class NodeLogResult:
    """Outcome of fetching one node's log"""
    target: NodeTarget
    status: str
    content: Optional[str] = None
    content_type: str = "unknown"
    error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.status == STATUS_SUCCESS

    @property
    def size(self) -> int:
        return len(self.content.encode("utf-8")) if self.content else 0

    @property
    def lines(self) -> List[str]:
        if not self.content:
            return []
        return [line for line in self.content.split("\n") if line.strip()]


def build_target(node: EdgeNode, url_template: Optional[str] = None) -> NodeTarget:
    template = url_template or settings.node_log_url_template
    try:
        ip_long = ip_to_long(node.ip)
    except ValueError:
        return NodeTarget(node=node, ip=node.ip, ip_long=None, log_url=None)

    return NodeTarget(
        node=node,
        ip=node.ip,
        ip_long=ip_long,
        log_url=template.format(ip=node.ip.strip(), ip_long=ip_long),
    )


def filter_category(nodes: List[dict], category: Optional[int] = None) -> List[EdgeNode]:
    """Nodes of the given category; entries without an ip are skipped"""
    category = settings.node_category if category is None else category
    selected: List[EdgeNode] = []

    for raw in nodes:
        try:
            node = EdgeNode.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Skipping malformed node entry {raw!r}: {e}")
            continue
        if type(node.category) is int and node.category == category:
            selected.append(node)

    return selected


def describe_error(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


async def fetch_node_log(session: aiohttp.ClientSession, target: NodeTarget, timeout: float) -> NodeLogResult:
    """Fetch and classify a single node's log"""
    if target.log_url is None:
        return NodeLogResult(
            target=target,
            status=STATUS_NETWORK_ERROR,
            error=f"Network error: invalid IP address {target.ip!r}",
        )

    async def read() -> tuple:
        async with session.get(target.log_url) as response:
            response.raise_for_status()
            text = await response.text(errors="replace")
            return text, response.headers.get("Content-Type", "unknown")

    try:
        content, content_type = await asyncio.wait_for(read(), timeout)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning(f"Failed to read log from {target.ip}: {describe_error(e)}")
        return NodeLogResult(
            target=target,
            status=STATUS_NETWORK_ERROR,
            error=f"Network error: {describe_error(e)}",
        )

    if not content or not content.strip():
        logger.info(f"Empty log content from {target.ip}")
        return NodeLogResult(
            target=target,
            status=STATUS_INVALID_CONTENT,
            content=content,
            content_type=content_type,
            error="Empty or null log content",
        )

    logger.info(f"Read log from {target.ip} ({len(content)} characters)")
    return NodeLogResult(target=target, status=STATUS_SUCCESS, content=content, content_type=content_type)


async def collect_node_logs(
    nodes: List[EdgeNode],
    session: Optional[aiohttp.ClientSession] = None,
    timeout: Optional[float] = None,
    concurrency: Optional[int] = None,
    deadline: Optional[float] = None,
) -> List[NodeLogResult]:
    """
    Fetch every node's log concurrently.
    Always returns one result per node, in input order; a failing node never
    affects the others. Fetches still pending at the deadline are cancelled
    and reported as network errors.
    """
    if session is None:
        headers = {"User-Agent": settings.node_user_agent}
        async with aiohttp.ClientSession(headers=headers) as own_session:
            return await collect_node_logs(nodes, own_session, timeout, concurrency, deadline)

    timeout = timeout or settings.node_fetch_timeout_seconds
    concurrency = concurrency or settings.node_fetch_concurrency
    deadline = deadline if deadline is not None else settings.node_fetch_deadline_seconds

    targets = [build_target(node) for node in nodes]
    if not targets:
        return []

    semaphore = asyncio.Semaphore(concurrency)

    async def bounded_fetch(target: NodeTarget) -> NodeLogResult:
        async with semaphore:
            return await fetch_node_log(session, target, timeout)

    tasks = [asyncio.ensure_future(bounded_fetch(t)) for t in targets]
    _, pending = await asyncio.wait(tasks, timeout=deadline)

    if pending:
        logger.warning(f"Cancelling {len(pending)} node fetches after {deadline}s deadline")
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    results: List[NodeLogResult] = []
    for target, task in zip(targets, tasks):
        if task.cancelled():
            results.append(NodeLogResult(
                target=target,
                status=STATUS_NETWORK_ERROR,
                error="Network error: deadline exceeded",
            ))
        elif task.exception() is not None:
            logger.error(f"Unexpected error fetching log from {target.ip}: {task.exception()}")
            results.append(NodeLogResult(
                target=target,
                status=STATUS_NETWORK_ERROR,
                error=f"Network error: {describe_error(task.exception())}",
            ))
        else:
            results.append(task.result())

    return results


# ──────────────────────────────────────────────────────────────────────────────
# Response shaping
# ──────────────────────────────────────────────────────────────────────────────

def content_preview(content: str) -> str:
    return content[:PREVIEW_LENGTH] + ("..." if len(content) > PREVIEW_LENGTH else "")


def fetch_view(result: NodeLogResult) -> dict:
    """Per-node entry of the full fetch listing"""
    view = result.target.describe()
    if result.status == STATUS_NETWORK_ERROR:
        view.update(success=False, error=result.error, logContent=None, logSize=0)
    else:
        view.update(
            success=True,
            logContent=result.content,
            logSize=result.size,
            contentType=result.content_type,
        )
    return view


def valid_node_view(
    result: NodeLogResult,
    include_content: bool = True,
    include_lines: bool = False,
    max_content_length: Optional[int] = None,
) -> dict:
    content = result.content or ""
    lines = result.lines
    size = result.size

    view = result.target.describe()
    view.update(
        logSize=size,
        logSizeMB=round(size / BYTES_PER_MB, 2),
        logSizeKB=round(size / 1024, 2),
        totalLines=len(lines),
        hasValidContent=True,
        contentPreview=content_preview(content),
        status=result.status,
    )

    if include_content:
        if max_content_length and len(content) > max_content_length:
            content = (
                content[:max_content_length]
                + f"\n... [Content truncated. Original size: {len(result.content)} chars]"
            )
        view["logContent"] = content

    if include_lines:
        view["logLines"] = lines

    return view


def invalid_node_view(result: NodeLogResult) -> dict:
    view = result.target.describe()
    view.update(
        logSize=0,
        hasValidContent=False,
        reason=result.error,
        status=result.status,
    )
    return view


def fetch_summary(total_nodes: int, results: List[NodeLogResult]) -> dict:
    fetched = [r for r in results if r.status != STATUS_NETWORK_ERROR]
    total_size = sum(r.size for r in fetched)
    return {
        "totalNodes": total_nodes,
        "categoryServers": len(results),
        "successfulLogReads": len(fetched),
        "failedLogReads": len(results) - len(fetched),
        "totalLogSize": total_size,
        "totalLogSizeMB": round(total_size / BYTES_PER_MB, 2),
    }


def valid_summary(total_nodes: int, results: List[NodeLogResult]) -> dict:
    valid = [r for r in results if r.is_valid]
    total_size = sum(r.size for r in valid)
    percentage = (len(valid) / len(results) * 100) if results else 0.0
    return {
        "totalNodes": total_nodes,
        "categoryServers": len(results),
        "validNodes": len(valid),
        "invalidNodes": len(results) - len(valid),
        "validPercentage": f"{percentage:.2f}%",
        "totalLogSize": total_size,
        "totalLogSizeMB": round(total_size / BYTES_PER_MB, 2),
        "totalLogSizeGB": round(total_size / BYTES_PER_GB, 3),
        "totalLines": sum(len(r.lines) for r in valid),
    }


def process_node_logs(results: List[NodeLogResult]) -> List[dict]:
    """
    Per-node host statistics for every node with valid content.
    A node that fails to process is reported on its own.
    """
    processed: List[dict] = []

    for result in results:
        if not result.is_valid:
            continue

        target = result.target
        try:
            records = parse_many(result.content)
            host_stats = aggregate_host_stats(records, exclude_ip_hosts=True)
            processed.append({
                "serverIP": target.ip,
                "serverIPLong": target.ip_long,
                "logUrl": target.log_url,
                "originalLogSize": result.size,
                "originalLogSizeMB": round(result.size / BYTES_PER_MB, 2),
                "totalEntries": len(records),
                "hostStatistics": [s.model_dump(by_alias=True) for s in host_stats],
            })
            logger.info(f"Processed {len(records)} log entries for {target.ip} - {len(host_stats)} hosts")
        except Exception as e:
            logger.error(f"Error processing log content for {target.ip}: {e}")
            processed.append({
                "serverIP": target.ip,
                "serverIPLong": target.ip_long,
                "logUrl": target.log_url,
                "error": str(e),
                "status": "processing_error",
            })

    return processed
