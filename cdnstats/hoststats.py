# cdnstats/hoststats.py

import ipaddress
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from cdnstats.logparser import parse_timestamp
from cdnstats.schemas import HostStat, LogRecord

BYTES_PER_MB = 1024 * 1024

# Hosts seen this many times or fewer are treated as noise
NOISE_THRESHOLD = 2


@dataclass
class HostAccumulator:
    """Running totals for one host"""
    count: int = 0
    bytes: int = 0
    timestamps: List[str] = field(default_factory=list)

    def add(self, record: LogRecord) -> None:
        self.count += 1
        self.bytes += record.size
        self.timestamps.append(record.timestamp)


def is_ip_literal(host: str) -> bool:
    try:
        ipaddress.IPv4Address(host)
        return True
    except ValueError:
        return False


def request_window(timestamps: List[str]) -> tuple:
    """
    First and last raw timestamp plus elapsed seconds between them.
    Ordering uses parsed instants; if any value does not parse, raw string
    order is used instead and the elapsed time is 0.
    """
    if not timestamps:
        return "N/A", "N/A", 0.0

    parsed: List[Optional[datetime]] = [parse_timestamp(ts) for ts in timestamps]

    if any(dt is None for dt in parsed):
        ordered = sorted(timestamps)
        return ordered[0] or "N/A", ordered[-1] or "N/A", 0.0

    pairs = list(zip(parsed, timestamps))
    first_dt, first_raw = min(pairs, key=lambda p: p[0])
    last_dt, last_raw = max(pairs, key=lambda p: p[0])
    return first_raw, last_raw, (last_dt - first_dt).total_seconds()


def transfer_rate(total_bytes: int, elapsed_seconds: float) -> float:
    """Bytes per second, 0 for a non-positive window"""
    if elapsed_seconds <= 0:
        return 0.0
    return total_bytes / elapsed_seconds


def build_host_stat(host: str, acc: HostAccumulator) -> HostStat:
    first, last, elapsed = request_window(acc.timestamps)
    rate = transfer_rate(acc.bytes, elapsed)
    mbps = rate * 8 / 1_000_000

    return HostStat(
        host=host,
        request_count=acc.count,
        total_bytes=acc.bytes,
        first_request_timestamp=first,
        last_request_timestamp=last,
        elapsed_seconds=max(elapsed, 0.0),
        transfer_rate_bytes_per_second=rate,
        transfer_rate_mbps=mbps,
        transfer_rate_gbps=mbps / 1000,
        transfer_rate_mb_per_second=rate / BYTES_PER_MB,
        total_size_mb=acc.bytes / BYTES_PER_MB,
    )


def aggregate_host_stats(
    records: Iterable[LogRecord],
    min_requests: int = NOISE_THRESHOLD + 1,
    exclude_ip_hosts: bool = False,
) -> List[HostStat]:
    """
    Group records by host and compute per-host traffic.
    Sorted by total bytes, largest first; ties keep encounter order.
    """
    buckets: Dict[str, HostAccumulator] = {}

    for record in records:
        if not record.host:
            continue
        buckets.setdefault(record.host, HostAccumulator()).add(record)

    stats: List[HostStat] = []
    for host, acc in buckets.items():
        if acc.count < min_requests:
            continue
        if exclude_ip_hosts and is_ip_literal(host):
            continue
        stats.append(build_host_stat(host, acc))

    stats.sort(key=lambda s: s.total_bytes, reverse=True)
    return stats


def host_summary(records: Iterable[LogRecord], host: str) -> dict:
    """Detailed breakdown of all records for one host"""
    host_records = [r for r in records if r.host == host]

    if not host_records:
        return {
            "hostName": host,
            "totalRequests": 0,
            "message": "No logs found for this host",
        }

    total_bytes = sum(r.size for r in host_records)

    status_counts: Dict[str, int] = {}
    for r in host_records:
        status_counts[r.status_code] = status_counts.get(r.status_code, 0) + 1

    response_times = []
    for r in host_records:
        try:
            response_times.append(float(r.response_time_ms))
        except ValueError:
            response_times.append(0.0)
    avg_response = sum(response_times) / len(response_times)

    # dict keeps first-seen order
    client_ips = list(dict.fromkeys(r.client_ip for r in host_records))
    user_agents = list(dict.fromkeys(r.user_agent for r in host_records))

    first, last, elapsed = request_window([r.timestamp for r in host_records])
    rate = transfer_rate(total_bytes, elapsed)

    return {
        "hostName": host,
        "totalRequests": len(host_records),
        "uniqueIPs": len(client_ips),
        "ipList": client_ips,
        "statusCodeBreakdown": status_counts,
        "totalDataTransferred": total_bytes,
        "totalDataTransferredMB": round(total_bytes / BYTES_PER_MB, 2),
        "averageResponseTime": round(avg_response, 3),
        "uniqueUserAgents": len(user_agents),
        "userAgentList": user_agents,
        "firstRequest": first,
        "lastRequest": last,
        "timeDifferenceSeconds": round(max(elapsed, 0.0), 2),
        "transferRateBytesPerSecond": round(rate, 2),
        "transferRateMbps": round(rate * 8 / 1_000_000, 4),
    }
