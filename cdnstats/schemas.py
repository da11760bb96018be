# cdnstats/schemas.py

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Optional


class LogRecord(BaseModel):
    """One line of an edge node access log"""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    line_number: int
    client_ip: str = ""
    timestamp: str = ""  # Raw, e.g. "[10/Sep/2025:06:45:01 +0000]"
    host: str = ""
    request: str = ""
    status_code: str = ""
    size_bytes: str = ""
    referer: str = ""
    user_agent: str = ""
    response_time_ms: str = ""

    @property
    def size(self) -> int:
        """Transferred bytes, 0 when the raw field is not a number"""
        try:
            return int(self.size_bytes.strip())
        except ValueError:
            return 0


class HostStat(BaseModel):
    """Traffic of a single host over one set of log records"""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    host: str
    request_count: int
    total_bytes: int
    first_request_timestamp: str
    last_request_timestamp: str
    elapsed_seconds: float = 0.0
    transfer_rate_bytes_per_second: float = 0.0
    transfer_rate_mbps: float = 0.0
    transfer_rate_gbps: float = 0.0
    transfer_rate_mb_per_second: float = 0.0
    total_size_mb: float = 0.0


class DomainOwnership(BaseModel):
    """Registered domain (or *.wildcard) owned by an account"""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    username: Optional[str] = None
    domain: Optional[str] = None


class BandwidthSample(BaseModel):
    """One row of the ranked bandwidth-by-domain report"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    host: str = Field(alias="domain")
    bandwidth: float = 0


class EdgeNode(BaseModel):
    """CDN node from the node list; unknown metadata is kept as-is"""

    model_config = ConfigDict(extra="allow")

    ip: str
    # Kept exactly as sent; selection compares it strictly
    category: Any = None
