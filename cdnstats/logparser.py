# cdnstats/logparser.py

from datetime import datetime, timezone
from typing import List, Optional
from cdnstats.schemas import LogRecord
import logging

logger = logging.getLogger(__name__)

FIELD_DELIMITER = "**"

# Positional layout of a log line
FIELDS = (
    "client_ip",
    "timestamp",
    "host",
    "request",
    "status_code",
    "size_bytes",
    "referer",
    "user_agent",
    "response_time_ms",
)

TIMESTAMP_FORMAT = "%d/%b/%Y:%H:%M:%S %z"
# Some nodes omit the offset; those values are read as UTC
LOCAL_TIMESTAMP_FORMAT = "%d/%b/%Y:%H:%M:%S"


def parse_line(line: str, line_number: int) -> LogRecord:
    """
    Split one log line into a LogRecord.
    Missing trailing fields default to an empty string.
    """
    parts = line.split(FIELD_DELIMITER)
    values = {name: parts[i] if i < len(parts) else "" for i, name in enumerate(FIELDS)}
    return LogRecord(line_number=line_number, **values)


def parse_many(raw_text: Optional[str]) -> List[LogRecord]:
    """
    Parse newline separated log content.
    Blank lines are discarded, remaining lines are numbered from 1.
    """
    if not raw_text:
        return []

    lines = [line for line in raw_text.split("\n") if line.strip()]
    records: List[LogRecord] = []

    for line_number, line in enumerate(lines, start=1):
        try:
            records.append(parse_line(line.rstrip("\r"), line_number))
        except Exception as e:
            logger.warning(f"Skipping log line {line_number}: {e}")

    return records


def read_log_lines(path: str) -> List[str]:
    """Non-blank lines of a local log file"""
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return [line.rstrip("\r\n") for line in f if line.strip()]


def parse_log_file(path: str) -> List[LogRecord]:
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return parse_many(f.read())


def parse_timestamp(raw: str) -> Optional[datetime]:
    """
    Parse "[DD/Mon/YYYY:HH:MM:SS +ZZZZ]" into an aware datetime.
    Returns None when the value cannot be parsed.
    """
    if not raw:
        return None

    value = raw.strip().strip("[]").strip()
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        pass

    try:
        return datetime.strptime(value, LOCAL_TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None
