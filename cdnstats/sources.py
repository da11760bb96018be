# cdnstats/sources.py

import asyncio
import json
from typing import Any, List, Optional

import aiohttp
import requests
from pydantic import ValidationError

from cdnstats.config import settings
from cdnstats.errors import MalformedUpstreamError, PayloadTooLargeError, UpstreamError
from cdnstats.schemas import BandwidthSample, DomainOwnership
import logging

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def read_bounded(response: requests.Response, max_bytes: int) -> bytes:
    """Read a streamed body, refusing anything over max_bytes"""
    declared = response.headers.get("Content-Length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLargeError(f"Response declares {declared} bytes, limit is {max_bytes}")

    body = bytearray()
    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
        body.extend(chunk)
        if len(body) > max_bytes:
            raise PayloadTooLargeError(f"Response exceeded {max_bytes} bytes")
    return bytes(body)


def fetch_bandwidth_report(
    category: Optional[int] = None,
    timeout: Optional[float] = None,
    max_bytes: Optional[int] = None,
) -> List[BandwidthSample]:
    """
    Fetch the ranked bandwidth-by-domain report.
    Rows that do not validate are logged and skipped.
    """
    params = {
        "orderby": "bandwidth",
        "category": category if category is not None else settings.telemetry_category,
    }
    timeout = timeout or settings.telemetry_timeout_seconds
    max_bytes = max_bytes or settings.telemetry_max_bytes

    try:
        with requests.get(settings.telemetry_url, params=params, timeout=timeout, stream=True) as response:
            response.raise_for_status()
            body = read_bounded(response, max_bytes)
    except requests.RequestException as e:
        raise UpstreamError(f"Bandwidth report fetch failed: {e}") from e

    try:
        rows = json.loads(body)
    except ValueError as e:
        raise MalformedUpstreamError(f"Bandwidth report is not valid JSON: {e}") from e

    if not isinstance(rows, list):
        raise MalformedUpstreamError("Bandwidth report is not an array")

    samples: List[BandwidthSample] = []
    skipped = 0
    for row in rows:
        try:
            samples.append(BandwidthSample.model_validate(row))
        except ValidationError as e:
            skipped += 1
            logger.debug(f"Skipping bandwidth row {row!r}: {e}")

    if skipped:
        logger.warning(f"Skipped {skipped} malformed bandwidth rows")

    return samples


def fetch_domain_list_raw(timeout: Optional[float] = None) -> Any:
    """Fetch the domain ownership list exactly as the authority returns it"""
    try:
        response = requests.get(
            settings.domain_list_url,
            timeout=timeout or settings.domain_list_timeout_seconds,
        )
        response.raise_for_status()
    except requests.RequestException as e:
        raise UpstreamError(f"Domain list fetch failed: {e}") from e

    try:
        return json.loads(response.content)
    except ValueError as e:
        raise MalformedUpstreamError(f"Domain list is not valid JSON: {e}") from e


def fetch_domain_list(timeout: Optional[float] = None) -> List[DomainOwnership]:
    data = fetch_domain_list_raw(timeout)

    if not isinstance(data, list):
        raise MalformedUpstreamError("domain_list is not an array")

    ownerships: List[DomainOwnership] = []
    skipped = 0
    for row in data:
        try:
            ownerships.append(DomainOwnership.model_validate(row))
        except ValidationError as e:
            skipped += 1
            logger.debug(f"Skipping ownership row {row!r}: {e}")

    if skipped:
        logger.warning(f"Skipped {skipped} malformed ownership rows")

    return ownerships


async def fetch_node_list(session: aiohttp.ClientSession) -> List[dict]:
    """Fetch the CDN node list"""
    try:
        async with session.get(settings.node_list_url) as response:
            response.raise_for_status()
            data = await response.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise UpstreamError(f"Node list fetch failed: {e}") from e
    except ValueError as e:
        raise MalformedUpstreamError(f"Node list is not valid JSON: {e}") from e

    if not data or not isinstance(data, list):
        raise MalformedUpstreamError("Invalid response from node list API")

    return data
