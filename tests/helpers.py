"""
Test doubles and builders shared across test modules.
"""

import asyncio
import json

import aiohttp

from cdnstats.nodes import ip_to_long


def make_line(
    host="img.example.com",
    size="500000",
    timestamp="[10/Sep/2025:06:45:01 +0000]",
    ip="10.0.0.1",
    request="GET /x",
    status="200",
    referer="-",
    user_agent="UA",
    response_time="12",
):
    """Build one "**"-delimited access log line."""
    return "**".join([ip, timestamp, host, request, status, size, referer, user_agent, response_time])


def log_url(ip):
    return f"http://{ip}:29876/stream{ip_to_long(ip)}.log"


class FakeResponse:
    """Minimal stand-in for an aiohttp response context manager."""

    def __init__(self, body="", status=200, error=None, delay=0.0, content_type="text/plain"):
        self.body = body
        self.status = status
        self.error = error
        self.delay = delay
        self.headers = {"Content-Type": content_type}

    async def __aenter__(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientConnectionError(f"HTTP {self.status}")

    async def text(self, errors="strict"):
        return self.body

    async def json(self, content_type=None):
        return json.loads(self.body) if isinstance(self.body, str) else self.body


class FakeSession:
    """Routes GET requests to canned FakeResponse objects by URL."""

    def __init__(self, routes):
        self.routes = routes
        self.requested = []

    def get(self, url, **kwargs):
        self.requested.append(url)
        return self.routes[url]
