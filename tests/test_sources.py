"""
Tests for the upstream bandwidth, ownership and node list clients.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from cdnstats import sources
from cdnstats.config import settings
from cdnstats.errors import MalformedUpstreamError, PayloadTooLargeError, UpstreamError
from helpers import FakeResponse, FakeSession


def streamed_response(payload, headers=None, chunk=16):
    """MagicMock shaped like a streamed requests.Response."""
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    response = MagicMock()
    response.headers = headers or {}
    response.iter_content.return_value = [body[i:i + chunk] for i in range(0, len(body), chunk)]
    response.content = body
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response


def test_fetch_bandwidth_report_parses_rows():
    payload = [
        {"domain": "img.example.com", "bandwidth": 100},
        {"domain": "cdn.globex.net", "bandwidth": "25.5"},
        {"bandwidth": 7},
        {"domain": "bad.example.com", "bandwidth": "lots"},
    ]
    with patch.object(sources.requests, "get", return_value=streamed_response(payload)) as get:
        samples = sources.fetch_bandwidth_report()

    assert [(s.host, s.bandwidth) for s in samples] == [("img.example.com", 100), ("cdn.globex.net", 25.5)]
    _, kwargs = get.call_args
    assert kwargs["params"] == {"orderby": "bandwidth", "category": settings.telemetry_category}
    assert kwargs["timeout"] == settings.telemetry_timeout_seconds
    assert kwargs["stream"] is True


def test_fetch_bandwidth_report_rejects_oversized_body():
    payload = [{"domain": f"host{i}.example.com", "bandwidth": i} for i in range(50)]
    with patch.object(sources.requests, "get", return_value=streamed_response(payload)):
        with pytest.raises(PayloadTooLargeError):
            sources.fetch_bandwidth_report(max_bytes=100)


def test_fetch_bandwidth_report_rejects_declared_oversized_body():
    response = streamed_response([], headers={"Content-Length": "5000"})
    with patch.object(sources.requests, "get", return_value=response):
        with pytest.raises(PayloadTooLargeError):
            sources.fetch_bandwidth_report(max_bytes=1000)

    response.iter_content.assert_not_called()


def test_fetch_bandwidth_report_not_a_list():
    with patch.object(sources.requests, "get", return_value=streamed_response({"error": "nope"})):
        with pytest.raises(MalformedUpstreamError):
            sources.fetch_bandwidth_report()


def test_fetch_bandwidth_report_network_error():
    with patch.object(sources.requests, "get", side_effect=requests.Timeout("read timed out")):
        with pytest.raises(UpstreamError, match="read timed out"):
            sources.fetch_bandwidth_report()


def test_fetch_domain_list():
    payload = [
        {"username": "acme", "domain": "*.example.com", "id": 1},
        "garbage",
        {"username": "globex", "domain": "globex.net"},
    ]
    with patch.object(sources.requests, "get", return_value=streamed_response(payload)):
        ownerships = sources.fetch_domain_list()

    assert [(o.username, o.domain) for o in ownerships] == [("acme", "*.example.com"), ("globex", "globex.net")]


def test_fetch_domain_list_not_a_list():
    with patch.object(sources.requests, "get", return_value=streamed_response({"data": []})):
        with pytest.raises(MalformedUpstreamError, match="domain_list is not an array"):
            sources.fetch_domain_list()


def test_fetch_domain_list_invalid_json():
    with patch.object(sources.requests, "get", return_value=streamed_response(b"<html>")):
        with pytest.raises(MalformedUpstreamError):
            sources.fetch_domain_list_raw()


@pytest.mark.asyncio
async def test_fetch_node_list():
    nodes = [{"ip": "10.0.0.1", "category": 4}]
    session = FakeSession({settings.node_list_url: FakeResponse(body=json.dumps(nodes))})

    assert await sources.fetch_node_list(session) == nodes


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ['{"nodes": []}', "[]"])
async def test_fetch_node_list_invalid(body):
    session = FakeSession({settings.node_list_url: FakeResponse(body=body)})

    with pytest.raises(MalformedUpstreamError):
        await sources.fetch_node_list(session)


@pytest.mark.asyncio
async def test_fetch_node_list_http_error():
    session = FakeSession({settings.node_list_url: FakeResponse(status=502)})

    with pytest.raises(UpstreamError):
        await sources.fetch_node_list(session)


def test_fetch_domain_list_accepts_numeric_usernames():
    payload = [
        {"username": 42, "domain": "*.example.com"},
        {"username": "acme", "domain": "example.com"},
    ]
    with patch.object(sources.requests, "get", return_value=streamed_response(payload)):
        ownerships = sources.fetch_domain_list()

    assert [(o.username, o.domain) for o in ownerships] == [("42", "*.example.com"), ("acme", "example.com")]
