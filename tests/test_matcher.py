"""
Tests for domain ownership matching.
"""

import pytest

from cdnstats.matcher import match_owner, matches_domain
from cdnstats.schemas import DomainOwnership


@pytest.mark.parametrize("host,domain,expected", [
    ("cdn.example.com", "*.example.com", True),
    ("example.com", "*.example.com", True),
    # wildcard containment is intentionally loose
    ("notexample.com.evil.test", "*.example.com", True),
    ("example.org", "*.example.com", False),
    ("img.example.com", "img.example.com", True),
    ("static.img.example.com", "img.example.com", True),
    ("notexample.com.com", "example.com", True),
    ("example.co", "example.com", False),
    ("", "example.com", False),
    ("example.com", "", False),
    (None, "example.com", False),
    ("example.com", None, False),
])
def test_matches_domain(host, domain, expected):
    assert matches_domain(host, domain) is expected


def test_match_owner_first_match_wins():
    ownerships = [
        DomainOwnership(username="acme", domain="*.example.com"),
        DomainOwnership(username="globex", domain="img.example.com"),
    ]

    owner = match_owner("img.example.com", ownerships)

    assert owner.username == "acme"


def test_match_owner_skips_entries_without_domain():
    ownerships = [
        DomainOwnership(username="ghost", domain=None),
        DomainOwnership(username="globex", domain="globex.net"),
    ]

    assert match_owner("video.globex.net", ownerships).username == "globex"


def test_match_owner_no_match():
    ownerships = [DomainOwnership(username="acme", domain="acme.io")]

    assert match_owner("example.com", ownerships) is None
    assert match_owner("", ownerships) is None
    assert match_owner("acme.io", []) is None
