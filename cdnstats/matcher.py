# cdnstats/matcher.py

from typing import Iterable, Optional
from cdnstats.schemas import DomainOwnership

WILDCARD_PREFIX = "*."


def matches_domain(host: Optional[str], domain: Optional[str]) -> bool:
    """
    Check whether an observed host belongs to a registered domain.

    "*.example.com" matches any host containing "example.com"; plain domains
    match on equality or containment. Containment is deliberately loose, so
    "notexample.com.evil.test" matches "*.example.com".
    """
    if not host or not domain:
        return False

    if domain.startswith(WILDCARD_PREFIX):
        return domain[len(WILDCARD_PREFIX):] in host

    if host == domain:
        return True

    return domain in host


def match_owner(host: Optional[str], ownerships: Iterable[DomainOwnership]) -> Optional[DomainOwnership]:
    """
    Find the account owning a host.
    Candidates are checked in list order - first match wins.
    """
    if not host:
        return None

    for ownership in ownerships:
        if matches_domain(host, ownership.domain):
            return ownership

    return None
