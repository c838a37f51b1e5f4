"""Instance identity normalization -- one cache key per Salesforce org.

Users connect with whatever base URL their OAuth flow returned: sometimes the
Lightning Experience host (acme.lightning.force.com), sometimes the API host
(acme.my.salesforce.com), sometimes with a trailing slash. All of them must
resolve to the same cached record.

All functions here are pure and total.
"""

from __future__ import annotations

import re

API_DOMAIN_SUFFIX = ".my.salesforce.com"

_LIGHTNING_SUFFIX = re.compile(r"\.lightning\.force\.com", re.IGNORECASE)
_API_SUFFIX = re.compile(r"\.my\.salesforce\.com", re.IGNORECASE)


def _to_api_domain(url: str) -> str:
    """Rewrite the Lightning domain suffix to the API suffix (lower-cased)."""
    url = _LIGHTNING_SUFFIX.sub(API_DOMAIN_SUFFIX, url, count=1)
    return _API_SUFFIX.sub(API_DOMAIN_SUFFIX, url, count=1)


def canonical_instance_key(instance_url: str) -> str:
    """Canonical cache key for an org base URL.

    Strips one trailing slash, then rewrites a Lightning Experience domain
    suffix to the equivalent API domain suffix.

    >>> canonical_instance_key("https://acme.lightning.force.com/")
    'https://acme.my.salesforce.com'
    """
    if instance_url.endswith("/"):
        instance_url = instance_url[:-1]
    return _to_api_domain(instance_url)


def legacy_instance_key(instance_url: str) -> str:
    """Key older records may have been written under.

    Same domain rewrite as canonical_instance_key, applied to the raw input
    without stripping the trailing slash.
    """
    return _to_api_domain(instance_url)


def lookup_keys(instance_url: str) -> list[str]:
    """Keys to try, in order, when reading a cached record."""
    canonical = canonical_instance_key(instance_url)
    legacy = legacy_instance_key(instance_url)
    if legacy == canonical:
        return [canonical]
    return [canonical, legacy]
