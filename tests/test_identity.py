"""Unit tests for instance URL canonicalization."""

from __future__ import annotations

import pytest

from src.orgmeta.metadata.identity import (
    canonical_instance_key,
    legacy_instance_key,
    lookup_keys,
)


class TestCanonicalInstanceKey:
    """Every URL form of an org maps to one key."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://acme.lightning.force.com",
            "https://acme.lightning.force.com/",
            "https://acme.my.salesforce.com",
            "https://acme.my.salesforce.com/",
            "https://acme.Lightning.Force.com",
        ],
    )
    def test_all_forms_share_a_key(self, url):
        assert canonical_instance_key(url) == "https://acme.my.salesforce.com"

    def test_only_one_trailing_slash_is_stripped(self):
        assert canonical_instance_key("https://acme.my.salesforce.com//") == (
            "https://acme.my.salesforce.com/"
        )

    def test_idempotent(self):
        once = canonical_instance_key("https://acme.lightning.force.com/")
        assert canonical_instance_key(once) == once

    def test_unrelated_host_unchanged(self):
        assert canonical_instance_key("https://login.example.org") == "https://login.example.org"

    def test_sandbox_domain_rewritten(self):
        assert canonical_instance_key("https://acme--uat.sandbox.lightning.force.com") == (
            "https://acme--uat.sandbox.my.salesforce.com"
        )

    def test_empty_string(self):
        assert canonical_instance_key("") == ""


class TestLookupKeys:
    """Reads try the canonical key first, then the legacy form."""

    def test_legacy_key_keeps_trailing_slash(self):
        assert legacy_instance_key("https://acme.lightning.force.com/") == (
            "https://acme.my.salesforce.com/"
        )

    def test_two_keys_when_forms_differ(self):
        assert lookup_keys("https://acme.lightning.force.com/") == [
            "https://acme.my.salesforce.com",
            "https://acme.my.salesforce.com/",
        ]

    def test_single_key_when_already_canonical(self):
        assert lookup_keys("https://acme.my.salesforce.com") == ["https://acme.my.salesforce.com"]
