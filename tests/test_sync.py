"""Tests for MetadataSyncService: single-org crawls, fan-out and reads.

Wires the real store (SQLite) and pipeline to FakeOrg instances; credentials
come from an in-memory CredentialSource.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

from src.orgmeta.metadata.credentials import SalesforceAuthRepository
from src.orgmeta.metadata.heuristics import STANDARD_OBJECTS
from src.orgmeta.metadata.repository import MetadataCacheStore
from src.orgmeta.metadata.schemas import CrawlResult, SyncStatus
from src.orgmeta.metadata.sync import SUPERSEDED_ERROR, MetadataSyncService
from tests.fakes import (
    FakeOrg,
    InMemoryCredentialSource,
    acme_org,
    credential,
    make_client_factory,
    sobject,
)

ACME = "https://acme.my.salesforce.com"
ACME_LIGHTNING = "https://acme.lightning.force.com/"
GLOBEX = "https://globex.my.salesforce.com"


# ── Helpers ────────────────────────────────────────────────────────────────


def _service(session_factory, orgs: dict[str, FakeOrg], credentials=None) -> MetadataSyncService:
    return MetadataSyncService(
        cache_store=MetadataCacheStore(session_factory),
        credential_source=InMemoryCredentialSource(credentials),
        client_factory=make_client_factory(orgs),
    )


def _first_call_raises():
    """AsyncMock side effect: first org raises, the rest succeed."""
    calls = {"n": 0}

    async def side_effect(access_token, instance_url):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("boom")
        return CrawlResult(success=True, instance_key=instance_url)

    return side_effect


# ── Single Org ─────────────────────────────────────────────────────────────


class TestSyncOrganization:
    async def test_successful_crawl(self, session_factory):
        service = _service(session_factory, {ACME_LIGHTNING: acme_org()})

        result = await service.sync_organization("tok", ACME_LIGHTNING)
        available = await service.get_available_objects(ACME)

        assert result.success
        assert result.instance_key == ACME
        assert result.standard_object_count == 2
        assert result.custom_object_count == 2
        assert result.custom_objects == ["SMS_Message__c", "Foo__c"]

        assert available.sync_status == SyncStatus.COMPLETE
        assert [o.name for o in available.custom_objects] == ["SMS_Message__c", "Foo__c"]
        assert not available.needs_sync

    async def test_discovery_failure_degrades_record(self, session_factory):
        org = FakeOrg(failures={"/services/data/": 401})
        service = _service(session_factory, {ACME: org})

        result = await service.sync_organization("expired", ACME)
        available = await service.get_available_objects(ACME)

        assert not result.success
        assert result.error == "Failed to get API versions: 401"
        assert available.sync_status == SyncStatus.ERROR
        assert available.sync_error == "Failed to get API versions: 401"
        assert available.custom_objects == []
        assert [o.name for o in available.standard_objects] == STANDARD_OBJECTS

    async def test_failure_replaces_previous_success(self, session_factory):
        orgs = {ACME: acme_org()}
        service = _service(session_factory, orgs)
        await service.sync_organization("tok", ACME)

        orgs[ACME].failures["/services/data/v59.0/sobjects/"] = 500
        result = await service.sync_organization("tok", ACME)
        available = await service.get_available_objects(ACME)

        assert result.error == "Failed to describe objects: 500"
        assert available.custom_objects == []

    async def test_describe_failure_keeps_bare_object(self, session_factory):
        org = acme_org()
        org.describes["Foo__c"] = 403
        service = _service(session_factory, {ACME: org})

        result = await service.sync_organization("tok", ACME)
        available = await service.get_available_objects(ACME)

        assert result.success
        foo = next(o for o in available.custom_objects if o.name == "Foo__c")
        assert foo.is_bare

    async def test_store_failure_at_commit_reported(self, session_factory):
        service = _service(session_factory, {ACME: acme_org()})
        store = service._store
        store.commit = AsyncMock(side_effect=RuntimeError("disk full"))

        result = await service.sync_organization("tok", ACME)
        available = await service.get_available_objects(ACME)

        assert not result.success
        assert result.error == "disk full"
        assert available.sync_status == SyncStatus.ERROR

    async def test_store_failure_at_begin_reported(self, session_factory):
        org = acme_org()
        service = _service(session_factory, {ACME: org})
        service._store.begin_sync = AsyncMock(side_effect=RuntimeError("database is locked"))

        result = await service.sync_organization("tok", ACME)

        assert not result.success
        assert result.instance_key == ACME
        assert result.error == "database is locked"
        assert org.requests == []

    async def test_store_failure_while_recording_error(self, session_factory):
        service = _service(session_factory, {ACME: FakeOrg(failures={"/services/data/": 401})})
        service._store.fail = AsyncMock(side_effect=RuntimeError("connection reset"))

        result = await service.sync_organization("tok", ACME)

        assert not result.success
        assert result.error == "Failed to get API versions: 401"

    async def test_superseded_commit_not_reported_as_success(self, session_factory):
        service = _service(session_factory, {ACME: acme_org()})
        store = service._store
        real_commit = store.commit

        async def commit_after_newer_sync_started(*args, **kwargs):
            await store.begin_sync(ACME)
            return await real_commit(*args, **kwargs)

        store.commit = commit_after_newer_sync_started

        result = await service.sync_organization("tok", ACME)
        available = await service.get_available_objects(ACME)

        assert not result.success
        assert result.error == SUPERSEDED_ERROR
        assert result.custom_object_count == 2
        assert available.sync_status == SyncStatus.SYNCING
        assert available.custom_objects == []

    async def test_superseded_commit_counted_as_failure_in_fan_out(self, session_factory):
        service = _service(session_factory, {ACME: acme_org()}, [credential(ACME)])
        service._store.commit = AsyncMock(return_value=False)

        fan_out = await service.sync_all_orgs()

        assert fan_out.results[0].success is False
        assert fan_out.results[0].error == SUPERSEDED_ERROR


# ── Fan-Out ────────────────────────────────────────────────────────────────


class TestSyncAllOrgs:
    async def test_each_org_crawled_once(self, session_factory):
        org = acme_org()
        orgs = {ACME: org, ACME_LIGHTNING: org}
        service = _service(
            session_factory,
            orgs,
            [credential(ACME, "u1"), credential(ACME_LIGHTNING, "u2")],
        )

        fan_out = await service.sync_all_orgs()

        assert fan_out.synced_orgs == 1
        assert fan_out.results[0].instance_key == ACME
        version_calls = [r for r in org.requests if r.url.path == "/services/data/"]
        assert len(version_calls) == 1

    async def test_one_failure_does_not_stop_others(self, session_factory):
        orgs = {
            ACME: FakeOrg(failures={"/services/data/": 401}),
            GLOBEX: FakeOrg(sobjects=[sobject("Account")]),
        }
        service = _service(session_factory, orgs, [credential(ACME), credential(GLOBEX)])

        fan_out = await service.sync_all_orgs()

        assert fan_out.synced_orgs == 2
        assert [r.success for r in fan_out.results] == [False, True]
        assert fan_out.results[0].error == "Failed to get API versions: 401"
        assert (await service.get_available_objects(GLOBEX)).sync_status == SyncStatus.COMPLETE

    async def test_unexpected_error_recorded_per_org(self, session_factory):
        service = _service(session_factory, {}, [credential(ACME), credential(GLOBEX)])
        service.sync_organization = AsyncMock(side_effect=_first_call_raises())

        fan_out = await service.sync_all_orgs()

        assert fan_out.synced_orgs == 2
        assert fan_out.results[0].success is False
        assert fan_out.results[0].error == "boom"
        assert fan_out.results[1].success is True

    async def test_no_credentials(self, session_factory):
        service = _service(session_factory, {})

        fan_out = await service.sync_all_orgs()

        assert fan_out.synced_orgs == 0
        assert fan_out.results == []

    async def test_credentials_from_database(self, session_factory):
        repo = SalesforceAuthRepository(session_factory)
        await repo.add(credential(ACME, "u1"))
        service = MetadataSyncService(
            cache_store=MetadataCacheStore(session_factory),
            credential_source=repo,
            client_factory=make_client_factory({ACME: acme_org()}),
        )

        fan_out = await service.sync_all_orgs()

        assert fan_out.synced_orgs == 1
        assert fan_out.results[0].success


# ── Reads ──────────────────────────────────────────────────────────────────


class TestReads:
    async def test_never_synced_org(self, session_factory):
        service = _service(session_factory, {})

        available = await service.get_available_objects(GLOBEX)

        assert available.needs_sync
        assert len(available.standard_objects) == len(STANDARD_OBJECTS)

    async def test_user_without_connection(self, session_factory):
        service = _service(session_factory, {})

        available = await service.get_available_objects_for_user("nobody")

        assert available.error == "No Salesforce connection"
        assert available.standard_objects == []

    async def test_user_read_resolves_org(self, session_factory):
        service = _service(
            session_factory,
            {ACME_LIGHTNING: acme_org()},
            [credential(ACME_LIGHTNING, "u1")],
        )
        await service.sync_organization("tok", ACME_LIGHTNING)

        available = await service.get_available_objects_for_user("u1")

        assert available.sync_status == SyncStatus.COMPLETE
        assert len(available.custom_objects) == 2

    async def test_clear_cache(self, session_factory):
        service = _service(session_factory, {ACME: acme_org()})
        await service.sync_organization("tok", ACME)

        assert await service.clear_cache() == 1
        assert (await service.get_available_objects(ACME)).needs_sync
