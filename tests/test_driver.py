import asyncio

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from migration_toolkit import source_models as src
from migration_toolkit import target_models as tgt
from migration_toolkit.driver import BatchMigrationDriver, DriverState, EntityKindPlan
from migration_toolkit.handbook import HandbookCode, Severity
from migration_toolkit.handlers.settings import settings_plans
from migration_toolkit.key_mapping import EntityKind, KeyTranslationContext
from migration_toolkit.mappings import build_mappers
from migration_toolkit.protocol import EventType, MigrationProtocol
from migration_toolkit.source_reader import SourceReader

from factories import (guid, source_archive, source_consent, source_settings_key,
                       target_consent)

CONSENT_PLAN = EntityKindPlan(
    kind=EntityKind.CONSENT,
    source_model=src.CmsConsent,
    target_model=tgt.CmsConsent,
    business_key=("consent_guid", "consent_guid"),
)

ARCHIVE_PLAN = EntityKindPlan(
    kind=EntityKind.CONSENT_ARCHIVE,
    source_model=src.CmsConsentArchive,
    target_model=tgt.CmsConsentArchive,
    business_key=("consent_archive_guid", "consent_archive_guid"),
    batch_size=1,
)


def _driver(stores, key_context, protocol, batch_size=5, session_factory=None, **kwargs):
    return BatchMigrationDriver(
        SourceReader(stores.source_sessions, page_size=3),
        session_factory or stores.target_sessions,
        key_context,
        protocol,
        batch_size=batch_size,
        **kwargs,
    )


async def _count(stores, model) -> int:
    async with stores.target_sessions() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_consent_is_inserted_then_updated_without_changes(stores):
    await stores.add_source(source_consent(7, name="Marketing", consent_guid=guid(1)))

    key_context = KeyTranslationContext()
    protocol = MigrationProtocol()
    driver = _driver(stores, key_context, protocol)
    mapper = build_mappers(key_context)[EntityKind.CONSENT]

    stats = await driver.migrate(CONSENT_PLAN, mapper)

    assert (stats.inserted, stats.updated, stats.failed) == (1, 0, 0)
    assert driver.state is DriverState.DONE
    async with stores.target_sessions() as session:
        [consent] = (await session.execute(select(tgt.CmsConsent))).scalars().all()
    assert consent.consent_guid == guid(1)
    assert consent.consent_name == "Marketing"
    assert key_context.translate(EntityKind.CONSENT, 7) == consent.consent_id

    # A second run starts with an empty translation table and must not write anything.
    statements = []

    def capture(conn, cursor, statement, *args):
        statements.append(statement)

    event.listen(stores.target_engine.sync_engine, "before_cursor_execute", capture)
    try:
        rerun_context = KeyTranslationContext()
        rerun_protocol = MigrationProtocol()
        stats = await _driver(stores, rerun_context, rerun_protocol).migrate(
            CONSENT_PLAN, build_mappers(rerun_context)[EntityKind.CONSENT]
        )
    finally:
        event.remove(stores.target_engine.sync_engine, "before_cursor_execute", capture)

    assert (stats.inserted, stats.updated) == (0, 1)
    assert rerun_context.translate(EntityKind.CONSENT, 7) == consent.consent_id
    assert await _count(stores, tgt.CmsConsent) == 1
    assert not [s for s in statements if s.lstrip().upper().startswith(("INSERT", "UPDATE"))]
    counts = rerun_protocol.summary().kinds[EntityKind.CONSENT]
    assert (counts.inserted, counts.updated) == (0, 1)


@pytest.mark.asyncio
async def test_duplicate_key_only_fails_its_own_batch(stores):
    await stores.add_target(target_consent("Consent6", guid(999)))
    await stores.add_source(*[source_consent(i) for i in range(1, 13)])

    key_context = KeyTranslationContext()
    protocol = MigrationProtocol()
    stats = await _driver(stores, key_context, protocol, batch_size=5).migrate(
        CONSENT_PLAN, build_mappers(key_context)[EntityKind.CONSENT]
    )

    # batches: 1-5 written, 6-10 rejected (6 clashes on the name), 11-12 written
    assert stats.inserted == 7
    assert stats.failed == 5
    assert await _count(stores, tgt.CmsConsent) == 8
    for source_id in (1, 2, 3, 4, 5, 11, 12):
        assert key_context.translate(EntityKind.CONSENT, source_id) is not None
    for source_id in range(6, 11):
        assert key_context.translate(EntityKind.CONSENT, source_id) is None

    [reference] = protocol.references()
    assert reference.code is HandbookCode.ERROR_CREATING_TARGET_INSTANCE
    assert reference.severity is Severity.NEEDS_MANUAL_ACTION
    assert len(reference.subjects) == 5
    assert "Consent6" in reference.subjects[0]
    summary = protocol.summary().kinds[EntityKind.CONSENT]
    assert (summary.inserted, summary.failed) == (7, 5)


@pytest.mark.asyncio
async def test_duplicate_key_of_single_record_batch_is_a_broken_constraint(stores):
    await stores.add_target(target_consent("Consent2", guid(999)))
    await stores.add_source(*[source_consent(i) for i in range(1, 4)])

    key_context = KeyTranslationContext()
    protocol = MigrationProtocol()
    plan = EntityKindPlan(
        kind=EntityKind.CONSENT,
        source_model=src.CmsConsent,
        target_model=tgt.CmsConsent,
        business_key=("consent_guid", "consent_guid"),
        batch_size=1,
    )
    stats = await _driver(stores, key_context, protocol).migrate(
        plan, build_mappers(key_context)[EntityKind.CONSENT]
    )

    assert (stats.inserted, stats.failed) == (2, 1)
    [reference] = protocol.references()
    assert reference.code is HandbookCode.DB_CONSTRAINT_BROKEN
    assert reference.message == "Failed to migrate consent, target database constraint broken."
    assert key_context.translate(EntityKind.CONSENT, 3) is not None


@pytest.mark.asyncio
async def test_record_with_unresolved_required_reference_is_skipped(stores):
    await stores.add_source(source_consent(1), source_archive(1, consent_id=1), source_archive(2, consent_id=50))

    key_context = KeyTranslationContext()
    protocol = MigrationProtocol()
    mappers = build_mappers(key_context)
    driver = _driver(stores, key_context, protocol)
    await driver.migrate(CONSENT_PLAN, mappers[EntityKind.CONSENT])
    stats = await driver.migrate(ARCHIVE_PLAN, mappers[EntityKind.CONSENT_ARCHIVE])

    assert (stats.inserted, stats.mapping_failed) == (1, 1)
    assert await _count(stores, tgt.CmsConsentArchive) == 1
    [reference] = protocol.references()
    assert reference.code is HandbookCode.MISSING_REQUIRED_REFERENCE
    assert key_context.translate(EntityKind.CONSENT_ARCHIVE, 1) is not None
    assert key_context.translate(EntityKind.CONSENT_ARCHIVE, 2) is None


@pytest.mark.asyncio
async def test_unmet_prerequisite_skips_without_mapping(stores):
    await stores.add_source(*[source_consent(i) for i in range(1, 5)])

    key_context = KeyTranslationContext()
    protocol = MigrationProtocol()
    plan = EntityKindPlan(
        kind=EntityKind.CONSENT,
        source_model=src.CmsConsent,
        target_model=tgt.CmsConsent,
        business_key=("consent_guid", "consent_guid"),
        prerequisite=lambda source: "odd" if source.consent_id % 2 else None,
    )
    stats = await _driver(stores, key_context, protocol).migrate(
        plan, build_mappers(key_context)[EntityKind.CONSENT]
    )

    assert (stats.fetched, stats.skipped, stats.inserted) == (4, 2, 2)
    references = protocol.references()
    assert {r.code for r in references} == {HandbookCode.SOURCE_PREREQUISITE_UNMET}
    assert all(r.severity is Severity.INFO_ONLY for r in references)
    assert protocol.summary().kinds[EntityKind.CONSENT].skipped == 2


@pytest.mark.asyncio
async def test_cancelled_run_writes_nothing_further(stores):
    await stores.add_source(*[source_consent(i) for i in range(1, 4)])
    cancel_event = asyncio.Event()
    cancel_event.set()

    key_context = KeyTranslationContext()
    stats = await _driver(
        stores, key_context, MigrationProtocol(), cancel_event=cancel_event
    ).migrate(CONSENT_PLAN, build_mappers(key_context)[EntityKind.CONSENT])

    assert stats.cancelled
    assert stats.inserted == 0
    assert await _count(stores, tgt.CmsConsent) == 0


class FlakySession(AsyncSession):
    failures_left = 0

    async def commit(self) -> None:
        if FlakySession.failures_left:
            FlakySession.failures_left -= 1
            raise OperationalError("COMMIT", {}, Exception("server closed the connection"))
        await super().commit()


@pytest.mark.asyncio
async def test_transient_error_replays_the_batch(stores):
    await stores.add_source(*[source_consent(i) for i in range(1, 4)])
    flaky_sessions = async_sessionmaker(
        stores.target_engine, class_=FlakySession, autoflush=False, expire_on_commit=False
    )
    FlakySession.failures_left = 1

    key_context = KeyTranslationContext()
    protocol = MigrationProtocol()
    stats = await _driver(
        stores, key_context, protocol, session_factory=flaky_sessions, flush_retries=2
    ).migrate(CONSENT_PLAN, build_mappers(key_context)[EntityKind.CONSENT])

    assert FlakySession.failures_left == 0
    assert (stats.inserted, stats.failed) == (3, 0)
    assert protocol.references() == []
    assert await _count(stores, tgt.CmsConsent) == 3
    # the replayed batch is recorded once
    event_types = [e.type for e in protocol.events()]
    assert event_types.count(EventType.FETCHED_TARGET) == 3
    assert event_types.count(EventType.MAPPED_TARGET) == 3


@pytest.mark.asyncio
async def test_transient_error_beyond_retries_fails_the_batch(stores):
    await stores.add_source(*[source_consent(i) for i in range(1, 3)])
    flaky_sessions = async_sessionmaker(
        stores.target_engine, class_=FlakySession, autoflush=False, expire_on_commit=False
    )
    FlakySession.failures_left = 2

    key_context = KeyTranslationContext()
    protocol = MigrationProtocol()
    stats = await _driver(
        stores, key_context, protocol, session_factory=flaky_sessions, flush_retries=1
    ).migrate(CONSENT_PLAN, build_mappers(key_context)[EntityKind.CONSENT])

    assert (stats.inserted, stats.failed) == (0, 2)
    [reference] = protocol.references()
    assert reference.code is HandbookCode.ERROR_CREATING_TARGET_INSTANCE
    assert await _count(stores, tgt.CmsConsent) == 0


class FlakyLookupSession(AsyncSession):
    failures_left = 0

    async def execute(self, statement, *args, **kwargs):
        if FlakyLookupSession.failures_left:
            FlakyLookupSession.failures_left -= 1
            raise OperationalError("SELECT", {}, Exception("server closed the connection"))
        return await super().execute(statement, *args, **kwargs)


def _flaky_lookup_sessions(stores):
    return async_sessionmaker(
        stores.target_engine, class_=FlakyLookupSession, autoflush=False, expire_on_commit=False
    )


@pytest.mark.asyncio
async def test_transient_lookup_error_is_retried(stores):
    await stores.add_source(*[source_consent(i) for i in range(1, 4)])
    FlakyLookupSession.failures_left = 1

    key_context = KeyTranslationContext()
    protocol = MigrationProtocol()
    stats = await _driver(
        stores,
        key_context,
        protocol,
        session_factory=_flaky_lookup_sessions(stores),
        flush_retries=2,
    ).migrate(CONSENT_PLAN, build_mappers(key_context)[EntityKind.CONSENT])

    assert FlakyLookupSession.failures_left == 0
    assert (stats.inserted, stats.failed) == (3, 0)
    assert protocol.references() == []
    assert await _count(stores, tgt.CmsConsent) == 3
    mapped = [e for e in protocol.events() if e.type is EventType.MAPPED_TARGET]
    assert len(mapped) == 3


@pytest.mark.asyncio
async def test_failed_lookup_only_fails_its_own_record(stores):
    await stores.add_source(*[source_consent(i) for i in range(1, 4)])
    # one retry, then the first consent gives up
    FlakyLookupSession.failures_left = 2

    key_context = KeyTranslationContext()
    protocol = MigrationProtocol()
    stats = await _driver(
        stores,
        key_context,
        protocol,
        session_factory=_flaky_lookup_sessions(stores),
        flush_retries=1,
    ).migrate(CONSENT_PLAN, build_mappers(key_context)[EntityKind.CONSENT])

    assert (stats.inserted, stats.failed) == (2, 1)
    assert await _count(stores, tgt.CmsConsent) == 2
    assert key_context.translate(EntityKind.CONSENT, 1) is None
    assert key_context.translate(EntityKind.CONSENT, 3) is not None
    [reference] = protocol.references()
    assert reference.code is HandbookCode.ERROR_FETCHING_TARGET_INSTANCE
    assert reference.severity is Severity.NEEDS_MANUAL_ACTION
    assert "Consent1" in reference.subjects[0]
    counts = protocol.summary().kinds[EntityKind.CONSENT]
    assert (counts.inserted, counts.failed) == (2, 1)


@pytest.mark.asyncio
async def test_site_settings_key_does_not_sink_global_keys(stores):
    site_key = source_settings_key(2, site_id=1)
    site_key.key_name = "CMSKey1"
    await stores.add_source(
        source_settings_key(1), site_key, source_settings_key(3), source_settings_key(4)
    )

    key_context = KeyTranslationContext({"site": {1: 1}})
    protocol = MigrationProtocol()
    plan = settings_plans()[-1]
    stats = await _driver(stores, key_context, protocol).migrate(
        plan, build_mappers(key_context)[EntityKind.SETTINGS_KEY]
    )

    assert plan.kind is EntityKind.SETTINGS_KEY
    assert (stats.inserted, stats.skipped, stats.failed) == (3, 1, 0)
    assert await _count(stores, tgt.CmsSettingsKey) == 3
    assert key_context.translate(EntityKind.SETTINGS_KEY, 2) is None
    [reference] = protocol.references()
    assert reference.code is HandbookCode.SOURCE_PREREQUISITE_UNMET
    assert "site 1" in reference.message
    assert not protocol.summary().has_failures
