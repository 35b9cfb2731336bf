"""Contacts, consents, consent archives and consent agreements."""

from __future__ import annotations

import logging
from typing import Tuple

from .. import source_models as src
from .. import target_models as tgt
from ..driver import EntityKindPlan
from ..key_mapping import EntityKind
from .base import MigrationContext

LOGGER = logging.getLogger("migration_toolkit.handlers.data_protection")


def data_protection_plans() -> Tuple[EntityKindPlan, ...]:
    return (
        EntityKindPlan(
            kind=EntityKind.CONTACT,
            source_model=src.OmContact,
            target_model=tgt.OmContact,
            business_key=("contact_guid", "contact_guid"),
        ),
        EntityKindPlan(
            kind=EntityKind.CONSENT,
            source_model=src.CmsConsent,
            target_model=tgt.CmsConsent,
            business_key=("consent_guid", "consent_guid"),
            batch_size=1,
        ),
        EntityKindPlan(
            kind=EntityKind.CONSENT_ARCHIVE,
            source_model=src.CmsConsentArchive,
            target_model=tgt.CmsConsentArchive,
            business_key=("consent_archive_guid", "consent_archive_guid"),
            batch_size=1,
        ),
        EntityKindPlan(
            kind=EntityKind.CONSENT_AGREEMENT,
            source_model=src.CmsConsentAgreement,
            target_model=tgt.CmsConsentAgreement,
            business_key=("consent_agreement_guid", "consent_agreement_guid"),
        ),
    )


async def migrate_data_protection(context: MigrationContext) -> None:
    for plan in data_protection_plans():
        if context.cancelled:
            LOGGER.warning("Data protection migration cancelled before %s", plan.kind.value)
            return
        stats = await context.driver.migrate(plan, context.mappers[plan.kind])
        context.stats.append(stats)
