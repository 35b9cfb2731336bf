"""Mappers for consents, their archived revisions and contact agreements."""

from __future__ import annotations

from typing import Optional

from .. import source_models as src
from .. import target_models as tgt
from ..key_mapping import EntityKind
from .base import EntityMapperBase, MappingHelper
from .common import require, trim


class ConsentMapper(EntityMapperBase[src.CmsConsent, tgt.CmsConsent]):
    kind = EntityKind.CONSENT
    source_id_attr = "consent_id"
    target_id_attr = "consent_id"

    def create_new_instance(
        self, source: src.CmsConsent, helper: MappingHelper
    ) -> Optional[tgt.CmsConsent]:
        return tgt.CmsConsent(consent_guid=require(source, "consent_guid"))

    def map_internal(
        self,
        source: src.CmsConsent,
        target: tgt.CmsConsent,
        new_instance: bool,
        helper: MappingHelper,
    ) -> tgt.CmsConsent:
        target.consent_name = require(source, "consent_name")
        target.consent_display_name = trim(require(source, "consent_display_name"), 200)
        target.consent_content = source.consent_content or ""
        target.consent_hash = require(source, "consent_hash")
        target.consent_last_modified = source.consent_last_modified
        return target


class ConsentArchiveMapper(
    EntityMapperBase[src.CmsConsentArchive, tgt.CmsConsentArchive]
):
    kind = EntityKind.CONSENT_ARCHIVE
    source_id_attr = "consent_archive_id"
    target_id_attr = "consent_archive_id"

    def create_new_instance(
        self, source: src.CmsConsentArchive, helper: MappingHelper
    ) -> Optional[tgt.CmsConsentArchive]:
        return tgt.CmsConsentArchive(
            consent_archive_guid=require(source, "consent_archive_guid")
        )

    def map_internal(
        self,
        source: src.CmsConsentArchive,
        target: tgt.CmsConsentArchive,
        new_instance: bool,
        helper: MappingHelper,
    ) -> tgt.CmsConsentArchive:
        target.consent_archive_content = source.consent_archive_content or ""
        target.consent_archive_hash = require(source, "consent_archive_hash")
        target.consent_archive_last_modified = source.consent_archive_last_modified
        consent_id = helper.translate_required(
            self.kind,
            source,
            "consent_archive_consent_id",
            EntityKind.CONSENT,
            source.consent_archive_consent_id,
        )
        if consent_id is not None:
            target.consent_archive_consent_id = consent_id
        return target


class ConsentAgreementMapper(
    EntityMapperBase[src.CmsConsentAgreement, tgt.CmsConsentAgreement]
):
    kind = EntityKind.CONSENT_AGREEMENT
    source_id_attr = "consent_agreement_id"
    target_id_attr = "consent_agreement_id"

    def create_new_instance(
        self, source: src.CmsConsentAgreement, helper: MappingHelper
    ) -> Optional[tgt.CmsConsentAgreement]:
        return tgt.CmsConsentAgreement(
            consent_agreement_guid=require(source, "consent_agreement_guid")
        )

    def map_internal(
        self,
        source: src.CmsConsentAgreement,
        target: tgt.CmsConsentAgreement,
        new_instance: bool,
        helper: MappingHelper,
    ) -> tgt.CmsConsentAgreement:
        target.consent_agreement_revoked = bool(source.consent_agreement_revoked)
        target.consent_agreement_time = source.consent_agreement_time
        target.consent_agreement_consent_hash = source.consent_agreement_consent_hash

        contact_id = helper.translate_required(
            self.kind,
            source,
            "consent_agreement_contact_id",
            EntityKind.CONTACT,
            source.consent_agreement_contact_id,
        )
        consent_id = helper.translate_required(
            self.kind,
            source,
            "consent_agreement_consent_id",
            EntityKind.CONSENT,
            source.consent_agreement_consent_id,
        )
        if contact_id is not None:
            target.consent_agreement_contact_id = contact_id
        if consent_id is not None:
            target.consent_agreement_consent_id = consent_id
        return target
