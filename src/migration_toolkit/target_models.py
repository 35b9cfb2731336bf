"""ORM model of the target instance.

Numeric primary keys are assigned by the target store; records are matched
against the source through their GUID (or code name) columns, all of which
carry unique constraints.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (Boolean, DateTime, ForeignKey, Integer, String, Text,
                        Uuid)
from sqlalchemy.orm import (DeclarativeBase, Mapped, mapped_column,
                            relationship)

from .schema import IdentityPrintMixin


class TargetBase(DeclarativeBase, IdentityPrintMixin):
    pass


class CmsResource(TargetBase):
    __tablename__ = "cms_resource"
    __identity_fields__ = ("resource_id", "resource_guid", "resource_name")

    resource_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    resource_guid: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True)
    resource_name: Mapped[str] = mapped_column(String(100), unique=True)
    resource_display_name: Mapped[str] = mapped_column(String(200))
    resource_description: Mapped[Optional[str]] = mapped_column(Text)
    resource_is_in_development: Mapped[Optional[bool]] = mapped_column(Boolean)
    resource_last_modified: Mapped[datetime] = mapped_column(DateTime)


class CmsSettingsCategory(TargetBase):
    __tablename__ = "cms_settings_category"
    __identity_fields__ = ("category_id", "category_name")

    category_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_name: Mapped[str] = mapped_column(String(100), unique=True)
    category_display_name: Mapped[str] = mapped_column(String(200))
    category_order: Mapped[Optional[int]] = mapped_column(Integer)
    category_id_path: Mapped[str] = mapped_column(String(450))
    category_level: Mapped[int] = mapped_column(Integer)
    category_child_count: Mapped[Optional[int]] = mapped_column(Integer)
    category_icon_path: Mapped[Optional[str]] = mapped_column(String(200))
    category_is_group: Mapped[Optional[bool]] = mapped_column(Boolean)
    category_is_custom: Mapped[bool] = mapped_column(Boolean, default=False)
    category_parent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("cms_settings_category.category_id")
    )
    category_resource_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("cms_resource.resource_id")
    )

    category_parent: Mapped[Optional["CmsSettingsCategory"]] = relationship(
        remote_side=[category_id]
    )
    category_resource: Mapped[Optional[CmsResource]] = relationship()


class CmsSettingsKey(TargetBase):
    __tablename__ = "cms_settings_key"
    __identity_fields__ = ("key_id", "key_guid", "key_name")

    key_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key_guid: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True)
    key_name: Mapped[str] = mapped_column(String(100), unique=True)
    key_display_name: Mapped[str] = mapped_column(String(200))
    key_description: Mapped[Optional[str]] = mapped_column(Text)
    key_value: Mapped[Optional[str]] = mapped_column(Text)
    key_type: Mapped[str] = mapped_column(String(50))
    key_category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("cms_settings_category.category_id")
    )
    key_last_modified: Mapped[datetime] = mapped_column(DateTime)
    key_order: Mapped[Optional[int]] = mapped_column(Integer)
    key_validation: Mapped[Optional[str]] = mapped_column(String(255))
    key_is_custom: Mapped[Optional[bool]] = mapped_column(Boolean)
    key_is_hidden: Mapped[Optional[bool]] = mapped_column(Boolean)
    key_explanation_text: Mapped[Optional[str]] = mapped_column(Text)


class OmContact(TargetBase):
    __tablename__ = "om_contact"
    __identity_fields__ = ("contact_id", "contact_guid")

    contact_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contact_guid: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True)
    contact_first_name: Mapped[Optional[str]] = mapped_column(String(100))
    contact_last_name: Mapped[Optional[str]] = mapped_column(String(100))
    contact_email: Mapped[Optional[str]] = mapped_column(String(254))
    contact_created: Mapped[Optional[datetime]] = mapped_column(DateTime)
    contact_last_modified: Mapped[datetime] = mapped_column(DateTime)


class CmsConsent(TargetBase):
    __tablename__ = "cms_consent"
    __identity_fields__ = ("consent_id", "consent_guid", "consent_name")

    consent_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    consent_guid: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True)
    consent_name: Mapped[str] = mapped_column(String(200), unique=True)
    consent_display_name: Mapped[str] = mapped_column(String(200))
    consent_content: Mapped[str] = mapped_column(Text)
    consent_hash: Mapped[str] = mapped_column(String(100))
    consent_last_modified: Mapped[datetime] = mapped_column(DateTime)


class CmsConsentArchive(TargetBase):
    __tablename__ = "cms_consent_archive"
    __identity_fields__ = ("consent_archive_id", "consent_archive_guid")

    consent_archive_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    consent_archive_guid: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True)
    consent_archive_consent_id: Mapped[int] = mapped_column(
        ForeignKey("cms_consent.consent_id")
    )
    consent_archive_content: Mapped[str] = mapped_column(Text)
    consent_archive_hash: Mapped[str] = mapped_column(String(100))
    consent_archive_last_modified: Mapped[datetime] = mapped_column(DateTime)


class CmsConsentAgreement(TargetBase):
    __tablename__ = "cms_consent_agreement"
    __identity_fields__ = ("consent_agreement_id", "consent_agreement_guid")

    consent_agreement_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    consent_agreement_guid: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True)
    consent_agreement_contact_id: Mapped[int] = mapped_column(
        ForeignKey("om_contact.contact_id")
    )
    consent_agreement_consent_id: Mapped[int] = mapped_column(
        ForeignKey("cms_consent.consent_id")
    )
    consent_agreement_revoked: Mapped[bool] = mapped_column(Boolean, default=False)
    consent_agreement_time: Mapped[datetime] = mapped_column(DateTime)
    consent_agreement_consent_hash: Mapped[Optional[str]] = mapped_column(String(100))


class CmsClass(TargetBase):
    __tablename__ = "cms_class"
    __identity_fields__ = ("class_id", "class_guid", "class_name")

    class_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    class_guid: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True)
    class_name: Mapped[str] = mapped_column(String(100), unique=True)
    class_display_name: Mapped[str] = mapped_column(String(100))
    class_type: Mapped[str] = mapped_column(String(20))
    class_table_name: Mapped[Optional[str]] = mapped_column(String(100))
    class_xml_schema: Mapped[Optional[str]] = mapped_column(Text)
    class_form_definition: Mapped[Optional[str]] = mapped_column(Text)
    class_last_modified: Mapped[datetime] = mapped_column(DateTime)


class CmsForm(TargetBase):
    __tablename__ = "cms_form"
    __identity_fields__ = ("form_id", "form_guid", "form_name")

    form_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    form_guid: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True)
    form_name: Mapped[str] = mapped_column(String(100), unique=True)
    form_display_name: Mapped[str] = mapped_column(String(100))
    form_class_id: Mapped[int] = mapped_column(ForeignKey("cms_class.class_id"))
    form_items: Mapped[int] = mapped_column(Integer, default=0)
    form_submit_button_text: Mapped[Optional[str]] = mapped_column(Text)
    form_last_modified: Mapped[datetime] = mapped_column(DateTime)
