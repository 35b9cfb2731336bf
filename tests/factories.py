"""Builders for source and target records used across the tests."""
import uuid
from datetime import datetime

from migration_toolkit import source_models as src
from migration_toolkit import target_models as tgt

MODIFIED = datetime(2023, 5, 17, 9, 30, 0)

FORM_XSD = """<?xml version="1.0" encoding="utf-8"?>
<xs:schema id="NewDataSet" xmlns="" xmlns:xs="http://www.w3.org/2001/XMLSchema" xmlns:msdata="urn:schemas-microsoft-com:xml-msdata">
  <xs:element name="NewDataSet" msdata:IsDataSet="true">
    <xs:complexType>
      <xs:choice minOccurs="0" maxOccurs="unbounded">
        <xs:element name="Form_Contact">
          <xs:complexType>
            <xs:sequence>
              <xs:element name="FormID" msdata:ReadOnly="true" msdata:AutoIncrement="true" type="xs:int" />
              <xs:element name="Email" minOccurs="0">
                <xs:simpleType>
                  <xs:restriction base="xs:string">
                    <xs:maxLength value="200" />
                  </xs:restriction>
                </xs:simpleType>
              </xs:element>
              <xs:element name="Message" minOccurs="0" type="xs:string" />
              <xs:element name="FormInserted" type="xs:dateTime" />
              <xs:element name="Subscribed" minOccurs="0" type="xs:boolean" />
              <xs:element name="VisitorGuid" minOccurs="0" msdata:DataType="System.Guid, mscorlib" type="xs:string" />
            </xs:sequence>
          </xs:complexType>
        </xs:element>
      </xs:choice>
    </xs:complexType>
    <xs:unique name="Constraint1" msdata:PrimaryKey="true">
      <xs:selector xpath=".//Form_Contact" />
      <xs:field xpath="FormID" />
    </xs:unique>
  </xs:element>
</xs:schema>
"""


def sqlite_url(path) -> str:
    return f"sqlite+aiosqlite:///{path}"


def guid(n: int) -> uuid.UUID:
    return uuid.UUID(int=n)


def source_consent(consent_id, name=None, consent_guid=None, **values):
    return src.CmsConsent(
        consent_id=consent_id,
        consent_guid=consent_guid or guid(1000 + consent_id),
        consent_name=name or f"Consent{consent_id}",
        consent_display_name=values.pop("display_name", f"Consent {consent_id}"),
        consent_content=values.pop("content", "<p>I agree</p>"),
        consent_hash=values.pop("hash", f"hash-{consent_id}"),
        consent_last_modified=values.pop("last_modified", MODIFIED),
    )


def target_consent(name, consent_guid, consent_id=None):
    return tgt.CmsConsent(
        consent_id=consent_id,
        consent_guid=consent_guid,
        consent_name=name,
        consent_display_name=name,
        consent_content="",
        consent_hash="existing",
        consent_last_modified=MODIFIED,
    )


def source_archive(archive_id, consent_id):
    return src.CmsConsentArchive(
        consent_archive_id=archive_id,
        consent_archive_guid=guid(2000 + archive_id),
        consent_archive_consent_id=consent_id,
        consent_archive_content="<p>old text</p>",
        consent_archive_hash=f"archive-{archive_id}",
        consent_archive_last_modified=MODIFIED,
    )


def source_contact(contact_id):
    return src.OmContact(
        contact_id=contact_id,
        contact_guid=guid(3000 + contact_id),
        contact_first_name="Ada",
        contact_last_name=f"Lovelace {contact_id}",
        contact_email=f"ada{contact_id}@example.com",
        contact_created=MODIFIED,
        contact_last_modified=MODIFIED,
    )


def source_agreement(agreement_id, contact_id, consent_id):
    return src.CmsConsentAgreement(
        consent_agreement_id=agreement_id,
        consent_agreement_guid=guid(4000 + agreement_id),
        consent_agreement_contact_id=contact_id,
        consent_agreement_consent_id=consent_id,
        consent_agreement_revoked=False,
        consent_agreement_time=MODIFIED,
        consent_agreement_consent_hash=f"hash-{consent_id}",
    )


def source_resource(resource_id, name=None):
    return src.CmsResource(
        resource_id=resource_id,
        resource_guid=guid(5000 + resource_id),
        resource_name=name or f"Resource.{resource_id}",
        resource_display_name=f"Resource {resource_id}",
        resource_description=None,
        resource_is_in_development=False,
        resource_last_modified=MODIFIED,
    )


def source_category(category_id, name=None, parent_id=None, resource_id=None, level=1):
    return src.CmsSettingsCategory(
        category_id=category_id,
        category_name=name if name is not None else f"Category.{category_id}",
        category_display_name=f"Category {category_id}",
        category_order=category_id,
        category_id_path=f"/{category_id:08d}",
        category_level=level,
        category_child_count=0,
        category_icon_path=None,
        category_is_group=False,
        category_is_custom=False,
        category_parent_id=parent_id,
        category_resource_id=resource_id,
    )


def source_settings_key(key_id, category_id=None, site_id=None):
    return src.CmsSettingsKey(
        key_id=key_id,
        key_guid=guid(6000 + key_id),
        key_name=f"CMSKey{key_id}",
        key_display_name=f"Key {key_id}",
        key_description=None,
        key_value="True",
        key_type="boolean",
        key_category_id=category_id,
        site_id=site_id,
        key_last_modified=MODIFIED,
        key_order=key_id,
        key_validation=None,
        key_is_custom=False,
        key_is_hidden=False,
        key_explanation_text=None,
    )


def source_class(class_id, name=None, table_name="Form_Contact", xml_schema=FORM_XSD, is_form=True):
    return src.CmsClass(
        class_id=class_id,
        class_guid=guid(7000 + class_id),
        class_name=name or f"BizForm.Contact{class_id}",
        class_display_name=f"Contact form {class_id}",
        class_is_form=is_form,
        class_table_name=table_name,
        class_xml_schema=xml_schema,
        class_form_definition="<form />",
        class_last_modified=MODIFIED,
    )


def source_form(form_id, class_id, site_id=1):
    return src.CmsForm(
        form_id=form_id,
        form_guid=guid(8000 + form_id),
        form_name=f"ContactForm{form_id}",
        form_display_name=f"Contact form {form_id}",
        form_class_id=class_id,
        form_site_id=site_id,
        form_items=0,
        form_submit_button_text="Send",
        form_last_modified=MODIFIED,
    )
