"""Mapping of form classes and of the forms built on them."""

from __future__ import annotations

from typing import Optional

from .. import handbook
from .. import source_models as src
from .. import target_models as tgt
from ..class_schema import ClassSchemaError, parse_class_schema
from ..key_mapping import EntityKind
from .base import EntityMapperBase, MappingHelper
from .common import require, trim

FORM_CLASS_TYPE = "form"


class ClassMapper(EntityMapperBase[src.CmsClass, tgt.CmsClass]):
    kind = EntityKind.CLASS
    source_id_attr = "class_id"
    target_id_attr = "class_id"

    def create_new_instance(
        self, source: src.CmsClass, helper: MappingHelper
    ) -> Optional[tgt.CmsClass]:
        if not source.class_is_form:
            helper.add_failure(
                handbook.invalid_source_data(self.kind, source, "class is not a form class")
            )
            return None
        return tgt.CmsClass(
            class_guid=require(source, "class_guid"),
            class_type=FORM_CLASS_TYPE,
            class_table_name=require(source, "class_table_name"),
        )

    def map_internal(
        self,
        source: src.CmsClass,
        target: tgt.CmsClass,
        new_instance: bool,
        helper: MappingHelper,
    ) -> tgt.CmsClass:
        try:
            parse_class_schema(source.class_xml_schema)
        except ClassSchemaError as exc:
            helper.add_failure(handbook.invalid_source_data(self.kind, source, str(exc)))
            return target

        # The coupled data table is never renamed once it exists in the target.
        if target.class_table_name and target.class_table_name != source.class_table_name:
            helper.add_failure(
                handbook.invalid_source_data(
                    self.kind,
                    source,
                    f"class table '{source.class_table_name}' differs from target "
                    f"table '{target.class_table_name}'",
                )
            )
            return target

        target.class_name = require(source, "class_name")
        target.class_display_name = trim(require(source, "class_display_name"), 100)
        target.class_xml_schema = source.class_xml_schema
        target.class_form_definition = source.class_form_definition
        target.class_last_modified = source.class_last_modified
        return target


class FormMapper(EntityMapperBase[src.CmsForm, tgt.CmsForm]):
    kind = EntityKind.FORM
    source_id_attr = "form_id"
    target_id_attr = "form_id"

    def create_new_instance(
        self, source: src.CmsForm, helper: MappingHelper
    ) -> Optional[tgt.CmsForm]:
        return tgt.CmsForm(form_guid=require(source, "form_guid"))

    def map_internal(
        self,
        source: src.CmsForm,
        target: tgt.CmsForm,
        new_instance: bool,
        helper: MappingHelper,
    ) -> tgt.CmsForm:
        target.form_name = require(source, "form_name")
        target.form_display_name = trim(require(source, "form_display_name"), 100)
        target.form_items = source.form_items or 0
        target.form_submit_button_text = source.form_submit_button_text
        target.form_last_modified = source.form_last_modified

        class_id = helper.translate_required(
            self.kind, source, "form_class_id", EntityKind.CLASS, source.form_class_id
        )
        if class_id is not None:
            target.form_class_id = class_id
        return target
