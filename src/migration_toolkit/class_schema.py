"""Coupled data table definitions derived from a class's declared XML schema.

Classes describe their data table as an XSD dataset (the ``msdata`` dialect):

    <xs:element name="Form_Contact">
      <xs:complexType><xs:sequence>
        <xs:element name="FormID" msdata:AutoIncrement="true" type="xs:int" />
        <xs:element name="Email" minOccurs="0"> ... maxLength ... </xs:element>
      </xs:sequence></xs:complexType>
    </xs:element>
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from sqlalchemy import (BigInteger, Boolean, Column, DateTime, Float, Integer,
                        MetaData, Numeric, String, Table, Text, Uuid)

from .errors import MigrationError

XSD_NS = "http://www.w3.org/2001/XMLSchema"
MSDATA_NS = "urn:schemas-microsoft-com:xml-msdata"

_ELEMENT = f"{{{XSD_NS}}}element"
_SEQUENCE = f"{{{XSD_NS}}}sequence"
_UNIQUE = f"{{{XSD_NS}}}unique"
_FIELD = f"{{{XSD_NS}}}field"
_RESTRICTION = f"{{{XSD_NS}}}restriction"
_MAX_LENGTH = f"{{{XSD_NS}}}maxLength"
_AUTO_INCREMENT = f"{{{MSDATA_NS}}}AutoIncrement"
_PRIMARY_KEY = f"{{{MSDATA_NS}}}PrimaryKey"
_DATA_TYPE = f"{{{MSDATA_NS}}}DataType"

GUID_DATA_TYPE = "System.Guid"


class ClassSchemaError(MigrationError):
    """The XML schema of a class cannot be interpreted."""


@dataclass
class ClassColumn:
    name: str
    xsd_type: str
    nullable: bool = True
    max_length: Optional[int] = None
    auto_increment: bool = False
    primary_key: bool = False
    data_type: Optional[str] = None


@dataclass
class ClassSchema:
    row_name: str
    columns: List[ClassColumn] = field(default_factory=list)

    @property
    def auto_increment_columns(self) -> FrozenSet[str]:
        return frozenset(c.name for c in self.columns if c.auto_increment)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def to_table(self, table_name: str, metadata: Optional[MetaData] = None) -> Table:
        """Build the SQLAlchemy table for the class's coupled data."""
        columns = []
        for info in self.columns:
            columns.append(
                Column(
                    info.name,
                    map_type(info),
                    primary_key=info.primary_key or info.auto_increment,
                    autoincrement=info.auto_increment,
                    nullable=info.nullable and not info.primary_key,
                )
            )
        return Table(table_name, metadata if metadata is not None else MetaData(), *columns)


def _local(type_name: Optional[str]) -> str:
    if not type_name:
        return "string"
    return type_name.split(":", 1)[-1]


def map_type(info: ClassColumn):
    if info.data_type and info.data_type.split(",", 1)[0].strip() == GUID_DATA_TYPE:
        return Uuid
    x_type = info.xsd_type
    if x_type in {"int", "short", "byte"}:
        return Integer
    if x_type == "long":
        return BigInteger
    if x_type == "boolean":
        return Boolean
    if x_type == "dateTime":
        return DateTime
    if x_type == "decimal":
        return Numeric
    if x_type in {"double", "float"}:
        return Float
    if info.max_length is not None:
        return String(info.max_length)
    return Text


def _parse(xml_schema: Optional[str]) -> ET.Element:
    if not xml_schema or not xml_schema.strip():
        raise ClassSchemaError("class has no XML schema")
    try:
        return ET.fromstring(xml_schema)
    except ET.ParseError as exc:
        raise ClassSchemaError(f"malformed class XML schema: {exc}") from exc


def _column(element: ET.Element) -> ClassColumn:
    name = element.get("name")
    if not name:
        raise ClassSchemaError("column element without a name")

    x_type = element.get("type")
    max_length = None
    restriction = element.find(f".//{_RESTRICTION}")
    if restriction is not None:
        x_type = x_type or restriction.get("base")
        length = restriction.find(_MAX_LENGTH)
        if length is not None:
            try:
                max_length = int(length.get("value", ""))
            except ValueError:
                max_length = None

    return ClassColumn(
        name=name,
        xsd_type=_local(x_type),
        nullable=element.get("minOccurs") == "0",
        max_length=max_length,
        auto_increment=element.get(_AUTO_INCREMENT) == "true",
        data_type=element.get(_DATA_TYPE),
    )


def parse_class_schema(xml_schema: Optional[str]) -> ClassSchema:
    root = _parse(xml_schema)

    # The row element is the one owning the first column sequence.
    row_element = None
    for element in root.iter(_ELEMENT):
        if element.find(f"./*/{_SEQUENCE}") is not None:
            row_element = element
            break
    if row_element is None:
        raise ClassSchemaError("class XML schema declares no columns")

    sequence = row_element.find(f"./*/{_SEQUENCE}")
    schema = ClassSchema(
        row_name=row_element.get("name", ""),
        columns=[_column(element) for element in sequence.findall(_ELEMENT)],
    )

    primary_keys = set()
    for unique in root.iter(_UNIQUE):
        if unique.get(_PRIMARY_KEY) == "true":
            primary_keys.update(f.get("xpath", "") for f in unique.findall(_FIELD))
    for column in schema.columns:
        column.primary_key = column.name in primary_keys
    return schema


def auto_increment_columns(xml_schema: Optional[str]) -> FrozenSet[str]:
    """Names of all elements flagged ``msdata:AutoIncrement="true"``."""
    root = _parse(xml_schema)
    return frozenset(
        element.get("name", "")
        for element in root.iter(_ELEMENT)
        if element.get(_AUTO_INCREMENT) == "true"
    )
