"""Generator configuration and parsers for key/value command-line parameters."""

import re
from dataclasses import dataclass, field
from enum import Enum, Flag, auto
from typing import TYPE_CHECKING

from .errors import ConfigurationError
from .naming import is_valid_identifier

if TYPE_CHECKING:
    from .scalars import ScalarFieldTypeMappingProvider


class IntegerTypeMapping(str, Enum):
    INT = "int"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    CUSTOM = "custom"


class FloatTypeMapping(str, Enum):
    FLOAT = "float"
    DECIMAL = "decimal"
    CUSTOM = "custom"


class IdTypeMapping(str, Enum):
    STRING = "string"
    UUID = "uuid"
    OBJECT = "object"
    CUSTOM = "custom"


class BooleanTypeMapping(str, Enum):
    BOOLEAN = "boolean"
    CUSTOM = "custom"


class GenerationOrder(str, Enum):
    DEFINED_BY_SCHEMA = "defined-by-schema"
    ALPHABETICAL = "alphabetical"


class DataClassMemberNullability(str, Enum):
    ALWAYS_NULLABLE = "always-nullable"
    DEFINED_BY_SCHEMA = "defined-by-schema"


class EnumValueNaming(str, Enum):
    UPPER_CASE = "upper-case"
    ORIGINAL = "original"


class OutputType(str, Enum):
    SINGLE_FILE = "single-file"
    ONE_CLASS_PER_FILE = "one-class-per-file"


class GeneratedObjectType(Flag):
    """Selects which generation phases run."""

    BASE_CLASSES = auto()
    QUERY_BUILDERS = auto()
    DATA_CLASSES = auto()
    ALL = BASE_CLASSES | QUERY_BUILDERS | DATA_CLASSES


@dataclass
class GraphQlGeneratorConfiguration:
    """Options that shape the generated client."""

    class_prefix: str = ""
    class_suffix: str = ""
    custom_class_name_mapping: dict[str, str] = field(default_factory=dict)
    nullable_references: bool = False
    integer_type_mapping: IntegerTypeMapping = IntegerTypeMapping.INT
    float_type_mapping: FloatTypeMapping = FloatTypeMapping.FLOAT
    id_type_mapping: IdTypeMapping = IdTypeMapping.STRING
    boolean_type_mapping: BooleanTypeMapping = BooleanTypeMapping.BOOLEAN
    include_deprecated_fields: bool = False
    generation_order: GenerationOrder = GenerationOrder.DEFINED_BY_SCHEMA
    data_class_member_nullability: DataClassMemberNullability = (
        DataClassMemberNullability.ALWAYS_NULLABLE
    )
    enum_value_naming: EnumValueNaming = EnumValueNaming.UPPER_CASE
    generate_documentation: bool = True
    indentation_size: int = 2
    scalar_field_type_mapping_provider: "ScalarFieldTypeMappingProvider | None" = None

    def __post_init__(self):
        if self.class_prefix and not self.class_prefix.isidentifier():
            raise ConfigurationError(f"class prefix '{self.class_prefix}' is not valid in a class name")
        if self.class_suffix and not ("X" + self.class_suffix).isidentifier():
            raise ConfigurationError(f"class suffix '{self.class_suffix}' is not valid in a class name")
        if self.indentation_size < 0:
            raise ConfigurationError("indentation_size must not be negative")


_PARAMETER_SEPARATOR = re.compile(r"[,;]")


def parse_key_value_parameters(parameters: list[str], separator: str = ":") -> dict[str, str]:
    """Parse ``key<separator>value`` entries.

    Each entry may itself contain several pairs separated by ``,`` or ``;``.
    """
    result: dict[str, str] = {}
    for parameter in parameters:
        for entry in _PARAMETER_SEPARATOR.split(parameter):
            entry = entry.strip()
            if not entry:
                continue
            key, found, value = entry.partition(separator)
            key, value = key.strip(), value.strip()
            if not found or not key or not value:
                raise ConfigurationError(
                    f"\"{entry}\" is not a valid parameter; expected format is key{separator}value"
                )
            if key in result:
                raise ConfigurationError(f"duplicate parameter key \"{key}\"")
            result[key] = value
    return result


def parse_class_mapping(parameters: list[str]) -> dict[str, str]:
    """Parse ``GraphQlTypeName:ClassName`` entries into an override mapping."""
    mapping = parse_key_value_parameters(parameters)
    for graphql_name, class_name in mapping.items():
        if not is_valid_identifier(class_name):
            raise ConfigurationError(
                f"\"{class_name}\" (mapped from \"{graphql_name}\") is not a valid Python class name"
            )
    return mapping


def parse_headers(headers: list[str]) -> dict[str, str]:
    """Parse ``Name: value`` HTTP header entries.

    Header values may contain ``,`` or ``;``, so every entry holds exactly one header.
    """
    result: dict[str, str] = {}
    for header in headers:
        name, found, value = header.partition(":")
        name = name.strip()
        if not found or not name:
            raise ConfigurationError(f"\"{header}\" is not a valid header; expected format is Name: value")
        result[name] = value.strip()
    return result
