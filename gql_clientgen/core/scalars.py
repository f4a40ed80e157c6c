"""Mapping of GraphQL scalar and enum members to Python type annotations.

The resolution order is:

1. the configured ``ScalarFieldTypeMappingProvider`` (``None`` means no opinion);
2. well-known temporal member names (``createdAt``, ``validFrom``, ``...Timestamp``);
3. the built-in scalars, according to the configured mapping modes;
4. well-known custom scalar names, anything else becomes ``Any``.

Example usage:
    from gql_clientgen.core.scalars import (
        RegexScalarFieldTypeMappingProvider,
        RegexScalarFieldTypeMappingRule,
    )

    provider = RegexScalarFieldTypeMappingProvider([
        RegexScalarFieldTypeMappingRule(
            pattern_base_type=".+",
            pattern_value_type="Money",
            pattern_value_name=".+",
            type_name="decimal.Decimal",
        )
    ])
    configuration = GraphQlGeneratorConfiguration(scalar_field_type_mapping_provider=provider)
"""

import dataclasses
import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .configuration import (
    BooleanTypeMapping,
    FloatTypeMapping,
    GraphQlGeneratorConfiguration,
    IdTypeMapping,
    IntegerTypeMapping,
)
from .errors import ConfigurationError
from .introspection import (
    GraphQlFieldType,
    GraphQlScalar,
    GraphQlType,
    GraphQlTypeKind,
    unwrap_non_null,
)
from .naming import pascal_case


class ClientComponentType(str, Enum):
    """Where the resolved type is going to be used."""

    DATA_CLASS_PROPERTY = "data-class-property"
    INPUT_PROPERTY = "input-property"
    QUERY_BUILDER_ARGUMENT = "query-builder-argument"
    DIRECTIVE_ARGUMENT = "directive-argument"


@dataclass(frozen=True)
class ScalarFieldTypeDescription:
    """Python type chosen for a schema member.

    Attributes:
        type_name: Python expression of the type, e.g. ``"datetime.datetime"``
        format_mask: ``strftime`` format used when the value is sent as an argument
        is_reference_type: True for types that have no natural value semantics
            (strings, ``Any``, models, lists)
        is_nullable: Whether the annotation is wrapped in ``Optional``
    """

    type_name: str
    format_mask: str | None = None
    is_reference_type: bool = False
    is_nullable: bool = False

    @property
    def annotation(self) -> str:
        if self.is_nullable and self.type_name != "Any":
            return f"Optional[{self.type_name}]"
        return self.type_name


@dataclass(frozen=True)
class ScalarFieldTypeProviderContext:
    """Everything a mapping provider may inspect."""

    configuration: GraphQlGeneratorConfiguration
    component_type: ClientComponentType
    owner_type: GraphQlType
    field_type: GraphQlFieldType
    field_name: str


@runtime_checkable
class ScalarFieldTypeMappingProvider(Protocol):
    """Protocol for pluggable scalar type mapping.

    Example:
        class MoneyProvider:
            def get_custom_scalar_field_type(self, context):
                if context.field_type.name == "Money":
                    return ScalarFieldTypeDescription("decimal.Decimal")
                return None
    """

    def get_custom_scalar_field_type(
        self, context: ScalarFieldTypeProviderContext
    ) -> ScalarFieldTypeDescription | None:
        """Return the type for the member, or None to fall through to the defaults."""
        ...


STRING_TYPE = ScalarFieldTypeDescription("str", is_reference_type=True)
OBJECT_TYPE = ScalarFieldTypeDescription("Any", is_reference_type=True)
DATE_TIME_TYPE = ScalarFieldTypeDescription("datetime.datetime")

TEMPORAL_FIELD_NAMES = frozenset(
    {"From", "ValidFrom", "To", "ValidTo", "CreatedAt", "UpdatedAt", "ModifiedAt", "DeletedAt"}
)

FALLBACK_SCALAR_TYPES: dict[str, ScalarFieldTypeDescription] = {
    "BigInt": ScalarFieldTypeDescription("int"),
    "Byte": ScalarFieldTypeDescription("int"),
    "Long": ScalarFieldTypeDescription("int"),
    "Short": ScalarFieldTypeDescription("int"),
    "UInt": ScalarFieldTypeDescription("int"),
    "ULong": ScalarFieldTypeDescription("int"),
    "UShort": ScalarFieldTypeDescription("int"),
    "Date": ScalarFieldTypeDescription("datetime.date"),
    "DateOnly": ScalarFieldTypeDescription("datetime.date"),
    "DateTime": ScalarFieldTypeDescription("datetime.datetime"),
    "DateTimeOffset": ScalarFieldTypeDescription("datetime.datetime"),
    "Time": ScalarFieldTypeDescription("datetime.time"),
    "TimeOnly": ScalarFieldTypeDescription("datetime.time"),
    "Decimal": ScalarFieldTypeDescription("decimal.Decimal"),
    "BigDecimal": ScalarFieldTypeDescription("decimal.Decimal"),
    "Guid": ScalarFieldTypeDescription("uuid.UUID"),
    "UUID": ScalarFieldTypeDescription("uuid.UUID"),
    "URL": STRING_TYPE,
    "Uri": STRING_TYPE,
    "JSON": OBJECT_TYPE,
}


def is_temporal_field_name(member_name: str) -> bool:
    name = pascal_case(member_name)
    return name in TEMPORAL_FIELD_NAMES or name.endswith("Timestamp")


def get_fallback_field_type(scalar_name: str | None) -> ScalarFieldTypeDescription:
    """Type for a scalar outside the built-in set."""
    if scalar_name == GraphQlScalar.STRING:
        return STRING_TYPE
    return FALLBACK_SCALAR_TYPES.get(scalar_name or "", OBJECT_TYPE)


class DefaultScalarFieldTypeMappingProvider:
    """Maps well-known custom scalar names and leaves everything else to the defaults."""

    def get_custom_scalar_field_type(
        self, context: ScalarFieldTypeProviderContext
    ) -> ScalarFieldTypeDescription | None:
        return FALLBACK_SCALAR_TYPES.get(context.field_type.name or "")


_INTEGER_TYPES = {
    IntegerTypeMapping.INT: ScalarFieldTypeDescription("int"),
    IntegerTypeMapping.INT16: ScalarFieldTypeDescription("Int16"),
    IntegerTypeMapping.INT32: ScalarFieldTypeDescription("Int32"),
    IntegerTypeMapping.INT64: ScalarFieldTypeDescription("Int64"),
}

_FLOAT_TYPES = {
    FloatTypeMapping.FLOAT: ScalarFieldTypeDescription("float"),
    FloatTypeMapping.DECIMAL: ScalarFieldTypeDescription("decimal.Decimal"),
}

_ID_TYPES = {
    IdTypeMapping.STRING: STRING_TYPE,
    IdTypeMapping.UUID: ScalarFieldTypeDescription("uuid.UUID"),
    IdTypeMapping.OBJECT: OBJECT_TYPE,
}

_BOOLEAN_TYPES = {
    BooleanTypeMapping.BOOLEAN: ScalarFieldTypeDescription("bool"),
}


def validate_description(
    description: ScalarFieldTypeDescription, owner_name: str, member_name: str
) -> ScalarFieldTypeDescription:
    """Strip the type name and reject blank names and blank format masks."""
    type_name = (description.type_name or "").strip()
    if not type_name:
        raise ConfigurationError(
            f"scalar field type mapping provider returned no type name for '{owner_name}.{member_name}'"
        )
    if description.format_mask is not None and not description.format_mask.strip():
        raise ConfigurationError(
            f"format mask of '{owner_name}.{member_name}' must not be blank"
        )
    return dataclasses.replace(description, type_name=type_name)


def apply_nullability(
    description: ScalarFieldTypeDescription,
    field_type: GraphQlFieldType,
    always_nullable: bool,
    nullable_references: bool,
) -> ScalarFieldTypeDescription:
    """Decide whether the annotation becomes ``Optional``.

    Reference-like types stay nullable unless nullable reference mode is
    enabled, in which case they follow the schema like value types do.
    """
    if description.is_reference_type and not nullable_references:
        is_nullable = True
    else:
        is_nullable = always_nullable or field_type.kind is not GraphQlTypeKind.NON_NULL
    return dataclasses.replace(description, is_nullable=is_nullable)


def resolve_scalar_type(
    configuration: GraphQlGeneratorConfiguration,
    owner_type: GraphQlType,
    member_name: str,
    field_type: GraphQlFieldType,
    component_type: ClientComponentType = ClientComponentType.DATA_CLASS_PROPERTY,
    always_nullable: bool = False,
    enum_class_name: Callable[[str], str] = pascal_case,
) -> ScalarFieldTypeDescription:
    """Resolve the Python type of a scalar or enum member."""
    value_type = unwrap_non_null(field_type)
    provider = configuration.scalar_field_type_mapping_provider

    description = None
    if provider is not None:
        description = provider.get_custom_scalar_field_type(
            ScalarFieldTypeProviderContext(
                configuration=configuration,
                component_type=component_type,
                owner_type=owner_type,
                field_type=value_type,
                field_name=member_name,
            )
        )
        if description is not None:
            description = validate_description(description, owner_type.name, member_name)

    if description is None:
        description = _resolve_default(configuration, owner_type, member_name, value_type, enum_class_name)

    return apply_nullability(
        description, field_type, always_nullable, configuration.nullable_references
    )


def _resolve_default(
    configuration: GraphQlGeneratorConfiguration,
    owner_type: GraphQlType,
    member_name: str,
    value_type: GraphQlFieldType,
    enum_class_name: Callable[[str], str],
) -> ScalarFieldTypeDescription:
    if value_type.kind is GraphQlTypeKind.ENUM:
        return ScalarFieldTypeDescription(enum_class_name(value_type.name or ""))

    if is_temporal_field_name(member_name):
        return DATE_TIME_TYPE

    modes = {
        GraphQlScalar.INT: (configuration.integer_type_mapping, _INTEGER_TYPES),
        GraphQlScalar.FLOAT: (configuration.float_type_mapping, _FLOAT_TYPES),
        GraphQlScalar.ID: (configuration.id_type_mapping, _ID_TYPES),
        GraphQlScalar.BOOLEAN: (configuration.boolean_type_mapping, _BOOLEAN_TYPES),
    }
    if value_type.name in modes:
        mode, types = modes[value_type.name]
        if mode in types:
            return types[mode]
        if configuration.scalar_field_type_mapping_provider is None:
            raise ConfigurationError(
                f"custom {value_type.name} type mapping requires a scalar field type mapping provider"
            )
        raise ConfigurationError(
            f"scalar field type mapping provider returned no type for "
            f"'{owner_type.name}.{member_name}' ({value_type.name})"
        )

    return get_fallback_field_type(value_type.name)


class RegexScalarFieldTypeMappingRule(BaseModel):
    """A rule matched against owner type name, value type name and member name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    pattern_base_type: str
    pattern_value_type: str
    pattern_value_name: str
    type_name: str
    format_mask: str | None = None
    is_reference_type: bool = False

    @field_validator("pattern_base_type", "pattern_value_type", "pattern_value_name")
    @classmethod
    def _compilable(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regular expression '{value}': {e}") from e
        return value

    def matches(self, owner_name: str, value_type_name: str, member_name: str) -> bool:
        return (
            re.fullmatch(self.pattern_base_type, owner_name) is not None
            and re.fullmatch(self.pattern_value_type, value_type_name) is not None
            and re.fullmatch(self.pattern_value_name, member_name) is not None
        )


_RULES_ADAPTER = TypeAdapter(list[RegexScalarFieldTypeMappingRule])


class RegexScalarFieldTypeMappingProvider:
    """Resolves types with an ordered list of rules; the first matching rule wins."""

    def __init__(self, rules: list[RegexScalarFieldTypeMappingRule]):
        self.rules = list(rules)

    @classmethod
    def from_json(cls, content: str) -> "RegexScalarFieldTypeMappingProvider":
        return cls(parse_rules_from_json(content))

    def get_custom_scalar_field_type(
        self, context: ScalarFieldTypeProviderContext
    ) -> ScalarFieldTypeDescription | None:
        value_type_name = context.field_type.name or ""
        for rule in self.rules:
            if rule.matches(context.owner_type.name, value_type_name, context.field_name):
                return ScalarFieldTypeDescription(
                    rule.type_name,
                    format_mask=rule.format_mask,
                    is_reference_type=rule.is_reference_type,
                )
        return None


def parse_rules_from_json(content: str) -> list[RegexScalarFieldTypeMappingRule]:
    """Parse a JSON array of rules; raises ``ConfigurationError`` on any problem."""
    try:
        return _RULES_ADAPTER.validate_python(json.loads(content))
    except (json.JSONDecodeError, ValidationError) as e:
        raise ConfigurationError(f"invalid regex scalar mapping rules: {e}") from e
