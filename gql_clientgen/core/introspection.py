"""In-memory model of a GraphQL introspection schema.

The classes mirror the JSON shape returned by the standard introspection
query, so a response body validates directly:

    schema = deserialize_schema(response_text)

SDL files are converted through graphql-core before validation, see
``load_schema``.
"""

import json
import os
from enum import Enum
from typing import Any

from graphql import GraphQLError, build_schema, introspection_from_schema
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .errors import SchemaInconsistencyError

BUILT_IN_TYPE_PREFIX = "__"

SDL_EXTENSIONS = (".graphql", ".graphqls", ".gql")


class GraphQlTypeKind(str, Enum):
    """Kinds reported by ``__Type.kind``."""

    SCALAR = "SCALAR"
    ENUM = "ENUM"
    OBJECT = "OBJECT"
    INPUT_OBJECT = "INPUT_OBJECT"
    UNION = "UNION"
    INTERFACE = "INTERFACE"
    LIST = "LIST"
    NON_NULL = "NON_NULL"


class GraphQlScalar:
    """Names of the built-in GraphQL scalars."""

    BOOLEAN = "Boolean"
    FLOAT = "Float"
    ID = "ID"
    INT = "Int"
    STRING = "String"

    ALL = (BOOLEAN, FLOAT, ID, INT, STRING)


class _IntrospectionModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GraphQlFieldType(_IntrospectionModel):
    """A (possibly wrapped) type reference. NonNull and List wrap ``of_type``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    kind: GraphQlTypeKind
    name: str | None = None
    of_type: "GraphQlFieldType | None" = None


class GraphQlNamedTypeRef(_IntrospectionModel):
    name: str


class GraphQlArgument(_IntrospectionModel):
    name: str
    description: str | None = None
    type: GraphQlFieldType
    default_value: Any = None


class GraphQlEnumValue(_IntrospectionModel):
    name: str
    description: str | None = None
    is_deprecated: bool = False
    deprecation_reason: str | None = None


class GraphQlField(_IntrospectionModel):
    name: str
    description: str | None = None
    type: GraphQlFieldType
    args: list[GraphQlArgument] = Field(default_factory=list)
    is_deprecated: bool = False
    deprecation_reason: str | None = None

    @field_validator("args", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value

    @property
    def requires_parameters(self) -> bool:
        """True when at least one argument is non-null and has no default."""
        return any(
            arg.type.kind is GraphQlTypeKind.NON_NULL and arg.default_value is None
            for arg in self.args
        )


class GraphQlType(_IntrospectionModel):
    kind: GraphQlTypeKind
    name: str
    description: str | None = None
    fields: list[GraphQlField] = Field(default_factory=list)
    input_fields: list[GraphQlArgument] = Field(default_factory=list)
    interfaces: list[GraphQlFieldType] = Field(default_factory=list)
    enum_values: list[GraphQlEnumValue] = Field(default_factory=list)
    possible_types: list[GraphQlFieldType] = Field(default_factory=list)

    @field_validator(
        "fields", "input_fields", "interfaces", "enum_values", "possible_types", mode="before"
    )
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value

    @property
    def is_built_in(self) -> bool:
        return self.name.startswith(BUILT_IN_TYPE_PREFIX)


class GraphQlDirective(_IntrospectionModel):
    name: str
    description: str | None = None
    locations: list[str] = Field(default_factory=list)
    args: list[GraphQlArgument] = Field(default_factory=list)

    @field_validator("args", "locations", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value


class GraphQlSchema(_IntrospectionModel):
    """The ``__schema`` object of an introspection result."""

    query_type: GraphQlNamedTypeRef | None = None
    mutation_type: GraphQlNamedTypeRef | None = None
    subscription_type: GraphQlNamedTypeRef | None = None
    types: list[GraphQlType] = Field(default_factory=list)
    directives: list[GraphQlDirective] = Field(default_factory=list)

    @field_validator("directives", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value

    def get_type(self, name: str) -> GraphQlType | None:
        for graphql_type in self.types:
            if graphql_type.name == name:
                return graphql_type
        return None

    def get_complex_types(self) -> list[GraphQlType]:
        return [t for t in self.types if is_complex(t.kind) and not t.is_built_in]

    def get_input_object_types(self) -> list[GraphQlType]:
        return [
            t for t in self.types if t.kind is GraphQlTypeKind.INPUT_OBJECT and not t.is_built_in
        ]

    def get_enum_types(self) -> list[GraphQlType]:
        return [t for t in self.types if t.kind is GraphQlTypeKind.ENUM and not t.is_built_in]

    def get_operation_type_names(self) -> dict[str, str]:
        """Map root type name to its operation keyword."""
        operations = {}
        for keyword, ref in (
            ("query", self.query_type),
            ("mutation", self.mutation_type),
            ("subscription", self.subscription_type),
        ):
            if ref is not None:
                operations[ref.name] = keyword
        return operations

    def get_effective_fields(self, graphql_type: GraphQlType) -> list[GraphQlField]:
        """Fields of a type; for unions, the fields of all member types.

        Union members contribute in declaration order and the first
        definition of a field name wins.
        """
        if graphql_type.kind is not GraphQlTypeKind.UNION:
            return list(graphql_type.fields)

        fields: dict[str, GraphQlField] = {}
        for possible_type in graphql_type.possible_types:
            member = self.get_type(possible_type.name)
            if member is None:
                raise SchemaInconsistencyError(
                    f"union '{graphql_type.name}' references unknown type '{possible_type.name}'",
                    graphql_type.name,
                )
            for field in member.fields:
                fields.setdefault(field.name, field)
        return list(fields.values())

    def get_fragments(self, graphql_type: GraphQlType) -> list[GraphQlFieldType]:
        """One fragment descriptor per concrete type of an interface or union."""
        fragments = []
        for possible_type in graphql_type.possible_types:
            member = self.get_type(possible_type.name)
            if member is not None and member.fields:
                fragments.append(GraphQlFieldType(kind=member.kind, name=member.name))
        return fragments


def is_complex(kind: GraphQlTypeKind) -> bool:
    return kind in (GraphQlTypeKind.OBJECT, GraphQlTypeKind.INTERFACE, GraphQlTypeKind.UNION)


def unwrap_non_null(field_type: GraphQlFieldType) -> GraphQlFieldType:
    if field_type.kind is GraphQlTypeKind.NON_NULL and field_type.of_type is not None:
        return field_type.of_type
    return field_type


def unwrap_list_item(field_type: GraphQlFieldType) -> GraphQlFieldType | None:
    """Element type of a list reference, NonNull removed."""
    list_type = unwrap_non_null(field_type)
    if list_type.kind is not GraphQlTypeKind.LIST or list_type.of_type is None:
        return None
    return unwrap_non_null(list_type.of_type)


def unwrap_named(field_type: GraphQlFieldType) -> GraphQlFieldType:
    """Strip every NonNull and List wrapper."""
    while field_type.of_type is not None and field_type.kind in (
        GraphQlTypeKind.NON_NULL,
        GraphQlTypeKind.LIST,
    ):
        field_type = field_type.of_type
    return field_type


def to_type_reference(field_type: GraphQlFieldType) -> str:
    """GraphQL notation of a type reference, e.g. ``[User!]!``."""
    if field_type.kind is GraphQlTypeKind.NON_NULL and field_type.of_type is not None:
        return to_type_reference(field_type.of_type) + "!"
    if field_type.kind is GraphQlTypeKind.LIST and field_type.of_type is not None:
        return f"[{to_type_reference(field_type.of_type)}]"
    return field_type.name or ""


def deserialize_schema(content: str | bytes) -> GraphQlSchema:
    """Validate an introspection result.

    Accepts both the full response envelope ``{"data": {"__schema": ...}}``
    and a bare ``{"__schema": ...}`` document.
    """
    try:
        document = json.loads(content)
    except json.JSONDecodeError as e:
        raise SchemaInconsistencyError(f"not a GraphQL schema: {e}") from e

    if isinstance(document, dict) and isinstance(document.get("data"), dict):
        document = document["data"]

    if not isinstance(document, dict) or not isinstance(document.get("__schema"), dict):
        raise SchemaInconsistencyError("not a GraphQL schema")

    try:
        return GraphQlSchema.model_validate(document["__schema"])
    except ValidationError as e:
        raise SchemaInconsistencyError(f"not a GraphQL schema: {e}") from e


def schema_from_sdl(sdl: str) -> GraphQlSchema:
    """Build the introspection model from SDL text using graphql-core."""
    try:
        introspection = introspection_from_schema(build_schema(sdl))
    except GraphQLError as e:
        raise SchemaInconsistencyError(f"invalid schema definition: {e.message}") from e
    return GraphQlSchema.model_validate(introspection["__schema"])


def _collect_sdl_files(path: str) -> list[str]:
    files = []
    for root, _, filenames in os.walk(path):
        for filename in filenames:
            if filename.endswith(SDL_EXTENSIONS):
                files.append(os.path.join(root, filename))
    return sorted(files)


def load_schema(path: str) -> GraphQlSchema:
    """Load a schema from a JSON introspection file, an SDL file or an SDL directory."""
    if os.path.isdir(path):
        files = _collect_sdl_files(path)
        if not files:
            raise SchemaInconsistencyError(f"no GraphQL schema files found in '{path}'")
        parts = []
        for file_path in files:
            with open(file_path, encoding="utf-8") as f:
                parts.append(f.read())
        return schema_from_sdl("\n".join(parts))

    with open(path, encoding="utf-8") as f:
        content = f.read()

    if path.endswith(SDL_EXTENSIONS):
        return schema_from_sdl(content)
    return deserialize_schema(content)
