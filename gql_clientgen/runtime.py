"""Runtime support for generated GraphQL query builders.

The source of this module is emitted verbatim as the base classes of every
generated client, so it depends on nothing but the standard library and
pydantic.

Builders accumulate a selection tree and serialize it to query text:

    builder = UserQueryBuilder().with_id().with_name()
    builder.build()                      # '{id,name}'
    builder.build(Formatting.INDENTED)   # '{\\n  id\\n  name\\n}'
"""

import dataclasses
import datetime
import decimal
import enum
import math
import re
import uuid
from collections.abc import Iterable, Iterator, Mapping
from typing import (
    Annotated,
    Any,
    Callable,
    ClassVar,
    Generic,
    Optional,
    Protocol,
    TypeVar,
    cast,
    runtime_checkable,
)

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "Int16",
    "Int32",
    "Int64",
    "Formatting",
    "SerializationSettings",
    "QueryBuilderParameter",
    "GraphQlQueryParameter",
    "QueryBuilderArgumentInfo",
    "InputPropertyInfo",
    "GraphQlInputValue",
    "InputProperty",
    "GraphQlInputObject",
    "GraphQlDataModel",
    "GraphQlInputDataModel",
    "GraphQlDirective",
    "GraphQlFieldMetadata",
    "FieldSelection",
    "SelectionSet",
    "QueryBuilderRegistry",
    "QUERY_BUILDERS",
    "GraphQlQueryBuilder",
    "build_argument_value",
    "escape_string",
]

Int16 = Annotated[int, Field(ge=-(2**15), le=2**15 - 1)]
Int32 = Annotated[int, Field(ge=-(2**31), le=2**31 - 1)]
Int64 = Annotated[int, Field(ge=-(2**63), le=2**63 - 1)]

T = TypeVar("T")
TValue = TypeVar("TValue")
TQueryBuilder = TypeVar("TQueryBuilder", bound="GraphQlQueryBuilder")

OPERATION_TYPES = ("query", "mutation", "subscription")

_NAME = re.compile(r"^[_A-Za-z][_0-9A-Za-z]*$")
_TYPE_REFERENCE = re.compile(r"^\[*[_A-Za-z][_0-9A-Za-z]*!?(\]!?)*$")
_WHITESPACE = re.compile(r"\s")

_STRING_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "/": "\\/",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def _validate_name(value: str, description: str) -> str:
    if not isinstance(value, str) or not _NAME.match(value):
        raise ValueError(f"invalid {description}: {value!r}")
    return value


class Formatting(enum.Enum):
    NONE = "none"
    INDENTED = "indented"


@dataclasses.dataclass(frozen=True)
class SerializationSettings:
    """Formatting options of a single ``build`` call."""

    formatting: Formatting = Formatting.NONE
    indentation_size: int = 2

    @property
    def is_indented(self) -> bool:
        return self.formatting is Formatting.INDENTED

    def indentation(self, level: int) -> str:
        return " " * (max(level, 0) * self.indentation_size)


class QueryBuilderParameter(Generic[T]):
    """An argument value, or a reference to an operation variable when named.

    ``None`` passed to a builder method means "argument not provided";
    ``QueryBuilderParameter(None)`` sends an explicit ``null``.
    """

    def __init__(
        self,
        value: Optional[T] = None,
        *,
        name: Optional[str] = None,
        graphql_type_name: Optional[str] = None,
    ):
        if name is not None:
            _validate_name(name, "parameter name")
        if graphql_type_name is not None and not _TYPE_REFERENCE.match(graphql_type_name):
            raise ValueError(f"invalid GraphQL type name: {graphql_type_name!r}")
        self.name = name
        self.graphql_type_name = graphql_type_name
        self.value = value

    @property
    def is_variable(self) -> bool:
        return self.name is not None

    @classmethod
    def wrap(cls, value: Any) -> "QueryBuilderParameter":
        return value if isinstance(value, QueryBuilderParameter) else cls(value)

    def __repr__(self) -> str:
        if self.is_variable:
            return f"{type(self).__name__}(${self.name}: {self.graphql_type_name})"
        return f"{type(self).__name__}({self.value!r})"


class GraphQlQueryParameter(QueryBuilderParameter[T]):
    """An operation variable; ``value`` becomes the default of nullable variables."""

    def __init__(self, name: str, graphql_type_name: str, value: Optional[T] = None):
        if graphql_type_name is None:
            raise ValueError("GraphQL type name is required")
        super().__init__(value, name=name, graphql_type_name=graphql_type_name)


@dataclasses.dataclass(frozen=True)
class QueryBuilderArgumentInfo:
    name: str
    value: Any
    format_mask: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class InputPropertyInfo:
    name: str
    value: Any
    format_mask: Optional[str] = None


@runtime_checkable
class GraphQlInputValue(Protocol):
    """Anything that can be sent as an input object literal."""

    def get_property_values(self) -> Iterable[InputPropertyInfo]: ...


class InputProperty(Generic[T]):
    """Descriptor for one field of a generated input object."""

    def __init__(self, graphql_name: str, format_mask: Optional[str] = None):
        self.graphql_name = graphql_name
        self.format_mask = format_mask
        self.attribute_name = graphql_name

    def __set_name__(self, owner: type, name: str):
        self.attribute_name = name

    def __get__(self, instance: Any, owner: Optional[type] = None) -> Any:
        if instance is None:
            return self
        value = instance._property_values.get(self.attribute_name)
        if isinstance(value, QueryBuilderParameter) and not value.is_variable:
            return value.value
        return value

    def __set__(self, instance: Any, value: Any):
        instance._property_values[self.attribute_name] = value

    def __delete__(self, instance: Any):
        instance._property_values.pop(self.attribute_name, None)


class GraphQlInputObject:
    """Base class of generated input objects.

    Only properties that were assigned are sent; assigning ``None`` sends
    ``null``. Property order follows the class body.
    """

    __input_properties__: ClassVar[tuple[InputProperty, ...]] = ()

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        properties = list(getattr(super(cls, cls), "__input_properties__", ()))
        properties.extend(v for v in vars(cls).values() if isinstance(v, InputProperty))
        cls.__input_properties__ = tuple(properties)

    def __init__(self, **values: Any):
        self._property_values: dict[str, Any] = {}
        known = {p.attribute_name for p in self.__input_properties__}
        for name, value in values.items():
            if name not in known:
                raise TypeError(f"{type(self).__name__} has no input property '{name}'")
            setattr(self, name, value)

    def get_property_values(self) -> Iterator[InputPropertyInfo]:
        for input_property in self.__input_properties__:
            if input_property.attribute_name in self._property_values:
                yield InputPropertyInfo(
                    input_property.graphql_name,
                    self._property_values[input_property.attribute_name],
                    input_property.format_mask,
                )

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._property_values == cast(GraphQlInputObject, other)._property_values

    def __repr__(self) -> str:
        values = ", ".join(f"{k}={v!r}" for k, v in self._property_values.items())
        return f"{type(self).__name__}({values})"


class GraphQlDataModel(BaseModel):
    """Base class of generated response models."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())


class GraphQlInputDataModel(GraphQlDataModel):
    """A response model that may also be sent as an input object literal."""

    def get_property_values(self) -> Iterator[InputPropertyInfo]:
        for attribute, field_info in type(self).model_fields.items():
            if attribute in self.model_fields_set:
                yield InputPropertyInfo(field_info.alias or attribute, getattr(self, attribute))


def escape_string(value: str) -> str:
    """Quote ``value`` as a GraphQL string literal."""
    chars = []
    for char in value:
        escaped = _STRING_ESCAPES.get(char)
        if escaped is None and ord(char) < 0x20:
            escaped = f"\\u{ord(char):04x}"
        chars.append(char if escaped is None else escaped)
    return '"' + "".join(chars) + '"'


def _build_sequence(
    items: list[str], settings: SerializationSettings, level: int, opening: str, closing: str
) -> str:
    if not items:
        return opening + closing
    if not settings.is_indented:
        return opening + ",".join(items) + closing
    indentation = settings.indentation(level + 1)
    body = ",\n".join(indentation + item for item in items)
    return f"{opening}\n{body}\n{settings.indentation(level)}{closing}"


def _build_object(
    properties: Iterable[tuple[str, Any, Optional[str]]],
    settings: SerializationSettings,
    level: int,
) -> str:
    separator = ": " if settings.is_indented else ":"
    items = [
        f"{name}{separator}{build_argument_value(value, settings, level + 1, format_mask)}"
        for name, value, format_mask in properties
    ]
    return _build_sequence(items, settings, level, "{", "}")


def _mapping_properties(mapping: Mapping) -> Iterator[tuple[str, Any, None]]:
    for key, value in mapping.items():
        key = str(key)
        if _WHITESPACE.search(key):
            raise ValueError(
                f"object keys used as GraphQL arguments must not contain whitespace; key: {key}"
            )
        yield key, value, None


def build_argument_value(
    value: Any,
    settings: SerializationSettings,
    level: int = 0,
    format_mask: Optional[str] = None,
) -> str:
    """Encode a Python value as a GraphQL argument literal.

    ``level`` is the indentation level of the line the literal starts on.
    """
    if isinstance(value, QueryBuilderParameter):
        if value.is_variable:
            return "$" + cast(str, value.name)
        return build_argument_value(value.value, settings, level, format_mask)

    if value is None:
        return "null"

    if isinstance(value, enum.Enum):
        return str(value.value)

    if isinstance(value, bool):
        return "true" if value else "false"

    if isinstance(value, (datetime.date, datetime.time)):
        text = value.strftime(format_mask) if format_mask else value.isoformat()
        return escape_string(text)

    if isinstance(value, GraphQlInputValue):
        properties = (
            (info.name, info.value, info.format_mask) for info in value.get_property_values()
        )
        return _build_object(properties, settings, level)

    if isinstance(value, (str, uuid.UUID)):
        return escape_string(str(value))

    if isinstance(value, Mapping):
        return _build_object(_mapping_properties(value), settings, level)

    if isinstance(value, (int, decimal.Decimal)):
        return str(value)

    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"{value} cannot be represented as a GraphQL float")
        return repr(value)

    if isinstance(value, Iterable) and not isinstance(value, (bytes, bytearray)):
        items = [build_argument_value(item, settings, level + 1, format_mask) for item in value]
        return _build_sequence(items, settings, level, "[", "]")

    return escape_string(str(value))


def _build_argument_clause(
    arguments: Iterable[QueryBuilderArgumentInfo], settings: SerializationSettings, level: int
) -> str:
    space = " " if settings.is_indented else ""
    rendered = [
        f"{argument.name}:{space}"
        + build_argument_value(argument.value, settings, level, argument.format_mask)
        for argument in arguments
    ]
    if not rendered:
        return ""
    return "(" + f",{space}".join(rendered) + ")"


class GraphQlDirective:
    """A directive applied to a selected field."""

    def __init__(self, name: str):
        self._name = _validate_name(name, "directive name")
        self._arguments: list[QueryBuilderArgumentInfo] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def arguments(self) -> tuple[QueryBuilderArgumentInfo, ...]:
        return tuple(self._arguments)

    def _add_argument(self, name: str, value: Any, format_mask: Optional[str] = None):
        if value is not None:
            self._arguments.append(QueryBuilderArgumentInfo(name, value, format_mask))

    def build(self, settings: SerializationSettings, level: int) -> str:
        return "@" + self._name + _build_argument_clause(self._arguments, settings, level)


@dataclasses.dataclass(frozen=True)
class GraphQlFieldMetadata:
    """Describes one field of a builder for automatic selection."""

    name: str
    is_complex: bool = False
    query_builder_type: Optional[str] = None
    requires_parameters: bool = False


@dataclasses.dataclass
class FieldSelection:
    name: str
    alias: Optional[str] = None
    arguments: tuple[QueryBuilderArgumentInfo, ...] = ()
    directives: tuple[GraphQlDirective, ...] = ()
    query_builder: Optional["GraphQlQueryBuilder"] = None

    @property
    def key(self) -> str:
        return self.alias or self.name


class SelectionSet(Generic[TValue]):
    """Ordered association list with unique keys.

    Putting an existing key replaces its value in place.
    """

    def __init__(self):
        self._entries: list[tuple[str, TValue]] = []

    def put(self, key: str, value: TValue):
        for index, (existing, _) in enumerate(self._entries):
            if existing == key:
                self._entries[index] = (key, value)
                return
        self._entries.append((key, value))

    def get(self, key: str) -> Optional[TValue]:
        for existing, value in self._entries:
            if existing == key:
                return value
        return None

    def remove(self, key: str) -> bool:
        for index, (existing, _) in enumerate(self._entries):
            if existing == key:
                del self._entries[index]
                return True
        return False

    def clear(self):
        self._entries.clear()

    def keys(self) -> list[str]:
        return [key for key, _ in self._entries]

    def __contains__(self, key: object) -> bool:
        return any(existing == key for existing, _ in self._entries)

    def __iter__(self) -> Iterator[TValue]:
        return iter([value for _, value in self._entries])

    def __len__(self) -> int:
        return len(self._entries)


class QueryBuilderRegistry:
    """Maps GraphQL type names to builder factories.

    Generated builders register themselves:

        @QUERY_BUILDERS.register(GraphQlTypes.USER)
        class UserQueryBuilder(GraphQlQueryBuilder["UserQueryBuilder"]): ...
    """

    def __init__(self):
        self._factories: dict[str, Callable[[], "GraphQlQueryBuilder"]] = {}

    def register(self, graphql_type_name: str):
        def decorator(factory):
            self._factories[graphql_type_name] = factory
            return factory

        return decorator

    def create(self, graphql_type_name: str) -> "GraphQlQueryBuilder":
        try:
            factory = self._factories[graphql_type_name]
        except KeyError:
            raise LookupError(
                f"no query builder registered for GraphQL type '{graphql_type_name}'"
            ) from None
        return factory()

    def __contains__(self, graphql_type_name: object) -> bool:
        return graphql_type_name in self._factories


QUERY_BUILDERS = QueryBuilderRegistry()


class GraphQlQueryBuilder(Generic[TQueryBuilder]):
    """Accumulates a selection for one GraphQL type and renders it as query text."""

    GRAPHQL_TYPE_NAME: ClassVar[str] = ""
    ALL_FIELDS: ClassVar[tuple[GraphQlFieldMetadata, ...]] = ()
    FRAGMENT_TYPES: ClassVar[tuple[str, ...]] = ()
    INDENTATION_SIZE: ClassVar[int] = 2

    def __init__(self, operation_type: Optional[str] = None, operation_name: Optional[str] = None):
        if operation_type is not None and operation_type not in OPERATION_TYPES:
            raise ValueError(f"invalid operation type: {operation_type!r}")
        if operation_name is not None:
            if operation_type is None:
                raise ValueError("an operation name requires an operation type")
            _validate_name(operation_name, "operation name")
        self._operation_type = operation_type
        self._operation_name = operation_name
        self._selection: SelectionSet[FieldSelection] = SelectionSet()
        self._fragments: SelectionSet[GraphQlQueryBuilder] = SelectionSet()
        self._parameters: SelectionSet[GraphQlQueryParameter] = SelectionSet()

    @property
    def operation_type(self) -> Optional[str]:
        return self._operation_type

    @property
    def operation_name(self) -> Optional[str]:
        return self._operation_name

    def _self(self) -> TQueryBuilder:
        return cast(TQueryBuilder, self)

    def clear(self) -> TQueryBuilder:
        self._selection.clear()
        self._fragments.clear()
        return self._self()

    def has_selection(self) -> bool:
        """True when ``build`` would render at least one selection."""
        for selection in self._selection:
            if selection.query_builder is None or selection.query_builder.has_selection():
                return True
        return any(fragment.has_selection() for fragment in self._fragments)

    def with_all_fields(self) -> TQueryBuilder:
        """Select every field that needs no arguments, recursing into nested types.

        A type is not expanded again inside its own selection, so cyclic
        schemas produce a finite selection.
        """
        depth_map = {self.GRAPHQL_TYPE_NAME: 0}
        self._include_fields(self._auto_selectable_fields(), 0, depth_map)
        self._include_fragments(0, depth_map)
        return self._self()

    def with_all_scalar_fields(self) -> TQueryBuilder:
        for metadata in self._auto_selectable_fields():
            if not metadata.is_complex:
                self._include_scalar_field(metadata.name)
        return self._self()

    def with_typename(self, alias: Optional[str] = None) -> TQueryBuilder:
        return self._with_scalar_field("__typename", alias)

    def except_field(self, field_name: str) -> TQueryBuilder:
        """Remove a selection by alias, or by field name when it has no alias."""
        if not field_name:
            raise ValueError("field name is required")
        self._selection.remove(field_name)
        return self._self()

    def with_parameter(self, parameter: GraphQlQueryParameter) -> TQueryBuilder:
        """Declare an operation variable."""
        if self._operation_type is None:
            raise TypeError("variables can only be declared on an operation builder")
        if not isinstance(parameter, GraphQlQueryParameter):
            raise TypeError("parameter must be a GraphQlQueryParameter")
        existing = self._parameters.get(cast(str, parameter.name))
        if existing is not None and existing is not parameter:
            raise ValueError(f"variable '${parameter.name}' is already declared")
        self._parameters.put(cast(str, parameter.name), parameter)
        return self._self()

    def build(
        self, formatting: Formatting = Formatting.NONE, indentation_size: Optional[int] = None
    ) -> str:
        settings = SerializationSettings(
            formatting, self.INDENTATION_SIZE if indentation_size is None else indentation_size
        )
        return self._build(settings, 1)

    def _with_scalar_field(
        self,
        field_name: str,
        alias: Optional[str] = None,
        directives: Iterable[Optional[GraphQlDirective]] = (),
        arguments: Iterable[QueryBuilderArgumentInfo] = (),
    ) -> TQueryBuilder:
        self._include_scalar_field(field_name, alias, directives, arguments)
        return self._self()

    def _with_object_field(
        self,
        field_name: str,
        query_builder: "GraphQlQueryBuilder",
        alias: Optional[str] = None,
        directives: Iterable[Optional[GraphQlDirective]] = (),
        arguments: Iterable[QueryBuilderArgumentInfo] = (),
    ) -> TQueryBuilder:
        if not isinstance(query_builder, GraphQlQueryBuilder):
            raise TypeError("query_builder must be a GraphQlQueryBuilder")
        if query_builder.operation_type is not None:
            raise ValueError("an operation builder cannot be nested in a selection")
        self._put_selection(field_name, alias, directives, arguments, query_builder)
        return self._self()

    def _with_fragment(self, query_builder: "GraphQlQueryBuilder") -> TQueryBuilder:
        if query_builder.operation_type is not None:
            raise ValueError("an operation builder cannot be used as a fragment")
        self._fragments.put(query_builder.GRAPHQL_TYPE_NAME, query_builder)
        return self._self()

    def _except_fragment(self, graphql_type_name: str) -> TQueryBuilder:
        self._fragments.remove(graphql_type_name)
        return self._self()

    def _include_scalar_field(
        self,
        field_name: str,
        alias: Optional[str] = None,
        directives: Iterable[Optional[GraphQlDirective]] = (),
        arguments: Iterable[QueryBuilderArgumentInfo] = (),
    ):
        self._put_selection(field_name, alias, directives, arguments, None)

    def _put_selection(self, field_name, alias, directives, arguments, query_builder):
        if alias is not None:
            _validate_name(alias, "alias")
        selection = FieldSelection(
            field_name,
            alias,
            tuple(argument for argument in arguments if argument.value is not None),
            tuple(d for d in directives if d is not None),
            query_builder,
        )
        self._selection.put(selection.key, selection)

    def _auto_selectable_fields(self) -> list[GraphQlFieldMetadata]:
        return [metadata for metadata in self.ALL_FIELDS if not metadata.requires_parameters]

    def _include_fields(
        self, fields: Iterable[GraphQlFieldMetadata], level: int, depth_map: dict[str, int]
    ):
        for metadata in fields:
            if metadata.query_builder_type is None:
                self._include_scalar_field(metadata.name)
                continue

            if self._operation_type is not None and metadata.query_builder_type == self.GRAPHQL_TYPE_NAME:
                continue

            child = self._expand(metadata.query_builder_type, level, depth_map)
            if child is not None:
                self._put_selection(metadata.name, None, (), (), child)

    def _include_fragments(self, level: int, depth_map: dict[str, int]):
        for graphql_type_name in self.FRAGMENT_TYPES:
            fragment = self._expand(graphql_type_name, level, depth_map)
            if fragment is not None:
                self._fragments.put(graphql_type_name, fragment)

    @staticmethod
    def _expand(
        graphql_type_name: str, level: int, depth_map: dict[str, int]
    ) -> Optional["GraphQlQueryBuilder"]:
        # depth_map holds the level at which a type's own fields were expanded
        recorded = depth_map.get(graphql_type_name)
        if recorded is not None and recorded <= level:
            return None

        depth_map[graphql_type_name] = level + 1
        child = QUERY_BUILDERS.create(graphql_type_name)
        child._include_fields(child._auto_selectable_fields(), level + 1, depth_map)
        child._include_fragments(level + 1, depth_map)
        return child if child.has_selection() else None

    def _build(self, settings: SerializationSettings, level: int) -> str:
        items = self._render_selections(settings, level)

        if settings.is_indented:
            selection_set = "{}"
            if items:
                body = "".join(f"{settings.indentation(level)}{item}\n" for item in items)
                selection_set = "{\n" + body + settings.indentation(level - 1) + "}"
        else:
            selection_set = "{" + ",".join(items) + "}"

        if self._operation_type is None:
            return selection_set

        signature = self._build_operation_signature(settings)
        return signature + (" " if settings.is_indented else "") + selection_set

    def _build_operation_signature(self, settings: SerializationSettings) -> str:
        signature = cast(str, self._operation_type)
        if self._operation_name:
            signature += " " + self._operation_name

        if len(self._parameters):
            space = " " if settings.is_indented else ""
            definitions = []
            for parameter in self._parameters:
                definition = f"${parameter.name}:{space}{parameter.graphql_type_name}"
                if parameter.value is not None and not cast(str, parameter.graphql_type_name).endswith("!"):
                    definition += f"{space}={space}" + build_argument_value(parameter.value, settings, 0)
                definitions.append(definition)
            signature += "(" + f",{space}".join(definitions) + ")"

        return signature

    def _render_selections(self, settings: SerializationSettings, level: int) -> list[str]:
        fragments = []
        for graphql_type_name, fragment in zip(self._fragments.keys(), self._fragments):
            if fragment.has_selection():
                keyword = "... on " if settings.is_indented else "...on "
                space = " " if settings.is_indented else ""
                fragments.append(
                    f"{keyword}{graphql_type_name}{space}{fragment._build(settings, level + 1)}"
                )

        items = []
        if fragments and "__typename" not in self._selection:
            items.append("__typename")

        for selection in self._selection:
            rendered = self._render_field(selection, settings, level)
            if rendered:
                items.append(rendered)

        items.extend(fragments)
        return items

    @staticmethod
    def _render_field(selection: FieldSelection, settings: SerializationSettings, level: int) -> str:
        query_builder = selection.query_builder
        if query_builder is not None and not query_builder.has_selection():
            return ""

        space = " " if settings.is_indented else ""
        text = f"{selection.alias}:{space}" if selection.alias else ""
        text += selection.name
        text += _build_argument_clause(selection.arguments, settings, level)
        for directive in selection.directives:
            text += space + directive.build(settings, level)

        if query_builder is not None:
            text += space + query_builder._build(settings, level + 1)
        return text
