"""Generation contexts: schema lookups shared by all templates and the output targets.

A context is initialized once per generation run. Initialization resolves
class names, directives, union membership and the object types reachable
from input types; afterwards the lookups are read-only.

Two output targets are provided:

    # everything in one module
    context = SingleFileGenerationContext(schema, writer)

    # one module per class plus an __init__.py
    context = MultipleFileGenerationContext(schema, FileSystemEmitter("./client"), "client")
"""

import io
import logging
import os
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Protocol, TextIO, runtime_checkable

from .. import runtime
from .configuration import (
    DataClassMemberNullability,
    GeneratedObjectType,
    GraphQlGeneratorConfiguration,
)
from .errors import ConfigurationError, SchemaInconsistencyError
from .introspection import (
    GraphQlDirective,
    GraphQlField,
    GraphQlFieldType,
    GraphQlSchema,
    GraphQlType,
    GraphQlTypeKind,
    is_complex,
    unwrap_list_item,
    unwrap_named,
    unwrap_non_null,
)
from .naming import is_valid_identifier, pascal_case, snake_case
from .scalars import (
    ClientComponentType,
    ScalarFieldTypeDescription,
    apply_nullability,
    resolve_scalar_type,
)

logger = logging.getLogger(__name__)

# Names every generated module already binds.
RESERVED_CLASS_NAMES = frozenset(name for name in vars(runtime) if not name.startswith("_")) | {
    "Any",
    "BaseClasses",
    "BaseModel",
    "ConfigDict",
    "Field",
    "GraphQlTypes",
    "List",
    "Optional",
    "TYPE_CHECKING",
    "Union",
}

FIELD_DIRECTIVE_LOCATION = "FIELD"


class GenerationPhase(str, Enum):
    """Generation phases in output order; values are the region names."""

    BASE_CLASSES = "base classes"
    GRAPHQL_TYPES = "GraphQL type helpers"
    ENUMS = "enums"
    DIRECTIVES = "directives"
    QUERY_BUILDERS = "builder classes"
    INPUT_CLASSES = "input classes"
    DATA_CLASSES = "data classes"

    @property
    def object_type(self) -> GeneratedObjectType:
        if self in (GenerationPhase.BASE_CLASSES, GenerationPhase.GRAPHQL_TYPES):
            return GeneratedObjectType.BASE_CLASSES
        if self in (GenerationPhase.DIRECTIVES, GenerationPhase.QUERY_BUILDERS):
            return GeneratedObjectType.QUERY_BUILDERS
        return GeneratedObjectType.DATA_CLASSES


class GenerationContext:
    """Schema lookups and phase callbacks shared by every output target."""

    def __init__(
        self,
        schema: GraphQlSchema,
        object_types: GeneratedObjectType = GeneratedObjectType.ALL,
        log_message: Optional[Callable[[str], None]] = None,
    ):
        if not object_types & GeneratedObjectType.ALL:
            raise ValueError("object_types must select at least one kind of generated object")

        self.schema = schema
        self.object_types = object_types
        self.log_message = log_message
        self._configuration: Optional[GraphQlGeneratorConfiguration] = None
        self._types: dict[str, GraphQlType] = {}
        self._complex_types: dict[str, GraphQlType] = {}
        self._directives: dict[str, GraphQlDirective] = {}
        self._union_membership: dict[str, list[str]] = {}
        self._referenced_object_types: set[str] = set()
        self._name_mapping: dict[str, str] = {}

    @property
    def configuration(self) -> GraphQlGeneratorConfiguration:
        if self._configuration is None:
            raise RuntimeError("generation context is not initialized; call initialize() first")
        return self._configuration

    @property
    def name_mapping(self) -> Mapping[str, str]:
        """GraphQL type name to collision-free class name, for renamed types only."""
        return MappingProxyType(self._name_mapping)

    @property
    def directives(self) -> list[GraphQlDirective]:
        return list(self._directives.values())

    @property
    def referenced_object_types(self) -> frozenset[str]:
        return frozenset(self._referenced_object_types)

    def initialize(self, configuration: GraphQlGeneratorConfiguration):
        """Resolve every lookup; must run before any phase callback."""
        self._configuration = configuration
        self._types = {t.name: t for t in self.schema.types}
        self._complex_types = {t.name: t for t in self.schema.get_complex_types()}
        self._directives = {}
        self._union_membership = {}
        self._referenced_object_types = set()
        self._name_mapping = {}

        self._resolve_directives()
        self._resolve_union_membership()
        self._validate_class_mapping()
        self._resolve_name_collisions()
        self._resolve_referenced_object_types()

    def log(self, message: str):
        logger.info(message)
        if self.log_message is not None:
            self.log_message(message)

    def warn(self, message: str):
        logger.warning(message)
        if self.log_message is not None:
            self.log_message(f"WARNING: {message}")

    # region lookups

    def get_type(self, name: str) -> GraphQlType:
        try:
            return self._types[name]
        except KeyError:
            raise SchemaInconsistencyError(f"type '{name}' not found in schema", name) from None

    def is_operation_type(self, name: str) -> bool:
        return name in self.schema.get_operation_type_names()

    def get_union_memberships(self, type_name: str) -> list[str]:
        return list(self._union_membership.get(type_name, ()))

    def get_class_name(self, graphql_name: str, type_suffix: str = "") -> str:
        """Class name with prefix and suffix applied.

        ``type_suffix`` goes between the resolved name and the configured
        suffix, e.g. ``QueryBuilder``.
        """
        configuration = self.configuration
        class_name = configuration.custom_class_name_mapping.get(graphql_name)
        if class_name is None:
            class_name = self._name_mapping.get(graphql_name) or pascal_case(graphql_name)
        return configuration.class_prefix + class_name + type_suffix + configuration.class_suffix

    def is_included(self, member) -> bool:
        return self.configuration.include_deprecated_fields or not member.is_deprecated

    def get_fields_to_generate(self, graphql_type: GraphQlType) -> list[GraphQlField]:
        """Own fields without deprecated ones and without fields leading to fully deprecated types."""
        return [
            field
            for field in graphql_type.fields
            if self.is_included(field) and self._has_included_fields(field.type)
        ]

    def get_effective_fields(self, graphql_type: GraphQlType) -> list[GraphQlField]:
        if graphql_type.kind is GraphQlTypeKind.UNION:
            return [
                field
                for field in self.schema.get_effective_fields(graphql_type)
                if self.is_included(field) and self._has_included_fields(field.type)
            ]
        return self.get_fields_to_generate(graphql_type)

    def get_fragment_types(self, graphql_type: GraphQlType) -> list[GraphQlType]:
        fragments = []
        for fragment in self.schema.get_fragments(graphql_type):
            fragment_type = self._complex_types.get(fragment.name or "")
            if fragment_type is not None and self.get_effective_fields(fragment_type):
                fragments.append(fragment_type)
        return fragments

    def _has_included_fields(self, field_type: GraphQlFieldType) -> bool:
        named = unwrap_named(field_type)
        if not is_complex(named.kind):
            return True

        graphql_type = self._complex_types.get(named.name or "")
        if graphql_type is None:
            raise SchemaInconsistencyError(f"type '{named.name}' not found in schema", named.name)

        if graphql_type.kind is GraphQlTypeKind.UNION:
            fields = self.schema.get_effective_fields(graphql_type)
        else:
            fields = graphql_type.fields
        return any(self.is_included(field) for field in fields)

    # endregion

    # region type resolution

    def get_scalar_type(
        self,
        owner_type: GraphQlType,
        member_name: str,
        field_type: GraphQlFieldType,
        component_type: ClientComponentType = ClientComponentType.DATA_CLASS_PROPERTY,
        always_nullable: bool = False,
    ) -> ScalarFieldTypeDescription:
        return resolve_scalar_type(
            self.configuration,
            owner_type,
            member_name,
            field_type,
            component_type,
            always_nullable,
            self.get_class_name,
        )

    def get_member_type(
        self,
        owner_type: GraphQlType,
        member_name: str,
        field_type: GraphQlFieldType,
        component_type: ClientComponentType = ClientComponentType.DATA_CLASS_PROPERTY,
        always_nullable: bool = False,
    ) -> ScalarFieldTypeDescription:
        """Python type of any member: scalars, enums, complex types and lists of them."""
        value_type = unwrap_non_null(field_type)

        if value_type.kind is GraphQlTypeKind.LIST:
            item_type = unwrap_list_item(value_type)
            if item_type is None or value_type.of_type is None:
                raise SchemaInconsistencyError.list_item_type_resolution_failed(
                    owner_type.name, member_name
                )
            item = self.get_member_type(
                owner_type, member_name, value_type.of_type, component_type
            )
            description = ScalarFieldTypeDescription(
                f"List[{item.annotation}]", format_mask=item.format_mask, is_reference_type=True
            )
        elif is_complex(value_type.kind) or value_type.kind is GraphQlTypeKind.INPUT_OBJECT:
            self.get_type(value_type.name or "")
            description = ScalarFieldTypeDescription(
                self.get_class_name(value_type.name or ""), is_reference_type=True
            )
        else:
            return self.get_scalar_type(
                owner_type, member_name, field_type, component_type, always_nullable
            )

        return apply_nullability(
            description, field_type, always_nullable, self.configuration.nullable_references
        )

    def get_data_property_type(
        self, owner_type: GraphQlType, field: GraphQlField
    ) -> ScalarFieldTypeDescription:
        always_nullable = (
            self.configuration.data_class_member_nullability
            is DataClassMemberNullability.ALWAYS_NULLABLE
        )
        return self.get_member_type(
            owner_type, field.name, field.type, ClientComponentType.DATA_CLASS_PROPERTY, always_nullable
        )

    # endregion

    # region phase callbacks

    def before_generation(self, header: str):
        pass

    def before_phase(self, phase: GenerationPhase):
        pass

    def before_member_generation(self, phase: GenerationPhase, class_name: str, unit_header: str = ""):
        pass

    def write(self, text: str):
        raise NotImplementedError

    def after_member_generation(self, phase: GenerationPhase, class_name: str):
        pass

    def after_phase(self, phase: GenerationPhase):
        pass

    def after_generation(self):
        pass

    def abort(self):
        """Release resources after a failed run."""

    # endregion

    def _resolve_directives(self):
        for directive in self.schema.directives:
            if directive.name in self._directives:
                self.warn(f"duplicate \"{directive.name}\" directive definition")
            else:
                self._directives[directive.name] = directive

    def _resolve_union_membership(self):
        seen: set[str] = set()
        for union in self._complex_types.values():
            if union.kind is not GraphQlTypeKind.UNION:
                continue
            for possible_type in union.possible_types:
                if possible_type.name in seen:
                    self.warn(f"duplicate union \"{union.name}\" possible type \"{possible_type.name}\"")
                    continue
                seen.add(possible_type.name or "")
                self._union_membership.setdefault(possible_type.name or "", []).append(union.name)

    def _validate_class_mapping(self):
        for graphql_name, class_name in self.configuration.custom_class_name_mapping.items():
            if not is_valid_identifier(class_name):
                raise ConfigurationError(
                    f"\"{class_name}\" (mapped from \"{graphql_name}\") is not a valid Python class name"
                )
            if graphql_name not in self._types:
                self.warn(f"class mapping for unknown type \"{graphql_name}\" is ignored")

    def _resolve_name_collisions(self):
        configuration = self.configuration
        pascal_names = {pascal_case(name) for name in self._complex_types}
        pascal_names |= {pascal_case(t.name) for t in self.schema.get_input_object_types()}

        def full(class_name: str, type_suffix: str = "") -> str:
            return configuration.class_prefix + class_name + type_suffix + configuration.class_suffix

        # directive classes keep their names; types yield to them
        assigned = {
            full(pascal_case(d.name), "Directive")
            for d in self._directives.values()
            if FIELD_DIRECTIVE_LOCATION in d.locations
        }

        for graphql_type in self.schema.types:
            if graphql_type.is_built_in or graphql_type.kind is GraphQlTypeKind.SCALAR:
                continue

            has_builder = is_complex(graphql_type.kind)
            override = configuration.custom_class_name_mapping.get(graphql_type.name)
            if override is not None:
                assigned.add(full(override))
                if has_builder:
                    assigned.add(full(override, "QueryBuilder"))
                continue

            is_input = graphql_type.kind is GraphQlTypeKind.INPUT_OBJECT
            if is_input:
                member_names = {pascal_case(f.name) for f in graphql_type.input_fields}
            elif is_complex(graphql_type.kind):
                member_names = {pascal_case(f.name) for f in self.get_fields_to_generate(graphql_type)}
            else:
                member_names = set()

            candidate = pascal_case(graphql_type.name)
            class_name = candidate
            iteration = 1
            while True:
                full_name = full(class_name)
                builder_name = full(class_name, "QueryBuilder") if has_builder else None
                has_collision = (
                    full_name in member_names
                    or full_name in assigned
                    or full_name in RESERVED_CLASS_NAMES
                    or builder_name in assigned
                    or builder_name in RESERVED_CLASS_NAMES
                    or (class_name != candidate and class_name in pascal_names)
                )
                if not has_collision:
                    break

                if iteration == 1:
                    class_name = candidate + _first_collision_suffix(candidate, is_input)
                else:
                    class_name = f"{candidate}{iteration}"
                iteration += 1

            assigned.add(full_name)
            if builder_name is not None:
                assigned.add(builder_name)
            if class_name != candidate:
                self._name_mapping[graphql_type.name] = class_name

    def _resolve_referenced_object_types(self):
        visited: set[str] = set()
        for input_type in self.schema.get_input_object_types():
            self._find_referenced_object_types(input_type, visited)

    def _find_referenced_object_types(self, graphql_type: GraphQlType, visited: set[str]):
        if graphql_type.kind is GraphQlTypeKind.UNION or graphql_type.name in visited:
            return
        visited.add(graphql_type.name)

        if graphql_type.kind is GraphQlTypeKind.INPUT_OBJECT:
            members = graphql_type.input_fields
        else:
            self._referenced_object_types.add(graphql_type.name)
            members = self.get_fields_to_generate(graphql_type)

        for member in members:
            named = unwrap_named(member.type)
            target = self._types.get(named.name or "")
            if target is not None and target.kind in (
                GraphQlTypeKind.OBJECT,
                GraphQlTypeKind.INTERFACE,
                GraphQlTypeKind.INPUT_OBJECT,
            ):
                self._find_referenced_object_types(target, visited)


def _first_collision_suffix(candidate: str, is_input: bool) -> str:
    if is_input:
        return "InputObject" if candidate.endswith("Input") else "Input"
    return "Record" if candidate.endswith("Data") else "Data"


class SingleFileGenerationContext(GenerationContext):
    """Writes the whole client as one module to ``writer``."""

    def __init__(
        self,
        schema: GraphQlSchema,
        writer: TextIO,
        object_types: GeneratedObjectType = GeneratedObjectType.ALL,
        log_message: Optional[Callable[[str], None]] = None,
    ):
        super().__init__(schema, object_types, log_message)
        self.writer = writer
        self._first_member = True
        self._strict_optional_written = False

    def before_generation(self, header: str):
        self._strict_optional_written = False
        self.writer.write(header)

    def before_phase(self, phase: GenerationPhase):
        self.writer.write("\n")
        if (
            self.configuration.nullable_references
            and not self._strict_optional_written
            and phase is not GenerationPhase.BASE_CLASSES
        ):
            self.writer.write("# mypy: strict-optional\n\n")
            self._strict_optional_written = True

        self.writer.write(f"# region {phase.value}\n\n")
        self._first_member = True

    def before_member_generation(self, phase: GenerationPhase, class_name: str, unit_header: str = ""):
        if not self._first_member:
            self.writer.write("\n")
        self._first_member = False

    def write(self, text: str):
        self.writer.write(text)

    def after_phase(self, phase: GenerationPhase):
        if not self._first_member:
            self.writer.write("\n")
        self.writer.write("# endregion\n")

    def after_generation(self):
        self.writer.flush()


@dataclass(frozen=True)
class CodeFileInfo:
    """A written unit.

    ``file_name`` is relative to the output directory; ``length`` is in bytes.
    """

    file_name: str
    length: int


@runtime_checkable
class CodeFileEmitter(Protocol):
    """Destination of multi-file output."""

    def write_file(self, file_name: str, content: str) -> CodeFileInfo:
        """Store a complete unit and describe what was written."""
        ...


class FileSystemEmitter:
    """Writes units into ``directory``, creating it when missing."""

    def __init__(self, directory: str):
        self.directory = directory

    def write_file(self, file_name: str, content: str) -> CodeFileInfo:
        os.makedirs(self.directory, exist_ok=True)
        path = os.path.join(self.directory, file_name)
        data = content.encode("utf-8")
        with open(path, "wb") as f:
            f.write(data)
        logger.debug("wrote %s", path)
        return CodeFileInfo(file_name, len(data))


class InMemoryEmitter:
    """Keeps units in ``files``; useful for tests and editor integrations."""

    def __init__(self):
        self.files: dict[str, str] = {}

    def write_file(self, file_name: str, content: str) -> CodeFileInfo:
        self.files[file_name] = content
        return CodeFileInfo(file_name, len(content.encode("utf-8")))


@dataclass(frozen=True)
class GeneratedUnit:
    module_name: str
    class_name: str
    phase: GenerationPhase


class MultipleFileGenerationContext(GenerationContext):
    """Writes one module per generated class into a package.

    The runtime goes to ``base_classes.py`` and the type name constants to
    ``graph_ql_types.py``. ``__init__.py`` imports every unit so the builder
    registry is populated on package import.
    """

    BASE_CLASSES_MODULE = "base_classes"
    GRAPHQL_TYPES_MODULE = "graph_ql_types"

    def __init__(
        self,
        schema: GraphQlSchema,
        emitter: CodeFileEmitter,
        package_name: str,
        project_file_name: Optional[str] = None,
        object_types: GeneratedObjectType = GeneratedObjectType.ALL,
        log_message: Optional[Callable[[str], None]] = None,
    ):
        super().__init__(schema, object_types, log_message)
        if not package_name or not all(is_valid_identifier(p) for p in package_name.split(".")):
            raise ValueError(f"invalid package name: {package_name!r}")
        self.emitter = emitter
        self.package_name = package_name
        self.project_file_name = project_file_name
        self.files: list[CodeFileInfo] = []
        self.units: list[GeneratedUnit] = []
        self._buffer: Optional[io.StringIO] = None
        self._current_file_name: Optional[str] = None

    @staticmethod
    def module_name(class_name: str) -> str:
        return snake_case(class_name)

    def before_generation(self, header: str):
        self.files = []
        self.units = []

    def before_member_generation(self, phase: GenerationPhase, class_name: str, unit_header: str = ""):
        if phase is GenerationPhase.BASE_CLASSES:
            module_name = self.BASE_CLASSES_MODULE
        elif phase is GenerationPhase.GRAPHQL_TYPES:
            module_name = self.GRAPHQL_TYPES_MODULE
        else:
            module_name = self.module_name(class_name)

        self.units.append(GeneratedUnit(module_name, class_name, phase))
        self._current_file_name = module_name + ".py"
        self._buffer = io.StringIO()
        self._buffer.write(unit_header)

    def write(self, text: str):
        if self._buffer is None:
            raise RuntimeError("no unit is open")
        self._buffer.write(text)

    def after_member_generation(self, phase: GenerationPhase, class_name: str):
        if self._buffer is None or self._current_file_name is None:
            raise RuntimeError("no unit is open")
        self._emit(self._current_file_name, self._buffer.getvalue())
        self._buffer.close()
        self._buffer = None
        self._current_file_name = None

    def write_package_files(self, package_init: str, project_file: Optional[str] = None):
        self._emit("__init__.py", package_init)
        if self.project_file_name and project_file is not None:
            self._emit(self.project_file_name, project_file)

    def abort(self):
        if self._buffer is not None:
            logger.debug("discarding partially generated unit %s", self._current_file_name)
            self._buffer.close()
        self._buffer = None
        self._current_file_name = None

    def _emit(self, file_name: str, content: str):
        info = self.emitter.write_file(file_name, content)
        self.files.append(info)
        self.log(f"{info.file_name} written ({info.length} bytes)")
