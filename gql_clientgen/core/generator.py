"""Client code generator for GraphQL schemas.

Renders Jinja2 templates to produce a Python client from an introspection
schema. The layout of the output is decided by the generation context:

    configuration = GraphQlGeneratorConfiguration(class_prefix="Api")
    generator = GraphQlGenerator(configuration)
    with open("client.py", "w") as f:
        generator.generate(SingleFileGenerationContext(schema, f))

Supports custom templates via the template_dir parameter:
    generator = GraphQlGenerator(configuration, template_dir="./my_templates")

Template lookup order:
1. User's template directory (if provided)
2. Package default templates
"""

import ast
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, PackageLoader, select_autoescape

from .. import runtime
from .configuration import EnumValueNaming, GenerationOrder, GraphQlGeneratorConfiguration
from .context import (
    FIELD_DIRECTIVE_LOCATION,
    GenerationContext,
    GenerationPhase,
    MultipleFileGenerationContext,
)
from .errors import InvalidIdentifierError
from .hooks import HookRunner
from .introspection import (
    GraphQlArgument,
    GraphQlDirective,
    GraphQlField,
    GraphQlFieldType,
    GraphQlScalar,
    GraphQlType,
    GraphQlTypeKind,
    is_complex,
    unwrap_named,
)
from .naming import (
    pascal_case,
    safe_comment,
    safe_docstring,
    safe_name,
    snake_case,
    unique_name,
    upper_case,
    validate_identifier,
)
from .scalars import ClientComponentType

logger = logging.getLogger(__name__)

AUTO_GENERATED_LABEL = "# This file has been generated by gql-clientgen. Do not edit."

# Methods of the runtime builder that generated methods must not shadow.
BUILDER_RESERVED_NAMES = frozenset(
    name for name in vars(runtime.GraphQlQueryBuilder) if not name.startswith("__")
) | {"build", "clear", "has_selection", "operation_name", "operation_type"}

DATA_CLASS_RESERVED_NAMES = frozenset(dir(runtime.GraphQlInputDataModel))

INPUT_CLASS_RESERVED_NAMES = frozenset(dir(runtime.GraphQlInputObject))

ENUM_RESERVED_NAMES = frozenset(dir(str)) | {"name", "value", "mro"}


@dataclass
class _Member:
    """A rendered class plus what its unit has to import."""

    class_name: str
    content: str
    imports: set = field(default_factory=set)
    type_checking_imports: set = field(default_factory=set)


class GraphQlGenerator:
    """Generates a Python GraphQL client from an introspection schema.

    Supports custom templates via the template_dir parameter.
    Templates in template_dir take precedence over built-in templates.

    Available templates to override:
        - file_header.py.j2: Module header and imports
        - type_names.py.j2: GraphQlTypes constants
        - enum.py.j2: Enum generation
        - directive.py.j2: Directive classes
        - query_builder.py.j2: Query builder classes
        - input_class.py.j2: Input object classes
        - data_class.py.j2: Pydantic data models
        - package_init.py.j2: Package ``__init__.py`` of multi-file output
        - project.toml.j2: Project file of multi-file output
    """

    def __init__(
        self,
        configuration: Optional[GraphQlGeneratorConfiguration] = None,
        hooks: Optional[list] = None,
        template_dir: Optional[str] = None,
    ):
        """Initialize the generator.

        Args:
            configuration: Options that shape the generated client
            hooks: Pre- and post-generation hooks, run in order
            template_dir: Optional directory with custom Jinja2 templates.
                          Templates here override the built-in templates.
        """
        self.configuration = configuration or GraphQlGeneratorConfiguration()
        self.hooks = HookRunner(hooks)
        self.template_dir = template_dir

        # Build template loader - custom templates take precedence
        loaders = []
        if template_dir:
            template_path = Path(template_dir)
            if template_path.is_dir():
                loaders.append(FileSystemLoader(str(template_path)))
        loaders.append(PackageLoader("gql_clientgen", "templates"))

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape(),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        # Register custom filters
        self.env.filters["snake_case"] = snake_case
        self.env.filters["pascal_case"] = pascal_case
        self.env.filters["upper_case"] = upper_case
        self.env.filters["repr"] = repr
        self.env.filters["safe_docstring"] = safe_docstring
        self.env.filters["safe_comment"] = safe_comment

    def generate(self, context: GenerationContext):
        """Generate the client into the context's output target."""
        context.schema = self.hooks.run_pre_hooks(context.schema)
        context.initialize(self.configuration)
        type_constants = self._resolve_type_constants(context)

        phases = (
            (GenerationPhase.BASE_CLASSES, lambda: [self._base_classes(context)]),
            (GenerationPhase.GRAPHQL_TYPES, lambda: [self._type_names(type_constants)]),
            (GenerationPhase.ENUMS, lambda: self._enums(context)),
            (GenerationPhase.DIRECTIVES, lambda: self._directives(context)),
            (GenerationPhase.QUERY_BUILDERS, lambda: self._query_builders(context, type_constants)),
            (GenerationPhase.INPUT_CLASSES, lambda: self._input_classes(context)),
            (GenerationPhase.DATA_CLASSES, lambda: self._data_classes(context)),
        )

        try:
            context.before_generation(self._render_header())
            for phase, members in phases:
                if not phase.object_type & context.object_types:
                    continue
                context.log(f"generating {phase.value}")
                context.before_phase(phase)
                for member in members():
                    self._write_member(context, phase, member)
                context.after_phase(phase)

            if isinstance(context, MultipleFileGenerationContext):
                self._write_package_files(context)
            context.after_generation()
        except Exception:
            context.abort()
            raise

    def _render(self, template_name: str, values: Dict[str, Any]) -> str:
        return self.env.get_template(template_name).render(values)

    def _render_header(
        self,
        imports: Optional[List[str]] = None,
        type_checking_imports: Optional[List[str]] = None,
    ) -> str:
        return self._render(
            "file_header.py.j2",
            {
                "label": AUTO_GENERATED_LABEL,
                "imports": imports or [],
                "type_checking_imports": type_checking_imports or [],
            },
        )

    def _write_member(self, context: GenerationContext, phase: GenerationPhase, member: _Member):
        content = self.hooks.run_post_hooks(member.class_name, member.content)

        # Validate Python syntax
        try:
            ast.parse(content)
        except SyntaxError as e:
            raise InvalidIdentifierError(
                f"generated invalid Python for {member.class_name}: {e}", member.class_name
            ) from e

        unit_header = ""
        if isinstance(context, MultipleFileGenerationContext):
            unit_header = self._unit_header(context, phase, member)

        context.before_member_generation(phase, member.class_name, unit_header)
        context.write(content)
        context.after_member_generation(phase, member.class_name)

    def _unit_header(
        self, context: MultipleFileGenerationContext, phase: GenerationPhase, member: _Member
    ) -> str:
        if phase is GenerationPhase.BASE_CLASSES:
            return AUTO_GENERATED_LABEL + "\n"

        imports = []
        if phase is not GenerationPhase.GRAPHQL_TYPES and phase is not GenerationPhase.ENUMS:
            imports.append(f"from .{context.BASE_CLASSES_MODULE} import *")
        if phase is GenerationPhase.QUERY_BUILDERS:
            imports.append(f"from .{context.GRAPHQL_TYPES_MODULE} import GraphQlTypes")
        imports.extend(self._import_lines(context, member.imports - {member.class_name}))

        type_checking = member.type_checking_imports - member.imports - {member.class_name}
        return self._render_header(imports, self._import_lines(context, type_checking)) + "\n"

    @staticmethod
    def _import_lines(context: MultipleFileGenerationContext, class_names) -> List[str]:
        return [f"from .{context.module_name(name)} import {name}" for name in sorted(class_names)]

    def _write_package_files(self, context: MultipleFileGenerationContext):
        units = [u for u in context.units if u.phase is not GenerationPhase.BASE_CLASSES]
        package_init = self._render(
            "package_init.py.j2",
            {
                "label": AUTO_GENERATED_LABEL,
                "has_base_classes": any(
                    u.phase is GenerationPhase.BASE_CLASSES for u in context.units
                ),
                "units": units,
                "data_classes": [
                    u.class_name for u in units if u.phase is GenerationPhase.DATA_CLASSES
                ],
            },
        )
        project_file = None
        if context.project_file_name:
            project_file = self._render(
                "project.toml.j2", {"package_name": context.package_name}
            )
        context.write_package_files(package_init, project_file)

    # region members

    def _base_classes(self, context: GenerationContext) -> _Member:
        if isinstance(context, MultipleFileGenerationContext):
            return _Member("BaseClasses", runtime_source())
        return _Member("BaseClasses", embeddable_runtime_source())

    def _resolve_type_constants(self, context: GenerationContext) -> Dict[str, str]:
        """Constant name in ``GraphQlTypes`` for every built-in scalar and schema type."""
        constants: Dict[str, str] = {}
        used: set[str] = set()
        names = list(GraphQlScalar.ALL)
        names += [t.name for t in context.schema.types if not t.is_built_in and t.name not in names]
        for name in names:
            constants[name] = unique_name(safe_name(upper_case(name)), used)
        return constants

    def _type_names(self, type_constants: Dict[str, str]) -> _Member:
        content = self._render(
            "type_names.py.j2", {"constants": list(type_constants.items())}
        )
        return _Member("GraphQlTypes", content)

    def _ordered(self, types: List[Any], class_name) -> List[Any]:
        if self.configuration.generation_order is GenerationOrder.ALPHABETICAL:
            return sorted(types, key=class_name)
        return list(types)

    def _enums(self, context: GenerationContext) -> List[_Member]:
        members = []
        enum_types = self._ordered(
            context.schema.get_enum_types(), lambda t: context.get_class_name(t.name)
        )
        for enum_type in enum_types:
            class_name = validate_identifier(context.get_class_name(enum_type.name), "class name")
            used: set[str] = set()
            values = []
            for enum_value in enum_type.enum_values:
                if not context.is_included(enum_value):
                    continue
                if self.configuration.enum_value_naming is EnumValueNaming.UPPER_CASE:
                    name = upper_case(enum_value.name)
                else:
                    name = enum_value.name
                values.append(
                    {
                        "name": unique_name(safe_name(name, ENUM_RESERVED_NAMES), used),
                        "wire_name": enum_value.name,
                        "description": self._documentation(enum_value.description),
                    }
                )

            content = self._render(
                "enum.py.j2",
                {
                    "class_name": class_name,
                    "description": self._documentation(enum_type.description),
                    "values": values,
                },
            )
            members.append(_Member(class_name, content))
        return members

    def _field_directives(self, context: GenerationContext) -> List[GraphQlDirective]:
        return [d for d in context.directives if FIELD_DIRECTIVE_LOCATION in d.locations]

    def _directive_class_name(self, directive: GraphQlDirective) -> str:
        configuration = self.configuration
        return validate_identifier(
            configuration.class_prefix + pascal_case(directive.name) + "Directive" + configuration.class_suffix,
            "class name",
        )

    def _directives(self, context: GenerationContext) -> List[_Member]:
        members = []
        directives = self._ordered(
            self._field_directives(context), self._directive_class_name
        )
        for directive in directives:
            class_name = self._directive_class_name(directive)
            owner = GraphQlType(kind=GraphQlTypeKind.SCALAR, name=directive.name)
            member = _Member(class_name, "")
            arguments = self._arguments(
                context,
                owner,
                directive.args,
                ClientComponentType.DIRECTIVE_ARGUMENT,
                set(),
                member.type_checking_imports,
            )
            member.content = self._render(
                "directive.py.j2",
                {
                    "class_name": class_name,
                    "directive_name": directive.name,
                    "description": self._documentation(directive.description),
                    "arguments": arguments,
                },
            )
            members.append(member)
        return members

    def _arguments(
        self,
        context: GenerationContext,
        owner: GraphQlType,
        arguments: List[GraphQlArgument],
        component_type: ClientComponentType,
        used: set,
        references: set,
    ) -> List[Dict[str, Any]]:
        """Parameters for schema arguments; required ones come first."""
        views = []
        for argument in arguments:
            required = argument.type.kind is GraphQlTypeKind.NON_NULL and argument.default_value is None
            description = context.get_member_type(
                owner, argument.name, argument.type, component_type, always_nullable=not required
            )
            references.update(self._referenced_classes(context, argument.type))
            value_type = f"{description.type_name} | QueryBuilderParameter[{description.type_name}]"
            views.append(
                {
                    "name": argument.name,
                    "parameter": unique_name(safe_name(snake_case(argument.name)), used),
                    "annotation": value_type if required else f"Optional[{value_type}]",
                    "required": required,
                    "format_mask": description.format_mask,
                }
            )
        return [a for a in views if a["required"]] + [a for a in views if not a["required"]]

    def _referenced_classes(self, context: GenerationContext, field_type: GraphQlFieldType) -> set:
        named = unwrap_named(field_type)
        if named.kind is GraphQlTypeKind.SCALAR or not named.name:
            return set()
        return {context.get_class_name(named.name)}

    def _query_builders(self, context: GenerationContext, type_constants: Dict[str, str]) -> List[_Member]:
        members = []
        directives = self._field_directives(context)
        complex_types = self._ordered(
            context.schema.get_complex_types(),
            lambda t: context.get_class_name(t.name, "QueryBuilder"),
        )
        operation_types = context.schema.get_operation_type_names()
        for graphql_type in complex_types:
            class_name = validate_identifier(
                context.get_class_name(graphql_type.name, "QueryBuilder"), "class name"
            )
            member = _Member(class_name, "")
            used_methods = set(BUILDER_RESERVED_NAMES)
            is_union = graphql_type.kind is GraphQlTypeKind.UNION

            fields = [] if is_union else context.get_fields_to_generate(graphql_type)
            field_views = [
                self._builder_field(context, graphql_type, f, directives, used_methods, member.type_checking_imports)
                for f in fields
            ]

            fragments = []
            for fragment_type in context.get_fragment_types(graphql_type):
                builder_name = context.get_class_name(fragment_type.name, "QueryBuilder")
                member.type_checking_imports.add(builder_name)
                method = snake_case(pascal_case(fragment_type.name))
                fragments.append(
                    {
                        "with_method": unique_name(f"with_{method}_fragment", used_methods),
                        "except_method": unique_name(f"except_{method}_fragment", used_methods),
                        "type_constant": type_constants[fragment_type.name],
                        "builder": builder_name,
                    }
                )

            member.content = self._render(
                "query_builder.py.j2",
                {
                    "class_name": class_name,
                    "type_constant": type_constants[graphql_type.name],
                    "description": self._documentation(graphql_type.description),
                    "indentation_size": self.configuration.indentation_size,
                    "operation_type": operation_types.get(graphql_type.name),
                    "all_fields": [
                        {
                            "name": f.name,
                            "type_constant": type_constants.get(unwrap_named(f.type).name or "")
                            if is_complex(unwrap_named(f.type).kind)
                            else None,
                            "requires_parameters": f.requires_parameters,
                        }
                        for f in fields
                    ],
                    "fields": field_views,
                    "fragments": fragments,
                },
            )
            members.append(member)
        return members

    def _builder_field(
        self,
        context: GenerationContext,
        owner: GraphQlType,
        graphql_field: GraphQlField,
        directives: List[GraphQlDirective],
        used_methods: set,
        references: set,
    ) -> Dict[str, Any]:
        used_parameters = {"self", "alias", "query_builder"}
        named = unwrap_named(graphql_field.type)
        builder = None
        if is_complex(named.kind):
            context.get_type(named.name or "")
            builder = context.get_class_name(named.name or "", "QueryBuilder")
            references.add(builder)

        arguments = self._arguments(
            context,
            owner,
            graphql_field.args,
            ClientComponentType.QUERY_BUILDER_ARGUMENT,
            used_parameters,
            references,
        )

        directive_views = []
        for directive in directives:
            directive_class = self._directive_class_name(directive)
            references.add(directive_class)
            directive_views.append(
                {
                    "parameter": unique_name(safe_name(snake_case(directive.name)), used_parameters),
                    "class_name": directive_class,
                }
            )

        method = snake_case(graphql_field.name).lstrip("_") or "field"
        description = self._documentation(graphql_field.description)
        if graphql_field.is_deprecated:
            reason = graphql_field.deprecation_reason or "no longer supported"
            description = (description + "\n\n" if description else "") + f"Deprecated: {reason}"

        return {
            "name": graphql_field.name,
            "with_method": unique_name(f"with_{method}", used_methods),
            "except_method": unique_name(f"except_{method}", used_methods),
            "builder": builder,
            "arguments": arguments,
            "directives": directive_views,
            "description": description,
        }

    def _input_classes(self, context: GenerationContext) -> List[_Member]:
        members = []
        input_types = self._ordered(
            context.schema.get_input_object_types(), lambda t: context.get_class_name(t.name)
        )
        for input_type in input_types:
            class_name = validate_identifier(context.get_class_name(input_type.name), "class name")
            member = _Member(class_name, "")
            used: set[str] = set()
            properties = []
            for input_field in input_type.input_fields:
                description = context.get_member_type(
                    input_type,
                    input_field.name,
                    input_field.type,
                    ClientComponentType.INPUT_PROPERTY,
                    always_nullable=True,
                )
                member.type_checking_imports.update(self._referenced_classes(context, input_field.type))
                properties.append(
                    {
                        "name": input_field.name,
                        "attribute": unique_name(
                            safe_name(snake_case(input_field.name), INPUT_CLASS_RESERVED_NAMES), used
                        ),
                        "annotation": description.annotation,
                        "format_mask": description.format_mask,
                        "description": safe_comment(self._documentation(input_field.description)),
                    }
                )

            member.content = self._render(
                "input_class.py.j2",
                {
                    "class_name": class_name,
                    "description": self._documentation(input_type.description),
                    "properties": properties,
                },
            )
            members.append(member)
        return members

    def _parent_types(self, context: GenerationContext, graphql_type: GraphQlType) -> List[str]:
        """GraphQL names of the interfaces and unions a type's data model derives from."""
        parents = [i.name for i in graphql_type.interfaces if i.name]
        parents += context.get_union_memberships(graphql_type.name)
        known = {t.name for t in context.schema.get_complex_types()}
        result = []
        for parent in parents:
            if parent in known and parent not in result:
                result.append(parent)
        return result

    def _data_classes(self, context: GenerationContext) -> List[_Member]:
        complex_types = {t.name: t for t in context.schema.get_complex_types()}
        ordered = self._ordered(
            list(complex_types.values()), lambda t: context.get_class_name(t.name)
        )

        # parents first so every base class exists when a module is executed top to bottom
        emitted: list[GraphQlType] = []
        emitted_names: set[str] = set()
        visiting: set[str] = set()

        def visit(graphql_type: GraphQlType):
            if graphql_type.name in emitted_names or graphql_type.name in visiting:
                return
            visiting.add(graphql_type.name)
            for parent in self._parent_types(context, graphql_type):
                visit(complex_types[parent])
            visiting.discard(graphql_type.name)
            emitted_names.add(graphql_type.name)
            emitted.append(graphql_type)

        for graphql_type in ordered:
            visit(graphql_type)

        ancestors: Dict[str, set] = {}

        def ancestors_of(name: str) -> set:
            if name not in ancestors:
                ancestors[name] = set()
                for parent in self._parent_types(context, complex_types[name]):
                    ancestors[name] |= {parent} | ancestors_of(parent)
            return ancestors[name]

        return [self._data_class(context, t, ancestors_of) for t in emitted]

    def _data_class(self, context: GenerationContext, graphql_type: GraphQlType, ancestors_of) -> _Member:
        class_name = validate_identifier(context.get_class_name(graphql_type.name), "class name")
        member = _Member(class_name, "")

        parents = self._parent_types(context, graphql_type)
        # an interface also reached through another parent would break the MRO
        parents = [p for p in parents if not any(p in ancestors_of(o) for o in parents if o != p)]
        bases = [context.get_class_name(p) for p in parents]
        member.imports.update(bases)

        referenced = context.referenced_object_types
        inherited = set(parents).union(*(ancestors_of(p) for p in parents))
        if graphql_type.name in referenced and not inherited & referenced:
            bases.append("GraphQlInputDataModel")
        if not bases:
            bases.append("GraphQlDataModel")

        used: set[str] = set()
        properties = []
        for data_field in context.get_effective_fields(graphql_type):
            description = context.get_data_property_type(graphql_type, data_field)
            member.type_checking_imports.update(self._referenced_classes(context, data_field.type))
            properties.append(
                {
                    "name": data_field.name,
                    "attribute": unique_name(
                        safe_name(snake_case(data_field.name), DATA_CLASS_RESERVED_NAMES), used
                    ),
                    "annotation": description.annotation,
                    "description": self._documentation(data_field.description),
                }
            )

        member.content = self._render(
            "data_class.py.j2",
            {
                "class_name": class_name,
                "bases": bases,
                "description": self._documentation(graphql_type.description),
                "properties": properties,
            },
        )
        return member

    # endregion

    def _documentation(self, text: Optional[str]) -> str:
        if not self.configuration.generate_documentation or not text:
            return ""
        return text.strip()


def runtime_source() -> str:
    """Source text of the runtime module."""
    return Path(runtime.__file__).read_text(encoding="utf-8")


def embeddable_runtime_source() -> str:
    """Runtime source without its module docstring and ``__all__``.

    Used when the runtime shares one module with the generated classes.
    """
    source = runtime_source()
    tree = ast.parse(source)
    skipped: set[int] = set()
    for index, node in enumerate(tree.body):
        is_docstring = (
            index == 0
            and isinstance(node, ast.Expr)
            and isinstance(node.value, ast.Constant)
            and isinstance(node.value.value, str)
        )
        is_all = isinstance(node, ast.Assign) and any(
            isinstance(target, ast.Name) and target.id == "__all__" for target in node.targets
        )
        if is_docstring or is_all:
            skipped.update(range(node.lineno - 1, node.end_lineno or node.lineno))

    lines = source.splitlines(keepends=True)
    text = "".join(line for number, line in enumerate(lines) if number not in skipped)
    return re.sub(r"\n{4,}", "\n\n\n", text).strip("\n") + "\n"
