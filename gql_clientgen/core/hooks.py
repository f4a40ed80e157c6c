"""Generation hooks for customizing code generation.

Provides protocols for pre- and post-generation hooks that can replace
the schema before generation or transform each generated member after.

Example usage:
    from gql_clientgen.core.hooks import PreGenerateHook, PostGenerateHook

    # Pre-generation hook to drop internal types
    class FilterInternalTypes:
        def pre_generate(self, schema):
            types = [t for t in schema.types if not t.name.startswith("Internal")]
            return schema.model_copy(update={"types": types})

    # Post-generation hook to add headers
    class AddLicenseHeader:
        def post_generate(self, member_name, content):
            return "# Copyright 2024 My Company\\n\\n" + content
"""

from typing import Protocol, runtime_checkable

from .introspection import GraphQlScalar, GraphQlSchema, GraphQlType, unwrap_named


@runtime_checkable
class PreGenerateHook(Protocol):
    """Protocol for pre-generation hooks.

    Pre-generation hooks receive the schema before name resolution and
    return the schema to generate from. The input must not be mutated.

    Example:
        class RemoveDeprecated:
            def pre_generate(self, schema: GraphQlSchema) -> GraphQlSchema:
                types = [
                    t.model_copy(update={"fields": [f for f in t.fields if not f.is_deprecated]})
                    for t in schema.types
                ]
                return schema.model_copy(update={"types": types})
    """

    def pre_generate(self, schema: GraphQlSchema) -> GraphQlSchema:
        """Called before code generation.

        Args:
            schema: The introspection schema

        Returns:
            The schema to use for generation
        """
        ...


@runtime_checkable
class PostGenerateHook(Protocol):
    """Protocol for post-generation hooks.

    Post-generation hooks receive the rendered code of each member (a class,
    the runtime or the type name constants) before it's written.

    Example:
        class FormatWithBlack:
            def post_generate(self, member_name: str, content: str) -> str:
                import black
                return black.format_str(content, mode=black.FileMode())
    """

    def post_generate(self, member_name: str, content: str) -> str:
        """Called after rendering each member.

        Args:
            member_name: Class name of the member (e.g., "UserQueryBuilder")
            content: The generated code

        Returns:
            The (possibly transformed) code to write
        """
        ...


class AddHeaderHook:
    """Built-in hook to add a header to generated members.

    Useful for imports required by custom scalar mappings.

    Example:
        hook = AddHeaderHook("from money import Money")
    """

    def __init__(self, header: str):
        self.header = header

    def post_generate(self, _member_name: str, content: str) -> str:
        """Add the header to the beginning of the member."""
        if not self.header.endswith("\n"):
            header = self.header + "\n\n"
        else:
            header = self.header + "\n"
        return header + content


class FilterTypesHook:
    """Built-in hook to filter types by name prefix/suffix.

    Built-in scalars and root operation types are always kept. Fields,
    arguments, interfaces and union members that point to a removed type
    are removed as well.

    Example:
        # Remove all types starting with "Internal"
        hook = FilterTypesHook(exclude_prefix="Internal")
    """

    def __init__(
        self,
        exclude_prefix: str | None = None,
        exclude_suffix: str | None = None,
        include_prefix: str | None = None,
        include_suffix: str | None = None,
    ):
        self.exclude_prefix = exclude_prefix
        self.exclude_suffix = exclude_suffix
        self.include_prefix = include_prefix
        self.include_suffix = include_suffix

    def _should_include(self, name: str) -> bool:
        """Check if a type should be included."""
        if self.exclude_prefix and name.startswith(self.exclude_prefix):
            return False
        if self.exclude_suffix and name.endswith(self.exclude_suffix):
            return False
        if self.include_prefix and not name.startswith(self.include_prefix):
            return False
        if self.include_suffix and not name.endswith(self.include_suffix):
            return False
        return True

    def pre_generate(self, schema: GraphQlSchema) -> GraphQlSchema:
        """Return a copy of the schema without the filtered types."""
        protected = set(GraphQlScalar.ALL) | set(schema.get_operation_type_names())
        kept = {
            t.name
            for t in schema.types
            if t.is_built_in or t.name in protected or self._should_include(t.name)
        }
        types = [self._prune(t, kept) for t in schema.types if t.name in kept]
        return schema.model_copy(update={"types": types})

    @staticmethod
    def _prune(graphql_type: GraphQlType, kept: set[str]) -> GraphQlType:
        def references_kept(member) -> bool:
            if unwrap_named(member.type).name not in kept:
                return False
            return all(unwrap_named(arg.type).name in kept for arg in getattr(member, "args", ()))

        return graphql_type.model_copy(
            update={
                "fields": [f for f in graphql_type.fields if references_kept(f)],
                "input_fields": [f for f in graphql_type.input_fields if references_kept(f)],
                "interfaces": [i for i in graphql_type.interfaces if i.name in kept],
                "possible_types": [p for p in graphql_type.possible_types if p.name in kept],
            }
        )


class HookRunner:
    """Runs a collection of hooks in order."""

    def __init__(self, hooks: list | None = None):
        self.pre_hooks: list[PreGenerateHook] = []
        self.post_hooks: list[PostGenerateHook] = []
        for hook in hooks or ():
            self.add_hook(hook)

    def add_hook(self, hook):
        """Register a hook implementing either protocol, or both."""
        if not isinstance(hook, (PreGenerateHook, PostGenerateHook)):
            raise TypeError(f"{type(hook).__name__} implements neither pre_generate nor post_generate")
        if isinstance(hook, PreGenerateHook):
            self.add_pre_hook(hook)
        if isinstance(hook, PostGenerateHook):
            self.add_post_hook(hook)

    def add_pre_hook(self, hook: PreGenerateHook):
        """Add a pre-generation hook."""
        self.pre_hooks.append(hook)

    def add_post_hook(self, hook: PostGenerateHook):
        """Add a post-generation hook."""
        self.post_hooks.append(hook)

    def run_pre_hooks(self, schema: GraphQlSchema) -> GraphQlSchema:
        """Run all pre-generation hooks in order."""
        for hook in self.pre_hooks:
            schema = hook.pre_generate(schema)
        return schema

    def run_post_hooks(self, member_name: str, content: str) -> str:
        """Run all post-generation hooks in order."""
        for hook in self.post_hooks:
            content = hook.post_generate(member_name, content)
        return content
