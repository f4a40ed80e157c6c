"""Core modules for GraphQL client generation."""

from .configuration import (
    BooleanTypeMapping,
    DataClassMemberNullability,
    EnumValueNaming,
    FloatTypeMapping,
    GeneratedObjectType,
    GenerationOrder,
    GraphQlGeneratorConfiguration,
    IdTypeMapping,
    IntegerTypeMapping,
    OutputType,
)
from .context import (
    CodeFileEmitter,
    CodeFileInfo,
    FileSystemEmitter,
    GenerationContext,
    GenerationPhase,
    InMemoryEmitter,
    MultipleFileGenerationContext,
    SingleFileGenerationContext,
)
from .errors import (
    ConfigurationError,
    GraphQlGeneratorError,
    InvalidIdentifierError,
    SchemaInconsistencyError,
    SchemaRetrievalError,
)
from .generator import GraphQlGenerator
from .hooks import (
    AddHeaderHook,
    FilterTypesHook,
    HookRunner,
    PostGenerateHook,
    PreGenerateHook,
)
from .introspection import (
    GraphQlArgument,
    GraphQlDirective,
    GraphQlEnumValue,
    GraphQlField,
    GraphQlFieldType,
    GraphQlSchema,
    GraphQlType,
    GraphQlTypeKind,
    deserialize_schema,
    load_schema,
    schema_from_sdl,
)
from .retrieval import retrieve_schema, retrieve_schema_content
from .scalars import (
    ClientComponentType,
    RegexScalarFieldTypeMappingProvider,
    RegexScalarFieldTypeMappingRule,
    ScalarFieldTypeDescription,
    ScalarFieldTypeMappingProvider,
    ScalarFieldTypeProviderContext,
)

__all__ = [
    # Configuration
    "BooleanTypeMapping",
    "DataClassMemberNullability",
    "EnumValueNaming",
    "FloatTypeMapping",
    "GeneratedObjectType",
    "GenerationOrder",
    "GraphQlGeneratorConfiguration",
    "IdTypeMapping",
    "IntegerTypeMapping",
    "OutputType",
    # Contexts
    "CodeFileEmitter",
    "CodeFileInfo",
    "FileSystemEmitter",
    "GenerationContext",
    "GenerationPhase",
    "InMemoryEmitter",
    "MultipleFileGenerationContext",
    "SingleFileGenerationContext",
    # Errors
    "ConfigurationError",
    "GraphQlGeneratorError",
    "InvalidIdentifierError",
    "SchemaInconsistencyError",
    "SchemaRetrievalError",
    # Generator
    "GraphQlGenerator",
    # Hooks
    "PreGenerateHook",
    "PostGenerateHook",
    "AddHeaderHook",
    "FilterTypesHook",
    "HookRunner",
    # Schema model
    "GraphQlArgument",
    "GraphQlDirective",
    "GraphQlEnumValue",
    "GraphQlField",
    "GraphQlFieldType",
    "GraphQlSchema",
    "GraphQlType",
    "GraphQlTypeKind",
    "deserialize_schema",
    "load_schema",
    "schema_from_sdl",
    # Retrieval
    "retrieve_schema",
    "retrieve_schema_content",
    # Scalars
    "ClientComponentType",
    "RegexScalarFieldTypeMappingProvider",
    "RegexScalarFieldTypeMappingRule",
    "ScalarFieldTypeDescription",
    "ScalarFieldTypeMappingProvider",
    "ScalarFieldTypeProviderContext",
]
