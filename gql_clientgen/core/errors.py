"""Exceptions raised while generating a GraphQL client."""


class GraphQlGeneratorError(Exception):
    """Base class for all generator failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(GraphQlGeneratorError):
    """Invalid generator configuration (overrides, scalar mapping, rule files)."""


class SchemaInconsistencyError(GraphQlGeneratorError):
    """The schema references something the generator cannot resolve."""

    def __init__(
        self,
        message: str,
        type_name: str | None = None,
        member_name: str | None = None,
    ):
        self.type_name = type_name
        self.member_name = member_name
        super().__init__(message)

    @classmethod
    def list_item_type_resolution_failed(
        cls, type_name: str, member_name: str
    ) -> "SchemaInconsistencyError":
        return cls(
            f"failed to resolve list item type of field '{type_name}.{member_name}'",
            type_name,
            member_name,
        )


class InvalidIdentifierError(GraphQlGeneratorError):
    """A resolved name is not usable as a Python identifier."""

    def __init__(self, message: str, identifier: str):
        self.identifier = identifier
        super().__init__(message)


class SchemaRetrievalError(GraphQlGeneratorError):
    """Raised when the introspection request does not return a schema."""

    def __init__(self, message: str, status_code: int | None = None, content: str = ""):
        self.status_code = status_code
        self.content = content
        super().__init__(message)
