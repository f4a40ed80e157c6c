"""Tests for naming helpers."""

import pytest

from gql_clientgen.core.errors import InvalidIdentifierError
from gql_clientgen.core.naming import (
    is_valid_identifier,
    lower_first,
    pascal_case,
    safe_comment,
    safe_docstring,
    safe_name,
    snake_case,
    unique_name,
    upper_case,
    validate_identifier,
)


class TestPascalCase:
    """Tests for pascal_case."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("user", "User"),
            ("userProfile", "UserProfile"),
            ("user_profile", "UserProfile"),
            ("WARD_VS_VITAL_SIGNS", "WardVsVitalSigns"),
            ("CCCTrigger", "CccTrigger"),
            ("item2", "Item2"),
            ("__Type", "Type"),
        ],
    )
    def test_conversion(self, name, expected):
        assert pascal_case(name) == expected

    def test_empty(self):
        assert pascal_case("") == ""

    def test_underscores_only(self):
        assert pascal_case("__") == "__"


class TestSnakeCase:
    """Tests for snake_case and upper_case."""

    def test_camel_case(self):
        assert snake_case("createdAt") == "created_at"

    def test_pascal_case(self):
        assert snake_case("UserQueryBuilder") == "user_query_builder"

    def test_acronym(self):
        assert snake_case("GraphQlTypes") == "graph_ql_types"

    def test_upper_case(self):
        assert upper_case("SearchResult") == "SEARCH_RESULT"
        assert upper_case("ID") == "ID"

    def test_lower_first(self):
        assert lower_first("User") == "user"
        assert lower_first("") == ""


class TestIdentifiers:
    """Tests for identifier validation and sanitizing."""

    def test_valid_identifier(self):
        assert is_valid_identifier("User")
        assert not is_valid_identifier("class")
        assert not is_valid_identifier("1User")
        assert not is_valid_identifier("User-Name")

    def test_validate_identifier_raises(self):
        with pytest.raises(InvalidIdentifierError) as exc_info:
            validate_identifier("my class", "class name")
        assert exc_info.value.identifier == "my class"
        assert "class name" in exc_info.value.message

    def test_safe_name_keyword(self):
        assert safe_name("from") == "from_"
        assert safe_name("class") == "class_"

    def test_safe_name_reserved(self):
        assert safe_name("json", {"json", "json_"}) == "json__"

    def test_safe_name_leading_underscores(self):
        assert safe_name("_id") == "id_"
        assert safe_name("__typename") == "typename__"
        assert safe_name("_") == "field_"

    def test_unique_name(self):
        used = set()
        assert unique_name("with_id", used) == "with_id"
        assert unique_name("with_id", used) == "with_id2"
        assert unique_name("with_id", used) == "with_id3"
        assert used == {"with_id", "with_id2", "with_id3"}


class TestDocumentation:
    """Tests for docstring and comment escaping."""

    def test_safe_docstring_escapes_quotes(self):
        assert '"""' not in safe_docstring('Say """hi"""')

    def test_safe_docstring_trailing_quote(self):
        assert safe_docstring('The "name"') == 'The "name" '

    def test_safe_docstring_backslash(self):
        assert safe_docstring("a\\b") == "a\\\\b"

    def test_safe_docstring_empty(self):
        assert safe_docstring(None) == ""

    def test_safe_comment_single_line(self):
        assert safe_comment("first\nsecond") == "first second"

    def test_safe_comment_truncates(self):
        assert len(safe_comment("x" * 200)) == 120
