"""Tests for the query builder runtime."""

import datetime
import decimal
import enum
import uuid
from typing import Optional

import pytest
from graphql import parse, parse_value, value_from_ast_untyped
from pydantic import Field

from gql_clientgen.runtime import (
    QUERY_BUILDERS,
    Formatting,
    GraphQlDirective,
    GraphQlFieldMetadata,
    GraphQlInputDataModel,
    GraphQlInputObject,
    GraphQlQueryBuilder,
    GraphQlQueryParameter,
    InputProperty,
    QueryBuilderArgumentInfo,
    QueryBuilderParameter,
    QueryBuilderRegistry,
    SelectionSet,
    SerializationSettings,
    build_argument_value,
    escape_string,
)

COMPACT = SerializationSettings()
INDENTED = SerializationSettings(Formatting.INDENTED, 2)


# =============================================================================
# Builders shaped like generated code
# =============================================================================


class Episode(str, enum.Enum):
    NEW_HOPE = "NEWHOPE"
    EMPIRE = "EMPIRE"


class Status(str, enum.Enum):
    ACTIVE = "ACTIVE"


class IncludeDirective(GraphQlDirective):
    def __init__(self, if_):
        super().__init__("include")
        self._add_argument("if", if_)


class SkipDirective(GraphQlDirective):
    def __init__(self, if_):
        super().__init__("skip")
        self._add_argument("if", if_)


class ReviewInput(GraphQlInputObject):
    stars: InputProperty[Optional[int]] = InputProperty("stars")
    commentary: InputProperty[Optional[str]] = InputProperty("commentary")
    posted_at: InputProperty[Optional[datetime.date]] = InputProperty("postedAt", format_mask="%d.%m.%Y")


class Point(GraphQlInputDataModel):
    x: Optional[float] = Field(default=None, alias="x")
    y_coord: Optional[float] = Field(default=None, alias="yCoord")


@QUERY_BUILDERS.register("Character")
class CharacterQueryBuilder(GraphQlQueryBuilder["CharacterQueryBuilder"]):
    GRAPHQL_TYPE_NAME = "Character"
    ALL_FIELDS = (
        GraphQlFieldMetadata("id"),
        GraphQlFieldMetadata("name"),
        GraphQlFieldMetadata("friends", is_complex=True, query_builder_type="Character"),
    )
    FRAGMENT_TYPES = ("Human", "Droid")

    def with_id(self, alias=None):
        return self._with_scalar_field("id", alias)

    def with_name(self, alias=None, *, include=None, skip=None):
        return self._with_scalar_field("name", alias, (include, skip))

    def with_friends(self, query_builder, first=None, alias=None):
        return self._with_object_field(
            "friends", query_builder, alias, (), (QueryBuilderArgumentInfo("first", first),)
        )

    def with_human_fragment(self, query_builder):
        return self._with_fragment(query_builder)

    def except_human_fragment(self):
        return self._except_fragment("Human")


@QUERY_BUILDERS.register("Human")
class HumanQueryBuilder(GraphQlQueryBuilder["HumanQueryBuilder"]):
    GRAPHQL_TYPE_NAME = "Human"
    ALL_FIELDS = (
        GraphQlFieldMetadata("id"),
        GraphQlFieldMetadata("name"),
        GraphQlFieldMetadata("homePlanet"),
        GraphQlFieldMetadata("friends", is_complex=True, query_builder_type="Character"),
    )

    def with_home_planet(self, alias=None):
        return self._with_scalar_field("homePlanet", alias)

    def with_friends(self, query_builder, alias=None):
        return self._with_object_field("friends", query_builder, alias)


@QUERY_BUILDERS.register("Droid")
class DroidQueryBuilder(GraphQlQueryBuilder["DroidQueryBuilder"]):
    GRAPHQL_TYPE_NAME = "Droid"
    ALL_FIELDS = (
        GraphQlFieldMetadata("id"),
        GraphQlFieldMetadata("name"),
        GraphQlFieldMetadata("primaryFunction"),
        GraphQlFieldMetadata("friends", is_complex=True, query_builder_type="Character"),
    )


@QUERY_BUILDERS.register("Query")
class QueryQueryBuilder(GraphQlQueryBuilder["QueryQueryBuilder"]):
    GRAPHQL_TYPE_NAME = "Query"
    ALL_FIELDS = (
        GraphQlFieldMetadata("version"),
        GraphQlFieldMetadata("hero", is_complex=True, query_builder_type="Character"),
        GraphQlFieldMetadata("villain", is_complex=True, query_builder_type="Character"),
        GraphQlFieldMetadata("human", is_complex=True, query_builder_type="Human", requires_parameters=True),
        GraphQlFieldMetadata("query", is_complex=True, query_builder_type="Query"),
    )

    def __init__(self, operation_name=None):
        super().__init__("query", operation_name)

    def with_hero(self, query_builder, episode=None, alias=None):
        return self._with_object_field(
            "hero", query_builder, alias, (), (QueryBuilderArgumentInfo("episode", episode),)
        )

    def with_human(self, query_builder, id, alias=None):
        return self._with_object_field("human", query_builder, alias, (), (QueryBuilderArgumentInfo("id", id),))


@QUERY_BUILDERS.register("Mutation")
class MutationQueryBuilder(GraphQlQueryBuilder["MutationQueryBuilder"]):
    GRAPHQL_TYPE_NAME = "Mutation"
    INDENTATION_SIZE = 4

    def __init__(self, operation_name=None):
        super().__init__("mutation", operation_name)

    def with_create_review(self, query_builder, review, alias=None):
        return self._with_object_field(
            "createReview", query_builder, alias, (), (QueryBuilderArgumentInfo("review", review),)
        )


CHARACTER_SELECTION = "__typename,id,name,...on Human{id,name,homePlanet},...on Droid{id,name,primaryFunction}"


# =============================================================================
# Argument values
# =============================================================================


class TestArgumentValues:
    """Tests for build_argument_value."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, "null"),
            (True, "true"),
            (False, "false"),
            (42, "42"),
            (decimal.Decimal("1.50"), "1.50"),
            (0.5, "0.5"),
            ("R2-D2", '"R2-D2"'),
            (Episode.NEW_HOPE, "NEWHOPE"),
            ([1, 2], "[1,2]"),
            ((), "[]"),
            ({"a": 1, "b": "x"}, '{a:1,b:"x"}'),
            (datetime.date(2024, 5, 1), '"2024-05-01"'),
            (datetime.datetime(2024, 5, 1, 10, 30), '"2024-05-01T10:30:00"'),
            (uuid.UUID("12345678-1234-5678-1234-567812345678"), '"12345678-1234-5678-1234-567812345678"'),
        ],
    )
    def test_values(self, value, expected):
        assert build_argument_value(value, COMPACT) == expected

    def test_enum_wire_value(self):
        assert build_argument_value(Status.ACTIVE, COMPACT) == "ACTIVE"

    def test_format_mask(self):
        assert build_argument_value(datetime.date(2024, 5, 1), COMPACT, 0, "%d.%m.%Y") == '"01.05.2024"'

    def test_format_mask_applies_to_list_items(self):
        value = [datetime.date(2024, 5, 1)]
        assert build_argument_value(value, COMPACT, 0, "%Y") == '["2024"]'

    def test_escaping(self):
        assert escape_string('a"b\\c/d\n\t\x01') == '"a\\"b\\\\c\\/d\\n\\t\\u0001"'

    @pytest.mark.parametrize("value", [float("nan"), float("inf")])
    def test_non_finite_float(self, value):
        with pytest.raises(ValueError):
            build_argument_value(value, COMPACT)

    def test_mapping_key_with_whitespace(self):
        with pytest.raises(ValueError, match="whitespace"):
            build_argument_value({"bad key": 1}, COMPACT)

    def test_parameters(self):
        assert build_argument_value(QueryBuilderParameter(name="x", graphql_type_name="Int"), COMPACT) == "$x"
        assert build_argument_value(QueryBuilderParameter(None), COMPACT) == "null"
        assert build_argument_value(QueryBuilderParameter([1]), COMPACT) == "[1]"

    def test_indented_nesting(self):
        assert build_argument_value({"a": [1, 2]}, INDENTED) == "{\n  a: [\n    1,\n    2\n  ]\n}"

    def test_round_trip_through_graphql_core(self):
        value = {
            "name": "R2-D2",
            "tags": ["a", "b\n", 'quote"'],
            "count": 3,
            "ratio": 0.5,
            "flag": False,
            "nothing": None,
            "nested": {"path": "/\\", "control": "\x01"},
        }
        for settings in (COMPACT, INDENTED):
            literal = build_argument_value(value, settings)
            assert value_from_ast_untyped(parse_value(literal)) == value


# =============================================================================
# Input objects
# =============================================================================


class TestInputObjects:
    """Tests for GraphQlInputObject and GraphQlInputDataModel."""

    def test_only_assigned_properties_are_sent(self):
        review = ReviewInput(stars=5)
        assert build_argument_value(review, COMPACT) == "{stars:5}"

    def test_explicit_null(self):
        review = ReviewInput(stars=5, commentary=None)
        assert build_argument_value(review, COMPACT) == "{stars:5,commentary:null}"

    def test_declared_order(self):
        review = ReviewInput(commentary="ok", stars=4)
        assert build_argument_value(review, COMPACT) == '{stars:4,commentary:"ok"}'

    def test_format_mask(self):
        review = ReviewInput(posted_at=datetime.date(2024, 5, 1))
        assert build_argument_value(review, COMPACT) == '{postedAt:"01.05.2024"}'

    def test_variable_property(self):
        parameter = QueryBuilderParameter(name="stars", graphql_type_name="Int")
        review = ReviewInput(stars=parameter)
        assert review.stars is parameter
        assert build_argument_value(review, COMPACT) == "{stars:$stars}"

    def test_wrapped_value_is_unwrapped_on_read(self):
        assert ReviewInput(stars=QueryBuilderParameter(3)).stars == 3

    def test_unknown_property(self):
        with pytest.raises(TypeError):
            ReviewInput(rating=5)

    def test_delete_property(self):
        review = ReviewInput(stars=5)
        del review.stars
        assert list(review.get_property_values()) == []

    def test_equality(self):
        assert ReviewInput(stars=5) == ReviewInput(stars=5)
        assert ReviewInput(stars=5) != ReviewInput(stars=4)

    def test_input_data_model(self):
        assert build_argument_value(Point(x=1.0), COMPACT) == "{x:1.0}"
        point = Point.model_validate({"x": 1.0, "yCoord": 2.0})
        assert build_argument_value(point, COMPACT) == "{x:1.0,yCoord:2.0}"


# =============================================================================
# Parameters and directives
# =============================================================================


class TestParametersAndDirectives:
    """Tests for parameter validation and directive rendering."""

    def test_invalid_parameter_name(self):
        with pytest.raises(ValueError):
            QueryBuilderParameter(1, name="1x")

    def test_invalid_type_name(self):
        with pytest.raises(ValueError):
            GraphQlQueryParameter("x", "Int!!")

    def test_list_type_name(self):
        assert GraphQlQueryParameter("ids", "[ID!]!").graphql_type_name == "[ID!]!"

    def test_wrap(self):
        parameter = QueryBuilderParameter(1)
        assert QueryBuilderParameter.wrap(parameter) is parameter
        assert QueryBuilderParameter.wrap(2).value == 2

    def test_directive_without_arguments(self):
        directive = IncludeDirective(None)
        assert directive.build(COMPACT, 0) == "@include"
        assert directive.arguments == ()

    def test_directive_with_arguments(self):
        assert SkipDirective(True).build(COMPACT, 0) == "@skip(if:true)"
        assert SkipDirective(True).build(INDENTED, 0) == "@skip(if: true)"

    def test_invalid_directive_name(self):
        with pytest.raises(ValueError):
            GraphQlDirective("not valid")


# =============================================================================
# Selection
# =============================================================================


class TestSelectionSet:
    """Tests for the ordered selection accumulator."""

    def test_put_replaces_in_place(self):
        selection = SelectionSet()
        selection.put("a", 1)
        selection.put("b", 2)
        selection.put("a", 3)
        assert selection.keys() == ["a", "b"]
        assert list(selection) == [3, 2]

    def test_remove_and_clear(self):
        selection = SelectionSet()
        selection.put("a", 1)
        assert "a" in selection
        assert selection.remove("a")
        assert not selection.remove("a")
        selection.put("b", 2)
        selection.clear()
        assert len(selection) == 0
        assert selection.get("b") is None


class TestQueryBuilder:
    """Tests for manual selection and serialization."""

    def test_compact(self):
        assert CharacterQueryBuilder().with_id().with_name().build() == "{id,name}"

    def test_indented(self):
        builder = CharacterQueryBuilder().with_id().with_name()
        assert builder.build(Formatting.INDENTED) == "{\n  id\n  name\n}"

    def test_indentation_size(self):
        builder = CharacterQueryBuilder().with_id()
        assert builder.build(Formatting.INDENTED, indentation_size=4) == "{\n    id\n}"

    def test_class_indentation_size(self):
        builder = MutationQueryBuilder().with_create_review(CharacterQueryBuilder().with_id(), ReviewInput(stars=5))
        assert builder.build(Formatting.INDENTED) == (
            "mutation {\n    createReview(review: {\n        stars: 5\n    }) {\n        id\n    }\n}"
        )

    def test_alias(self):
        builder = CharacterQueryBuilder().with_name().with_name(alias="fullName")
        assert builder.build() == "{name,fullName:name}"
        assert builder.build(Formatting.INDENTED) == "{\n  name\n  fullName: name\n}"

    def test_invalid_alias(self):
        with pytest.raises(ValueError):
            CharacterQueryBuilder().with_name(alias="full name")

    def test_reselect_replaces(self):
        builder = CharacterQueryBuilder().with_name(skip=SkipDirective(True)).with_name()
        assert builder.build() == "{name}"

    def test_except_field(self):
        builder = CharacterQueryBuilder().with_id().with_name().with_name(alias="n")
        assert builder.except_field("name").build() == "{id,n:name}"
        assert builder.except_field("n").build() == "{id}"

    def test_except_field_requires_name(self):
        with pytest.raises(ValueError):
            CharacterQueryBuilder().except_field("")

    def test_arguments(self):
        builder = CharacterQueryBuilder().with_friends(CharacterQueryBuilder().with_name(), first=3)
        assert builder.build() == "{friends(first:3){name}}"

    def test_none_argument_is_omitted(self):
        builder = CharacterQueryBuilder().with_friends(CharacterQueryBuilder().with_name())
        assert builder.build() == "{friends{name}}"

    def test_directives(self):
        parameter = QueryBuilderParameter(name="withName", graphql_type_name="Boolean!")
        builder = CharacterQueryBuilder().with_name(include=IncludeDirective(parameter), skip=SkipDirective(False))
        assert builder.build() == "{name@include(if:$withName)@skip(if:false)}"
        assert builder.build(Formatting.INDENTED) == "{\n  name @include(if: $withName) @skip(if: false)\n}"

    def test_empty_object_field_is_omitted(self):
        builder = CharacterQueryBuilder().with_id().with_friends(CharacterQueryBuilder())
        assert builder.build() == "{id}"
        assert not CharacterQueryBuilder().with_friends(CharacterQueryBuilder()).has_selection()

    def test_fragment(self):
        builder = CharacterQueryBuilder().with_id().with_human_fragment(HumanQueryBuilder().with_home_planet())
        assert builder.build() == "{__typename,id,...on Human{homePlanet}}"
        assert builder.build(Formatting.INDENTED) == (
            "{\n  __typename\n  id\n  ... on Human {\n    homePlanet\n  }\n}"
        )

    def test_typename_not_duplicated(self):
        builder = (
            CharacterQueryBuilder().with_typename().with_human_fragment(HumanQueryBuilder().with_home_planet())
        )
        assert builder.build() == "{__typename,...on Human{homePlanet}}"

    def test_empty_fragment_is_omitted(self):
        builder = CharacterQueryBuilder().with_id().with_human_fragment(HumanQueryBuilder())
        assert builder.build() == "{id}"

    def test_except_fragment(self):
        builder = CharacterQueryBuilder().with_id().with_human_fragment(HumanQueryBuilder().with_home_planet())
        assert builder.except_human_fragment().build() == "{id}"

    def test_clear(self):
        builder = CharacterQueryBuilder().with_id().clear()
        assert builder.build() == "{}"
        assert not builder.has_selection()

    def test_operation_cannot_be_nested(self):
        with pytest.raises(ValueError):
            CharacterQueryBuilder().with_friends(QueryQueryBuilder())


class TestOperations:
    """Tests for operation signatures and variables."""

    def test_operation(self):
        builder = QueryQueryBuilder().with_hero(CharacterQueryBuilder().with_name())
        assert builder.build() == "query{hero{name}}"
        parse(builder.build())

    def test_operation_name(self):
        assert QueryQueryBuilder("Hero").with_hero(CharacterQueryBuilder().with_id()).build() == (
            "query Hero{hero{id}}"
        )

    def test_variables(self):
        episode = GraphQlQueryParameter("episode", "Episode", Episode.EMPIRE)
        builder = (
            QueryQueryBuilder("HeroQuery")
            .with_parameter(episode)
            .with_hero(CharacterQueryBuilder().with_name(), episode=episode)
        )
        assert builder.build() == "query HeroQuery($episode:Episode=EMPIRE){hero(episode:$episode){name}}"
        assert builder.build(Formatting.INDENTED) == (
            "query HeroQuery($episode: Episode = EMPIRE) {\n  hero(episode: $episode) {\n    name\n  }\n}"
        )
        parse(builder.build())
        parse(builder.build(Formatting.INDENTED))

    def test_non_null_variable_has_no_default(self):
        human_id = GraphQlQueryParameter("id", "ID!", "1000")
        builder = QueryQueryBuilder().with_parameter(human_id).with_human(HumanQueryBuilder().with_home_planet(), human_id)
        assert builder.build() == "query($id:ID!){human(id:$id){homePlanet}}"

    def test_unused_variable_is_still_declared(self):
        builder = QueryQueryBuilder().with_parameter(GraphQlQueryParameter("limit", "Int"))
        builder.with_hero(CharacterQueryBuilder().with_id())
        assert builder.build() == "query($limit:Int){hero{id}}"

    def test_same_variable_twice(self):
        parameter = GraphQlQueryParameter("id", "ID!")
        builder = QueryQueryBuilder().with_parameter(parameter).with_parameter(parameter)
        assert builder.build().startswith("query($id:ID!)")

    def test_conflicting_variable(self):
        builder = QueryQueryBuilder().with_parameter(GraphQlQueryParameter("id", "ID!"))
        with pytest.raises(ValueError):
            builder.with_parameter(GraphQlQueryParameter("id", "Int"))

    def test_variable_on_non_operation(self):
        with pytest.raises(TypeError):
            CharacterQueryBuilder().with_parameter(GraphQlQueryParameter("id", "ID!"))

    def test_invalid_operation(self):
        with pytest.raises(ValueError):
            GraphQlQueryBuilder("fetch")
        with pytest.raises(ValueError):
            GraphQlQueryBuilder(None, "Named")
        with pytest.raises(ValueError):
            QueryQueryBuilder("not valid")


# =============================================================================
# Selection planner
# =============================================================================


class TestWithAllFields:
    """Tests for cycle-bounded select-everything."""

    def test_scalar_fields_only(self):
        assert HumanQueryBuilder().with_all_scalar_fields().build() == "{id,name,homePlanet}"

    def test_self_referential_type_terminates(self):
        builder = CharacterQueryBuilder().with_all_fields()
        assert builder.build() == "{" + CHARACTER_SELECTION + "}"
        parse("query" + builder.build())

    def test_operation(self):
        builder = QueryQueryBuilder().with_all_fields()
        # siblings of the same type are expanded; fields with required arguments and the root type are skipped
        assert builder.build() == (
            "query{version,hero{" + CHARACTER_SELECTION + "},villain{" + CHARACTER_SELECTION + "}}"
        )
        parse(builder.build())
        parse(builder.build(Formatting.INDENTED))

    def test_shallower_type_omitted_but_manual_selection_kept(self):
        builder = CharacterQueryBuilder().with_all_fields()
        assert "friends" not in builder.build()

        manual = HumanQueryBuilder().with_friends(CharacterQueryBuilder().with_name())
        assert manual.build() == "{friends{name}}"

    def test_manual_selection_added_after_all_fields(self):
        builder = HumanQueryBuilder().with_all_fields().with_friends(CharacterQueryBuilder().with_id())
        assert builder.build() == "{id,name,homePlanet,friends{id}}"

    def test_unregistered_type(self):
        registry = QueryBuilderRegistry()
        with pytest.raises(LookupError):
            registry.create("Unknown")
        assert "Character" in QUERY_BUILDERS
