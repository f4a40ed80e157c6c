"""Shared fixtures: sample schemas built from SDL through graphql-core."""

import importlib
import importlib.util
import sys

import pytest

from gql_clientgen.core.introspection import GraphQlSchema, schema_from_sdl

SAMPLE_SDL = '''
"""Skips the field when the value is empty."""
directive @skipIfEmpty(reason: String) on FIELD

scalar DateTime
scalar Money

"""Access level of a user."""
enum Role {
  ADMIN
  MEMBER
  GUEST @deprecated(reason: "Guests were removed")
}

interface Node {
  id: ID!
}

interface Named {
  name: String
}

"""A registered user."""
type User implements Node & Named {
  id: ID!
  "Display name"
  name: String
  role: Role
  createdAt: DateTime
  friends(first: Int = 10, after: String): [User!]!
  posts(limit: Int!): [Post]
  bestFriend: User
  legacyCode: String @deprecated(reason: "Use id")
}

type Post implements Node {
  id: ID!
  title: String!
  author: User
  price: Money
}

type Me {
  name: String
}

union SearchResult = User | Post

input UserFilter {
  role: Role
  nameContains: String
  createdAfter: DateTime
  nested: UserFilter
}

input CreateUserInput {
  name: String!
  role: Role = MEMBER
}

type Query {
  me: User
  user(id: ID!): User
  users(filter: UserFilter): [User!]!
  search(text: String!): [SearchResult!]!
  node(id: ID!): Node
  viewer: Me
}

type Mutation {
  createUser(input: CreateUserInput!): User
}
'''

# An input object referencing an object type cannot be written in SDL.
REFERENCED_OBJECT_SCHEMA = {
    "queryType": {"name": "Query"},
    "types": [
        {
            "kind": "OBJECT",
            "name": "Query",
            "fields": [
                {
                    "name": "location",
                    "type": {"kind": "OBJECT", "name": "Location"},
                    "args": [{"name": "near", "type": {"kind": "INPUT_OBJECT", "name": "Near"}}],
                }
            ],
        },
        {
            "kind": "OBJECT",
            "name": "Location",
            "fields": [{"name": "point", "type": {"kind": "OBJECT", "name": "Point"}}],
        },
        {
            "kind": "OBJECT",
            "name": "Point",
            "fields": [
                {"name": "x", "type": {"kind": "SCALAR", "name": "Float"}},
                {"name": "y", "type": {"kind": "SCALAR", "name": "Float"}},
            ],
        },
        {
            "kind": "INPUT_OBJECT",
            "name": "Near",
            "inputFields": [{"name": "point", "type": {"kind": "OBJECT", "name": "Point"}}],
        },
        {"kind": "SCALAR", "name": "Float"},
    ],
}


@pytest.fixture
def sample_sdl():
    return SAMPLE_SDL


@pytest.fixture
def sample_schema():
    """Users, posts, an interface hierarchy, a union, inputs and a custom directive."""
    return schema_from_sdl(SAMPLE_SDL)


@pytest.fixture
def referenced_object_schema():
    return GraphQlSchema.model_validate(REFERENCED_OBJECT_SCHEMA)


@pytest.fixture
def load_module(tmp_path, monkeypatch):
    """Import generated source as a module registered in ``sys.modules``."""
    counter = iter(range(1000))

    def load(source: str):
        name = f"generated_client_{next(counter)}"
        path = tmp_path / f"{name}.py"
        path.write_text(source, encoding="utf-8")
        spec = importlib.util.spec_from_file_location(name, path)
        module = importlib.util.module_from_spec(spec)
        monkeypatch.setitem(sys.modules, name, module)
        spec.loader.exec_module(module)
        return module

    return load


@pytest.fixture
def import_package(tmp_path, monkeypatch):
    """Import a generated package written below ``tmp_path``."""
    monkeypatch.syspath_prepend(str(tmp_path))
    imported = []

    def load(package_name: str):
        importlib.invalidate_caches()
        module = importlib.import_module(package_name)
        imported.append(package_name)
        return module

    yield load

    for name in list(sys.modules):
        if any(name == p or name.startswith(p + ".") for p in imported):
            del sys.modules[name]
