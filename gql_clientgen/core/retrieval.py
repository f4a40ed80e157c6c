"""Schema retrieval from a running GraphQL service.

Example usage:
    schema = asyncio.run(retrieve_schema("https://api.example.com/graphql",
                                         headers={"Authorization": "Bearer ..."}))
"""

import logging
from typing import Any

import httpx
from graphql import get_introspection_query

from .errors import SchemaRetrievalError
from .introspection import GraphQlSchema, deserialize_schema

logger = logging.getLogger(__name__)

INTROSPECTION_QUERY = get_introspection_query(descriptions=True)

HTTP_METHODS = ("GET", "POST")


async def retrieve_schema_content(
    url: str,
    *,
    http_method: str = "POST",
    headers: dict[str, str] | None = None,
    timeout: float = 30.0,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Run the introspection query and return the response body.

    Args:
        url: GraphQL endpoint URL
        http_method: ``POST`` sends a JSON body, ``GET`` a ``query`` parameter
        headers: Extra request headers, e.g. for authentication
        timeout: Request timeout in seconds
        client: Client to use as-is; otherwise one is created and closed

    Raises:
        SchemaRetrievalError: On a non-success status or an empty body
    """
    method = http_method.upper()
    if method not in HTTP_METHODS:
        raise ValueError(f"unsupported HTTP method: {http_method}")

    request: dict[str, Any] = {"headers": {"Accept": "application/json", **(headers or {})}}
    if method == "POST":
        request["json"] = {"query": INTROSPECTION_QUERY}
    else:
        request["params"] = {"query": INTROSPECTION_QUERY}

    logger.info("retrieving schema from %s", url)
    if client is not None:
        response = await client.request(method, url, **request)
    else:
        async with httpx.AsyncClient(timeout=timeout) as owned_client:
            response = await owned_client.request(method, url, **request)

    content = response.text
    if not response.is_success:
        raise SchemaRetrievalError(
            f"Status code: {response.status_code} ({response.reason_phrase}); content:\n{content}",
            response.status_code,
            content,
        )
    if not content.strip():
        raise SchemaRetrievalError(
            "empty response from GraphQL service", response.status_code, content
        )
    return content


async def retrieve_schema(
    url: str,
    *,
    http_method: str = "POST",
    headers: dict[str, str] | None = None,
    timeout: float = 30.0,
    client: httpx.AsyncClient | None = None,
) -> GraphQlSchema:
    """Retrieve and validate the schema of a GraphQL service."""
    content = await retrieve_schema_content(
        url, http_method=http_method, headers=headers, timeout=timeout, client=client
    )
    return deserialize_schema(content)
