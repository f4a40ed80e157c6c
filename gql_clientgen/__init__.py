"""Generate typed Python query-builder clients from GraphQL schemas."""
