"""HTTP primitives: immutable request metadata, headers, query, body, response."""
