"""HTTP API: routes, request/response schemas, and middleware."""
