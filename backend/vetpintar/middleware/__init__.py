# Middleware package init
"""
VetPintar Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every HTTP request.

Middleware Chain:
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip/CORS] → Route Handler

    1. Rate Limit first: abusive requests are rejected before any work
    2. Request ID: correlation ID for logs and error bodies
    3. Logging: one access line per request, tagged with the request ID

    Responses pass back through the chain in reverse, so the request ID
    header and the logged status/duration reflect the final response.
"""
