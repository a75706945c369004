"""
FindMyHelper Backend — Middleware Package
===========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [CORS] → Route Handler

    1. Rate Limit first: rejects credential stuffing on the auth endpoints
       before any storage work happens.
    2. Request ID: correlation id for every log line and error body.
    3. Logging: one access line per request, with the session user id
       once a route has resolved it.
"""
