"""
Pydantic request/response schemas (the API contract).

Models here are separate from the ORM models in findmyhelper.models:
password hashes, verification tokens and session rows never leave the
server, and nested views (provider + user + category) are assembled by
the services layer.
"""
