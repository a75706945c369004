"""
FindMyHelper Backend
====================

What: Service marketplace API. Clients post tasks and hire providers;
      providers apply with a category and rate; admins review applications.

Layering:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (workflow, identity,     │  ← ownership rules, approval
    │   sessions, notifications, uploads) │    state machine, side effects
    ├─────────────────────────────────────┤
    │     Storage (memory | database)     │  ← one interface, two backends
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
