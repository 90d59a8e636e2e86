"""
Invoicerr Backend — Application Package Initializer
=====================================================

What: Marks the `app` directory as a Python package.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    ┌─────────────────────────────────────┐
    │      Routes + Guards (API Layer)    │  ← HTTP, session and tenant checks
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Totals, numbering, workflows
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes never hold business rules; services never know about HTTP.
"""

__version__ = "1.0.0"
