"""
Strata Backend: Application Package Initializer
===============================================

What: Marks the `strata` directory as a Python package.
Who:  Used implicitly by Python's import system and explicitly by pytest and uvicorn.

Architecture Note:
    This backend follows a layered request pipeline:

    ┌─────────────────────────────────────┐
    │   Route Registry (routing.py)       │  ← (method, path) → controller
    ├─────────────────────────────────────┤
    │   Validation Gate (validation.py)   │  ← declarative schemas, all errors
    ├─────────────────────────────────────┤
    │   Controllers (routes/, dispatch)   │  ← transport ↔ service translation
    ├─────────────────────────────────────┤
    │   Services (services/)              │  ← business rules, orchestration
    ├─────────────────────────────────────┤
    │   Capability Interfaces             │  ← Repository, FileStorage contracts
    ├─────────────────────────────────────┤
    │   Adapters (adapters/)              │  ← memory, SQLAlchemy, local disk
    └─────────────────────────────────────┘

    Adapters are selected once at startup (bindings.py) and never change while
    the process serves traffic. Services only see the interfaces.
"""

__version__ = "1.0.0"
