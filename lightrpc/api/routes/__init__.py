"""Route Modules — one file per binding/concern.

Invariants:
    - Each module defines its own APIRouter (or router factory)
    - Routes never contain dispatch logic (delegate to the runtime)

Design Decisions:
    - Explicit registration in app.py over auto-discovery (ADR: explicit over magic)
"""
