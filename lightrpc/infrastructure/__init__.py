"""Infrastructure Layer — cross-cutting concerns shared by every layer.

Invariants:
    - Infrastructure never imports from core/ or services/

Design Decisions:
    - Logging setup lives here so the core stays transport- and sink-agnostic
"""
