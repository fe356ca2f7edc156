"""Pydantic Schemas — wire-frame validation at the transport boundary.

Invariants:
    - Schemas validate at system boundary (raw frames from HTTP bodies and sockets)
    - Domain types from core/ used for enum fields
"""
