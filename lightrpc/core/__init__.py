"""Core Layer — registry, codec, flows, envelopes. No transport, no FastAPI.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or schemas/
    - Core never performs network IO; transports reach it through services/

Design Decisions:
    - Functional core separated from the transport shell (ADR: impureim sandwich)
"""
