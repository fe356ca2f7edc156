"""Services Layer — dispatcher, connection directory, and runtime wiring.

Invariants:
    - Services receive the registry and flow pipeline; they never create globals
    - Dispatch uses explicit dict mapping (no auto-discovery)

Design Decisions:
    - One object per concern, wired by create_runtime (ADR: no god objects)
"""
