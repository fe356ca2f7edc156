"""lightrpc — runtime service registry and invocation dispatch for API/message protocols.

Invariants:
    - Package root contains no executable code beyond the version string

Design Decisions:
    - Explicit imports only, no star exports
"""

__version__ = "0.1.0"
