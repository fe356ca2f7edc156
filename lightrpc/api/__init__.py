"""API Layer — FastAPI app factory, HTTP/WebSocket bindings, and error handlers.

Invariants:
    - Routes registered explicitly in app.py (no auto-discovery)
    - Every response body, success or failure, is a structured JSON envelope

Design Decisions:
    - Thin routes delegate to the runtime's dispatcher (ADR: impureim sandwich)
"""
