"""Core session primitives (narrator context stacking and session events).

Kept free of FastAPI concerns so it can be reused by API routes, the orchestrator, and tests.
"""
