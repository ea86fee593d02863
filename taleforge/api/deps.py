from __future__ import annotations

from fastapi import Request

from taleforge.registry import SessionRegistry


def get_registry(request: Request) -> SessionRegistry:
    """The registry built at startup; tests override this dependency."""

    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise RuntimeError("Session registry not initialized. Is the app lifespan running?")
    return registry
