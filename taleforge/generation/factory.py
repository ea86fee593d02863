from __future__ import annotations

from typing import cast

from taleforge.config import GenerationSettings
from taleforge.generation.ag2_backend import Ag2GenerationBackend
from taleforge.generation.base import GenerationBackend
from taleforge.generation.client import GenerationClient
from taleforge.generation.http_backend import HttpGenerationBackend


def create_backend(settings: GenerationSettings) -> GenerationBackend:
    """Create the configured narration backend ("http" or "ag2")."""

    if settings.backend == "http":
        return cast(GenerationBackend, HttpGenerationBackend.from_settings(settings))
    if settings.backend == "ag2":
        return cast(GenerationBackend, Ag2GenerationBackend.from_settings(settings))
    raise ValueError(f"Unknown generation backend: {settings.backend}")


def create_client(settings: GenerationSettings, *, backend: GenerationBackend | None = None) -> GenerationClient:
    return GenerationClient.from_settings(settings, backend=backend or create_backend(settings))
