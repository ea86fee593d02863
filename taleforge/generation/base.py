from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from taleforge.errors import GenerationError


GenerationKind = Literal["opening", "look", "move", "attack", "help"]


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    kind: GenerationKind
    prompt: str
    system: str = ""
    # Bounded, JSON-friendly snapshot of the session the narration is about.
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class GenerationResult:
    """Narrative text, or the error that exhausted the retry budget."""

    text: str | None = None
    error: GenerationError | None = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None and self.text is not None


class GenerationBackend(Protocol):
    name: str

    async def complete(self, request: GenerationRequest) -> str:  # pragma: no cover
        """Return narrative text or raise GenerationTimeout / GenerationBackendError."""
        ...
