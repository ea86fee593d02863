from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from taleforge.config import GenerationSettings
from taleforge.errors import GenerationBackendError, GenerationError, GenerationTimeout
from taleforge.generation.base import GenerationBackend, GenerationRequest, GenerationResult


logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class GenerationClient:
    """Deadline + retry policy around a GenerationBackend.

    `generate` never raises for backend trouble: after the first attempt and `max_retries`
    retries it returns a GenerationResult carrying the last error.
    """

    backend: GenerationBackend
    timeout_s: float = 10.0
    max_retries: int = 2
    backoff_base_s: float = 0.2
    backoff_factor: float = 4.0
    sleep: Sleep = asyncio.sleep

    @classmethod
    def from_settings(cls, settings: GenerationSettings, *, backend: GenerationBackend) -> "GenerationClient":
        return cls(
            backend=backend,
            timeout_s=settings.timeout_s,
            max_retries=settings.max_retries,
            backoff_base_s=settings.backoff_base_s,
            backoff_factor=settings.backoff_factor,
        )

    def backoff_for(self, retry: int) -> float:
        """Delay before the given retry (1-based)."""

        return self.backoff_base_s * (self.backoff_factor ** (retry - 1))

    async def attempt(self, request: GenerationRequest) -> str:
        try:
            return await asyncio.wait_for(self.backend.complete(request), timeout=self.timeout_s)
        except TimeoutError as e:
            raise GenerationTimeout(f"Generation exceeded the {self.timeout_s}s deadline") from e
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationBackendError(f"{self.backend.name} backend failed: {e!r}") from e

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        last_error: GenerationError | None = None
        total = self.max_retries + 1

        for attempt in range(1, total + 1):
            if attempt > 1:
                delay = self.backoff_for(attempt - 1)
                logger.warning(
                    "Generation attempt %d/%d for %s failed (%s); retrying in %.2fs",
                    attempt - 1,
                    total,
                    request.kind,
                    last_error,
                    delay,
                )
                await self.sleep(delay)
            try:
                text = await self.attempt(request)
            except GenerationError as e:
                last_error = e
                continue
            logger.debug("Generation for %s succeeded on attempt %d via %s", request.kind, attempt, self.backend.name)
            return GenerationResult(text=text, attempts=attempt)

        logger.error("Generation for %s failed after %d attempts: %s", request.kind, total, last_error)
        return GenerationResult(error=last_error, attempts=total)
