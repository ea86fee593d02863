from __future__ import annotations

from pathlib import Path


class PromptLoadError(RuntimeError):
    pass


def prompts_dir() -> Path:
    # taleforge/prompts.py -> taleforge/prompts/
    return Path(__file__).resolve().parent / "prompts"


def load_prompt(name: str) -> str:
    """Load a prompt text file from the package `prompts/` directory.

    Example:
        load_prompt("narrator_system.txt")
    """

    path = prompts_dir() / name
    try:
        return path.read_text(encoding="utf-8").strip() + "\n"
    except FileNotFoundError as e:
        raise PromptLoadError(f"Prompt not found: {path}") from e


def render_prompt(name: str, **values: str) -> str:
    return load_prompt(name).format_map(values)
