"""taleforge: session orchestration for generated interactive fiction."""

__version__ = "0.1.0"
