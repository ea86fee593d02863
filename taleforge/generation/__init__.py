"""Narrative generation: backend adapters plus the retrying client the orchestrator talks to."""
