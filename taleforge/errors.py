from __future__ import annotations


class TaleforgeError(Exception):
    """Base class for every error raised by the session core."""


class SessionNotFound(TaleforgeError, LookupError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class CommandRejection(TaleforgeError, ValueError):
    """A command that is refused before any state mutation.

    Subclasses surface to observers as a `COMMAND_REJECTED` event; `str(err)` is user-visible.
    """


class IllegalCommandForMode(CommandRejection):
    def __init__(self, command: str, mode: str) -> None:
        super().__init__(f"You can't {command} right now ({mode.replace('_', ' ')}).")
        self.command = command
        self.mode = mode


class UnknownCommand(CommandRejection):
    def __init__(self, word: str) -> None:
        shown = word or "that"
        super().__init__(
            f"I don't understand '{shown}'. Try: look, move <direction>, take <item>, attack, inventory, help."
        )
        self.word = word


class ActionRefused(CommandRejection):
    """Legal for the mode, but impossible in the current room (no such exit, item or foe)."""


class IllegalTransition(TaleforgeError, ValueError):
    """A state machine event fired from a state that has no such edge."""


class GenerationError(TaleforgeError, RuntimeError):
    pass


class GenerationTimeout(GenerationError):
    pass


class GenerationBackendError(GenerationError):
    pass


class InvalidSnapshot(TaleforgeError, ValueError):
    pass
