from __future__ import annotations

from typing import Protocol

from .session import ViewingState


class Dialogs(Protocol):
    def prompt_password(self, message: str) -> str | None:
        """Ask for a passphrase; None means the user cancelled."""
        ...

    def confirm(self, message: str) -> bool: ...

    def alert(self, message: str) -> None: ...

    def notify(self, message: str) -> None:
        """Transient, non-blocking message."""
        ...


class GuardedDialogs:
    """Marks the session as having a dialog open for the duration of each prompt."""

    def __init__(self, inner: Dialogs, viewing: ViewingState) -> None:
        self._inner = inner
        self._viewing = viewing

    def prompt_password(self, message: str) -> str | None:
        with self._viewing.dialog():
            return self._inner.prompt_password(message)

    def confirm(self, message: str) -> bool:
        with self._viewing.dialog():
            return self._inner.confirm(message)

    def alert(self, message: str) -> None:
        with self._viewing.dialog():
            self._inner.alert(message)

    def notify(self, message: str) -> None:
        self._inner.notify(message)
