"""Navigator.

Owns the client's current location.  A redirect here is a "full
navigation": listeners (the view host) are expected to discard whatever
page is mounted and resolve the new path through the route registry.

Follows the **Thin UI** rule: the navigator records and broadcasts
locations; it never decides where to go.
"""

from __future__ import annotations

from typing import Callable

from farmlink.logger import StructuredLogger
from farmlink.ui.paths import LANDING_PATH

NavigationListener = Callable[[str], None]


class Navigator:
    """Records the current path and history, and notifies listeners.

    Parameters
    ----------
    logger:
        Structured logger for navigation events.
    initial_path:
        Location before any navigation has happened.
    """

    def __init__(self, logger: StructuredLogger, initial_path: str = LANDING_PATH) -> None:
        self._logger = logger
        self._history: list[str] = [initial_path]
        self._listeners: list[NavigationListener] = []

    @property
    def current_path(self) -> str:
        return self._history[-1]

    @property
    def history(self) -> list[str]:
        """Every location visited, oldest first."""
        return list(self._history)

    def redirect(self, path: str) -> None:
        """Navigate to *path*, replacing whatever is mounted."""
        self._history.append(path)
        self._logger.info("Navigated to %s", path, extra={"event": "NAVIGATE"})
        for listener in list(self._listeners):
            listener(path)

    def subscribe(self, listener: NavigationListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe
