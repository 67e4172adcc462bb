"""Session store contract and an in-memory implementation."""

from typing import Any, Optional, Protocol


class SessionStore(Protocol):
    """Key-value storage bound to one browser session."""

    def get(self, key: str) -> Optional[Any]:
        """Returns the stored value or None when absent."""

    def set(self, key: str, value: Any) -> None:
        """Stores a value for the rest of the session, None clears it."""

    def start(self) -> None:
        """Starts the session if it is not active yet."""

    def destroy(self) -> None:
        """Ends the session and forgets every value."""


class MemorySessionStore:
    """Session store holding values in a dict, one instance per browser session."""

    def __init__(self):
        self._data: dict[str, Any] = {}
        self.active = False

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value

    def start(self) -> None:
        self.active = True

    def destroy(self) -> None:
        self._data.clear()
        self.active = False
