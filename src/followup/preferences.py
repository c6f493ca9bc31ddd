"""
preferences.py – "Last selected client" preference.

Session-scoped convenience state for the UI.  Injected where a picker
needs a default; resolvers and the matching engine never see it.
"""

from __future__ import annotations

from typing import MutableMapping, Optional, Protocol

LAST_CLIENT_KEY = "followup.last_client_id"


class LastSelection(Protocol):
    def get(self) -> Optional[str]: ...

    def set(self, client_id: Optional[str]) -> None: ...


class InMemoryLastSelection:
    def __init__(self, client_id: Optional[str] = None) -> None:
        self._client_id = client_id

    def get(self) -> Optional[str]:
        return self._client_id

    def set(self, client_id: Optional[str]) -> None:
        self._client_id = client_id or None


class MappingLastSelection:
    """Stores the selection in any mutable mapping, e.g. st.session_state."""

    def __init__(self, mapping: MutableMapping, key: str = LAST_CLIENT_KEY) -> None:
        self._mapping = mapping
        self._key = key

    def get(self) -> Optional[str]:
        value = self._mapping.get(self._key)
        return value if isinstance(value, str) and value else None

    def set(self, client_id: Optional[str]) -> None:
        if client_id:
            self._mapping[self._key] = client_id
        elif self._key in self._mapping:
            del self._mapping[self._key]


def preselect(options: list[str], selection: LastSelection) -> int:
    """Index of the remembered option in *options*, 0 when absent."""
    remembered = selection.get()
    return options.index(remembered) if remembered in options else 0
