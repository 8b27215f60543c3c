from typing import Dict, List, Optional, Tuple


class HeaderSet:
    """
    Header changes to apply to a message. Names are case-insensitive and kept
    lower-cased; adding a value never replaces an existing one. Removals are
    remembered so the mail server can drop the message's own copies too.
    """

    def __init__(self):
        self.headers: Dict[str, List[str]] = {}
        self._lines: List[Tuple[str, str]] = []
        self._removed: List[str] = []

    def add_header(self, name: str, value: str) -> None:
        key = name.lower()
        self.headers.setdefault(key, []).append(value)
        self._lines.append((key, value))

    def remove_header(self, name: str) -> None:
        key = name.lower()
        self.headers.pop(key, None)
        self._lines = [(k, v) for k, v in self._lines if k != key]
        if key not in self._removed:
            self._removed.append(key)

    def get_all(self, name: str) -> List[str]:
        return list(self.headers.get(name.lower(), []))

    def get(self, name: str) -> Optional[str]:
        values = self.headers.get(name.lower())
        return values[0] if values else None

    def lines(self) -> List[Tuple[str, str]]:
        return list(self._lines)

    def removed_headers(self) -> List[str]:
        """Names whose existing values on the message must be dropped."""
        return list(self._removed)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self.headers

    def __len__(self) -> int:
        return len(self._lines)

    def __repr__(self) -> str:
        return f"HeaderSet({self._lines!r}, removed={self._removed!r})"
