"""Name -> class registry used for isolation backends and notifiers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable


def _normalize(name: str) -> str:
    return (name or "").strip().lower()


@dataclass
class Registry:
    kind: str = "item"
    _items: Dict[str, Any] = field(default_factory=dict)

    def register(self, name: str, obj: Any) -> None:
        key = _normalize(name)
        if not key:
            raise KeyError(f"Cannot register {self.kind} under an empty name")
        if key in self._items:
            raise KeyError(f"{self.kind} registry already contains '{key}'")
        self._items[key] = obj

    def get(self, name: str) -> Any:
        key = _normalize(name)
        if key not in self._items:
            known = ", ".join(sorted(self._items)) or "none"
            raise KeyError(f"Unknown {self.kind} '{name}' (known: {known})")
        return self._items[key]

    def __contains__(self, name: str) -> bool:
        return _normalize(name) in self._items

    def names(self) -> Iterable[str]:
        return tuple(self._items.keys())

    def items(self) -> Dict[str, Any]:
        return dict(self._items)
