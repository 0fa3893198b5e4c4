"""Error hierarchy raised while loading, resolving and applying patches."""
from __future__ import annotations

from typing import Any, Dict, Optional

_EXCERPT_LIMIT = 200


def excerpt(text: str, limit: int = _EXCERPT_LIMIT) -> str:
    """Return a single-line, truncated rendering of patch content for messages."""

    flat = " ".join(str(text).split())
    if len(flat) > limit:
        return flat[: limit - 3] + "..."
    return flat


class PatchError(Exception):
    """Base exception for every failure of a patching pass."""

    def __init__(self, message: str, patch: Optional[str] = None, target: Optional[str] = None) -> None:
        self.message = message
        self.patch = excerpt(patch) if patch is not None else None
        self.target = target
        super().__init__(self._render())

    def _render(self) -> str:
        parts = [self.message]
        if self.target:
            parts.append(f"target: {self.target}")
        if self.patch:
            parts.append(f"patch: [{self.patch}]")
        return "; ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "patch": self.patch,
            "target": self.target,
        }


class ConfigError(PatchError):
    """Empty, contradictory or ambiguous patch configuration."""


class ParseError(PatchError):
    """Patch content matches neither the strategic-merge nor the JSON-Patch shape."""


class NotFoundError(PatchError):
    """A patch target or a referenced patch file does not exist."""


class ApplyError(PatchError):
    """A patch could not be applied to a resource."""
