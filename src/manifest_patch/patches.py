"""Typed patch entities produced by the loader."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import jsonpatch

from .resources.base import Identity, Resource


@dataclass
class StrategicMergePatch:
    """A partial, resource-shaped document that may carry merge directives."""

    resource: Resource
    source: str = ""

    @property
    def identity(self) -> Identity:
        return self.resource.identity


@dataclass
class JsonPatch:
    """An ordered list of RFC6902 operations; carries no identity of its own."""

    operations: jsonpatch.JsonPatch
    source: str = ""


Patch = Union[StrategicMergePatch, JsonPatch]
