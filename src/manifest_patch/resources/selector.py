"""Matching of resources against target selectors."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, FrozenSet, List, Optional, Pattern

from ..errors import ConfigError
from .base import Resource

if TYPE_CHECKING:
    from ..config import TargetSelector

_REQUIREMENT = re.compile(
    r"""^\s*(?P<neg>!)?\s*(?P<key>[A-Za-z0-9./_-]+)\s*
        (?:(?P<op>==|!=|=|\s+in\s+|\s+notin\s+)\s*(?P<value>\([^)]*\)|[A-Za-z0-9._-]*))?\s*$""",
    re.VERBOSE,
)


@dataclass(frozen=True)
class Requirement:
    """A single term of a label or annotation selector."""

    key: str
    operator: str
    values: FrozenSet[str] = frozenset()

    def matches(self, labels: Dict[str, str]) -> bool:
        present = self.key in labels
        if self.operator == "exists":
            return present
        if self.operator == "!exists":
            return not present
        value = str(labels.get(self.key)) if present else None
        if self.operator in ("=", "in"):
            return present and value in self.values
        # "!=" and "notin" also select resources that lack the key entirely
        return not present or value not in self.values


def _split_terms(expression: str) -> List[str]:
    terms: List[str] = []
    depth = 0
    current = ""
    for char in expression:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char == "," and depth == 0:
            terms.append(current)
            current = ""
            continue
        current += char
    terms.append(current)
    return [term for term in terms if term.strip()]


def parse_selector(expression: Optional[str]) -> List[Requirement]:
    """Parse a Kubernetes style label selector expression into requirements."""

    if not expression or not expression.strip():
        return []
    requirements: List[Requirement] = []
    for term in _split_terms(expression):
        match = _REQUIREMENT.match(term)
        if not match:
            raise ConfigError(f"invalid selector term {term.strip()!r} in {expression!r}")
        key = match.group("key")
        op = (match.group("op") or "").strip()
        raw_value = match.group("value")
        if match.group("neg"):
            if op:
                raise ConfigError(f"invalid selector term {term.strip()!r} in {expression!r}")
            requirements.append(Requirement(key=key, operator="!exists"))
            continue
        if not op:
            requirements.append(Requirement(key=key, operator="exists"))
            continue
        if op in ("in", "notin"):
            if not raw_value or not raw_value.startswith("("):
                raise ConfigError(f"set operator requires a parenthesised list in {term.strip()!r}")
            values = frozenset(v.strip() for v in raw_value[1:-1].split(",") if v.strip())
            requirements.append(Requirement(key=key, operator=op, values=values))
            continue
        if raw_value is not None and raw_value.startswith("("):
            raise ConfigError(f"invalid selector term {term.strip()!r} in {expression!r}")
        operator = "!=" if op == "!=" else "="
        requirements.append(Requirement(key=key, operator=operator, values=frozenset([raw_value or ""])))
    return requirements


def _compile(pattern: Optional[str], field: str) -> Optional[Pattern[str]]:
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigError(f"invalid {field} pattern {pattern!r}: {exc}") from exc


class SelectorMatcher:
    """Compiled form of a ``TargetSelector``; empty fields act as wildcards."""

    def __init__(self, selector: "TargetSelector") -> None:
        self.selector = selector
        self._name = _compile(selector.name, "name")
        self._namespace = _compile(selector.namespace, "namespace")
        self._labels = parse_selector(selector.label_selector)
        self._annotations = parse_selector(selector.annotation_selector)

    def matches(self, resource: Resource) -> bool:
        identity = resource.identity
        selector = self.selector
        if selector.group and selector.group != identity.group:
            return False
        if selector.version and selector.version != identity.version:
            return False
        if selector.kind and selector.kind != identity.kind:
            return False
        if self._name and not self._name.fullmatch(identity.name):
            return False
        if self._namespace and not self._namespace.fullmatch(identity.namespace):
            return False
        labels = resource.labels
        if not all(requirement.matches(labels) for requirement in self._labels):
            return False
        annotations = resource.annotations
        return all(requirement.matches(annotations) for requirement in self._annotations)
