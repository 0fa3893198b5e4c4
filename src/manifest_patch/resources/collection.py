"""Ordered, identity-unique collection of resources."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List

from ..errors import ApplyError, ConfigError, NotFoundError
from .base import Identity, Resource
from .selector import SelectorMatcher

if TYPE_CHECKING:
    from ..config import TargetSelector

_LOG = logging.getLogger(__name__)


class ResourceCollection:
    """Resources in insertion order, unique by their current identity."""

    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        self._resources: List[Resource] = []
        for resource in resources:
            self.append(resource)

    @classmethod
    def from_documents(cls, documents: Iterable[Dict[str, Any]]) -> "ResourceCollection":
        return cls(Resource(document) for document in documents)

    def append(self, resource: Resource) -> None:
        identity = resource.identity
        for existing in self._resources:
            if existing.identity.matches(identity):
                raise ConfigError(f"may not add resource with an already registered id: {identity}")
        self._resources.append(resource)

    def remove(self, identity: Identity) -> Resource:
        """Remove and return the resource whose current identity is ``identity``."""

        for index, resource in enumerate(self._resources):
            if resource.identity.matches(identity):
                _LOG.debug("Removing %s from collection", identity)
                return self._resources.pop(index)
        raise NotFoundError(f"cannot remove missing resource {identity}")

    def remove_resource(self, resource: Resource) -> None:
        """Remove ``resource`` itself, whatever its content currently holds."""

        for index, existing in enumerate(self._resources):
            if existing is resource:
                del self._resources[index]
                return
        raise NotFoundError(f"cannot remove missing resource {resource.original_identity}")

    def ensure_unique(self, resource: Resource, identity: Identity) -> None:
        """Fail if a resource other than ``resource`` already holds ``identity``."""

        for existing in self._resources:
            if existing is not resource and existing.identity.matches(identity):
                raise ApplyError(
                    f"patch would change {resource.identity} to {identity}, "
                    f"which is already registered as {existing.identity}"
                )

    def get_by_identity(self, identity: Identity) -> Resource:
        """Return the single resource whose current or original identity is ``identity``."""

        matches = [resource for resource in self._resources if resource.identity.matches(identity)]
        if not matches:
            matches = [
                resource for resource in self._resources if resource.original_identity.matches(identity)
            ]
        if not matches:
            raise NotFoundError(f"no matches for id {identity}; failed to find unique target for patch")
        if len(matches) > 1:
            raise ConfigError(f"multiple matches for id {identity}: {[str(r.identity) for r in matches]}")
        return matches[0]

    def select(self, selector: "TargetSelector") -> List[Resource]:
        matcher = SelectorMatcher(selector)
        return [resource for resource in self._resources if matcher.matches(resource)]

    def resources(self) -> List[Resource]:
        return list(self._resources)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [resource.to_dict() for resource in self._resources]

    def __len__(self) -> int:
        return len(self._resources)

    def __iter__(self) -> Iterator[Resource]:
        return iter(list(self._resources))

    def __contains__(self, identity: object) -> bool:
        if not isinstance(identity, Identity):
            return False
        return any(resource.identity.matches(identity) for resource in self._resources)
