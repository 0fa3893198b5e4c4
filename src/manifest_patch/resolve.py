"""Resolution of the resources a patch applies to."""
from __future__ import annotations

from typing import List, Optional

from .config import TargetSelector
from .errors import ConfigError, NotFoundError
from .patches import JsonPatch, Patch
from .resources.base import Resource
from .resources.collection import ResourceCollection


def resolve_targets(
    patch: Patch,
    collection: ResourceCollection,
    target: Optional[TargetSelector] = None,
) -> List[Resource]:
    """Return the targets of ``patch`` in collection order.

    With a selector every matching resource is returned (possibly none).
    Without one, a strategic-merge patch must name exactly one existing
    resource through its own identity fields.
    """

    if target is not None:
        return collection.select(target)
    if isinstance(patch, JsonPatch):
        raise ConfigError("target required for JSON-Patch", patch=patch.source)
    try:
        return [collection.get_by_identity(patch.identity)]
    except NotFoundError as exc:
        raise NotFoundError(exc.message, patch=patch.source, target=str(patch.identity)) from exc
    except ConfigError as exc:
        raise ConfigError(exc.message, patch=patch.source, target=str(patch.identity)) from exc
