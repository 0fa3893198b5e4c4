"""Application of a single patch to a single resource.

Two interchangeable strategies implement the same contract:

* ``LegacyStrategy`` merges plain dicts functionally and runs JSON patches on a
  JSON round-trip of the resource.
* ``StructuredStrategy`` converts the resource into a ruamel node tree, edits
  that tree in place and converts it back.

Both leave the resource untouched when the patch fails.
"""
from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

import jsonpatch
import jsonpointer

from . import codec
from .errors import ApplyError
from .merge import MergeKeys, strategic_merge
from .patches import JsonPatch, StrategicMergePatch
from .resources.base import Identity, Resource
from .structured import StrategicMergeFilter

if TYPE_CHECKING:
    from .resources.collection import ResourceCollection

_LOG = logging.getLogger(__name__)


class ApplyStrategy:
    """Contract shared by the merge strategies."""

    name = "base"

    def __init__(self, merge_keys: Optional[Mapping[str, str]] = None) -> None:
        self.merge_keys = MergeKeys(merge_keys)

    def merge(self, content: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def json_patch(self, content: Dict[str, Any], operations: jsonpatch.JsonPatch) -> Any:
        raise NotImplementedError


class LegacyStrategy(ApplyStrategy):
    name = "legacy"

    def merge(self, content: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
        return strategic_merge(content, patch, self.merge_keys)

    def json_patch(self, content: Dict[str, Any], operations: jsonpatch.JsonPatch) -> Any:
        document = codec.from_json(codec.to_json(content))
        return operations.apply(document, in_place=True)


class StructuredStrategy(ApplyStrategy):
    name = "structured"

    def merge(self, content: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
        node = codec.to_node(content)
        StrategicMergeFilter(codec.to_node(patch), self.merge_keys).filter(node)
        return codec.from_node(node)

    def json_patch(self, content: Dict[str, Any], operations: jsonpatch.JsonPatch) -> Any:
        node = codec.to_node(content)
        return codec.from_node(operations.apply(node, in_place=True))


def strategy_for(yaml_support: bool, merge_keys: Optional[Mapping[str, str]] = None) -> ApplyStrategy:
    if yaml_support:
        return StructuredStrategy(merge_keys)
    return LegacyStrategy(merge_keys)


def apply_strategic_merge(resource: Resource, patch: StrategicMergePatch, strategy: ApplyStrategy) -> bool:
    """Merge ``patch`` into ``resource`` in place.

    The patch copy is stamped with the resource's own identity first, so one
    patch body can be applied to differently named resources. Returns True when
    the resource was emptied by the patch.
    """

    identity = resource.identity
    patch_copy = patch.resource.deep_copy()
    patch_copy.stamp_identity(identity)
    try:
        merged = strategy.merge(resource.content, patch_copy.content)
    except ApplyError as exc:
        raise ApplyError(exc.message, patch=patch.source, target=str(identity)) from exc
    resource.set_content(merged)
    _LOG.debug("Applied strategic merge patch to %s using %s strategy", identity, strategy.name)
    return resource.is_empty()


def apply_json_patch(
    resource: Resource,
    patch: JsonPatch,
    strategy: ApplyStrategy,
    collection: Optional["ResourceCollection"] = None,
) -> None:
    """Apply RFC6902 operations to ``resource``; on any failure nothing is changed.

    With a ``collection``, the patched resource may not take over the identity
    of another resource in it.
    """

    identity = resource.identity
    # each target gets its own operation values
    operations = jsonpatch.JsonPatch(copy.deepcopy(patch.operations.patch))
    try:
        result = strategy.json_patch(resource.content, operations)
    except (jsonpatch.JsonPatchException, jsonpointer.JsonPointerException, TypeError) as exc:
        raise ApplyError(f"failed to apply json patch: {exc}", patch=patch.source, target=str(identity)) from exc
    if not isinstance(result, dict):
        raise ApplyError("json patch must leave the resource a mapping", patch=patch.source, target=str(identity))
    if collection is not None:
        try:
            collection.ensure_unique(resource, Identity.from_content(result))
        except ApplyError as exc:
            raise ApplyError(exc.message, patch=patch.source, target=str(identity)) from exc
    resource.set_content(result)
    _LOG.debug("Applied json patch to %s using %s strategy", identity, strategy.name)
