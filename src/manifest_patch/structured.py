"""In-place strategic merge over ruamel node trees."""
from __future__ import annotations

import copy
from typing import Any, List, Mapping, Optional, Tuple

from ruamel.yaml.comments import CommentedMap, CommentedSeq

from .merge import (
    DELETE,
    DELETED,
    PATCH_DIRECTIVE,
    REPLACE,
    MergeKeys,
    check_directive_key,
    directive_of,
    find_element,
    is_primitive_deletion,
    is_replace_marker,
    primitive_deletions,
)


class StrategicMergeFilter:
    """Walks a target node tree and merges a patch node tree into it."""

    def __init__(self, patch: CommentedMap, merge_keys: Optional[MergeKeys] = None) -> None:
        self.patch = patch
        self.merge_keys = merge_keys or MergeKeys()

    def filter(self, node: CommentedMap) -> CommentedMap:
        """Merge the patch into ``node``; a deleted root leaves ``node`` empty."""

        if self._visit_map(node, self.patch):
            node.clear()
        return node

    def _visit_map(self, node: CommentedMap, patch: Mapping[str, Any]) -> bool:
        """Merge ``patch`` into ``node``. Returns True when the map itself is deleted."""

        directive = directive_of(patch)
        if directive == DELETE:
            return True
        if directive == REPLACE:
            node.clear()

        deletions: List[Tuple[str, List[Any]]] = []
        for key, value in patch.items():
            if key == PATCH_DIRECTIVE:
                continue
            check_directive_key(key)
            if is_primitive_deletion(key):
                deletions.append(primitive_deletions(key, value))
                continue
            if value is None:
                node.pop(key, None)
                continue
            if isinstance(value, Mapping):
                child = node.get(key)
                if not isinstance(child, CommentedMap):
                    child = CommentedMap()
                if self._visit_map(child, value):
                    node.pop(key, None)
                else:
                    node[key] = child
            elif isinstance(value, list):
                current = node.get(key)
                node[key] = self._visit_list(key, current if isinstance(current, list) else None, value)
            else:
                node[key] = value

        for field, values in deletions:
            current = node.get(field)
            if isinstance(current, list):
                for item in [item for item in current if item in values]:
                    current.remove(item)
        return False

    def _visit_list(self, field: str, node: Optional[List[Any]], patch: List[Any]) -> CommentedSeq:
        key = None
        if node is not None and patch and not any(is_replace_marker(element) for element in patch):
            key = self.merge_keys.key_for(field, node, patch)
        if key is None:
            return self._fresh_list(patch)

        for element in patch:
            position = find_element(node, key, element[key])
            if directive_of(element) == DELETE:
                if position is not None:
                    del node[position]
                continue
            if position is None:
                fresh = self._fresh(element)
                if fresh is not DELETED:
                    node.append(fresh)
            else:
                self._visit_map(node[position], element)
        return node if isinstance(node, CommentedSeq) else CommentedSeq(node)

    def _fresh(self, value: Any) -> Any:
        """Materialise a patch value at a location the target does not have yet."""

        if isinstance(value, Mapping):
            child = CommentedMap()
            if self._visit_map(child, value):
                return DELETED
            return child
        if isinstance(value, list):
            return self._fresh_list(value)
        return copy.deepcopy(value)

    def _fresh_list(self, items: List[Any]) -> CommentedSeq:
        fresh = CommentedSeq()
        for item in items:
            if is_replace_marker(item):
                continue
            if isinstance(item, Mapping) and directive_of(item) == DELETE:
                continue
            value = self._fresh(item)
            if value is not DELETED:
                fresh.append(value)
        return fresh
