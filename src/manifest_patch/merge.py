"""Strategic merge of plain field-trees and consolidation of patches per target.

Supported directives:

* ``null`` field value removes the field from the target.
* ``$patch: delete`` removes the enclosing map; inside a keyed list it removes
  the matching element, and at the top level it empties the whole resource.
* ``$patch: replace`` replaces the enclosing map instead of merging into it.
  As a list element (``- $patch: replace``) it replaces the whole list.
* ``$patch: merge`` is the default behaviour and may be spelled out.
* ``$deleteFromPrimitiveList/<field>: [values]`` removes scalar values from
  ``<field>``.
"""
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import ApplyError
from .patches import StrategicMergePatch
from .resources.base import Identity, Resource

_LOG = logging.getLogger(__name__)

PATCH_DIRECTIVE = "$patch"
DELETE = "delete"
REPLACE = "replace"
MERGE = "merge"
DELETE_FROM_PRIMITIVE_LIST = "$deleteFromPrimitiveList/"

DEFAULT_MERGE_KEYS: Dict[str, Tuple[str, ...]] = {
    "containers": ("name",),
    "initContainers": ("name",),
    "ephemeralContainers": ("name",),
    "env": ("name",),
    "volumes": ("name",),
    "imagePullSecrets": ("name",),
    "resourceClaims": ("name",),
    "volumeMounts": ("mountPath",),
    "volumeDevices": ("devicePath",),
    "ports": ("containerPort", "port"),
    "hostAliases": ("ip",),
    "conditions": ("type",),
    "readinessGates": ("conditionType",),
    "topologySpreadConstraints": ("topologyKey",),
}


class _Deleted:
    def __repr__(self) -> str:
        return "DELETED"


DELETED = _Deleted()


def directive_of(patch: Mapping[str, Any]) -> Optional[str]:
    """Return the ``$patch`` directive of a patch map, validating its value."""

    value = patch.get(PATCH_DIRECTIVE)
    if value is None:
        return None
    if value not in (DELETE, REPLACE, MERGE):
        raise ApplyError(f"unknown merge directive {PATCH_DIRECTIVE}: {value!r}")
    return value


def is_replace_marker(element: Any) -> bool:
    """True for the ``{$patch: replace}`` list element that marks a whole-list replace."""

    return isinstance(element, Mapping) and len(element) == 1 and element.get(PATCH_DIRECTIVE) == REPLACE


def is_primitive_deletion(key: Any) -> bool:
    return isinstance(key, str) and key.startswith(DELETE_FROM_PRIMITIVE_LIST)


def check_directive_key(key: Any) -> None:
    if not isinstance(key, str):
        return
    if key.startswith("$") and key != PATCH_DIRECTIVE and not is_primitive_deletion(key):
        raise ApplyError(f"unsupported merge directive {key!r}")


def primitive_deletions(key: str, value: Any) -> Tuple[str, List[Any]]:
    field = key[len(DELETE_FROM_PRIMITIVE_LIST):]
    if not field or not isinstance(value, list):
        raise ApplyError(f"malformed merge directive {key!r}: expected a list of values")
    return field, list(value)


class MergeKeys:
    """Resolves which field aligns list elements for a given list field."""

    def __init__(self, overrides: Optional[Mapping[str, str]] = None) -> None:
        self.overrides = dict(overrides or {})

    def candidates(self, field: str) -> Tuple[str, ...]:
        if field in self.overrides:
            return (self.overrides[field],)
        return DEFAULT_MERGE_KEYS.get(field, ())

    def key_for(self, field: str, current: Sequence[Any], patch: Sequence[Any]) -> Optional[str]:
        """Return the merge key when every mapping on both sides carries it."""

        candidates = self.candidates(field)
        if not candidates:
            return None
        elements = [element for element in list(current) + list(patch) if not is_replace_marker(element)]
        if not elements or not all(isinstance(element, Mapping) for element in elements):
            return None
        for key in candidates:
            if all(key in element for element in elements):
                return key
        return None


def find_element(items: Sequence[Any], key: str, value: Any) -> Optional[int]:
    for index, item in enumerate(items):
        if isinstance(item, Mapping) and item.get(key) == value:
            return index
    return None


def strategic_merge(
    target: Dict[str, Any],
    patch: Dict[str, Any],
    merge_keys: Optional[MergeKeys] = None,
) -> Dict[str, Any]:
    """Return ``target`` with ``patch`` merged in, without mutating the inputs."""

    merged = _merge_map(target, patch, merge_keys or MergeKeys(), keep_directives=False)
    if merged is DELETED:
        return {}
    return merged


def merge_patch_content(
    earlier: Dict[str, Any],
    later: Dict[str, Any],
    merge_keys: Optional[MergeKeys] = None,
) -> Dict[str, Any]:
    """Fold ``later`` into ``earlier`` keeping directives so the result is still a patch."""

    return _merge_map(earlier, later, merge_keys or MergeKeys(), keep_directives=True)


def _replacing_map(patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Spell ``patch`` so that it replaces, rather than merges into, whatever it meets."""

    if directive_of(patch) in (DELETE, REPLACE):
        return copy.deepcopy(dict(patch))
    body = {key: copy.deepcopy(value) for key, value in patch.items() if key != PATCH_DIRECTIVE}
    return {PATCH_DIRECTIVE: REPLACE, **body}


def _replacing_list(patch: List[Any]) -> List[Any]:
    if any(is_replace_marker(element) for element in patch):
        return copy.deepcopy(patch)
    return [{PATCH_DIRECTIVE: REPLACE}] + copy.deepcopy(patch)


def _merge_map(target: Dict[str, Any], patch: Mapping[str, Any], merge_keys: MergeKeys, keep_directives: bool) -> Any:
    directive = directive_of(patch)
    if keep_directives and directive in (None, MERGE) and directive_of(target) == DELETE:
        # a later patch rebuilds what an earlier one deleted
        return _replacing_map(patch)
    if directive == DELETE:
        return copy.deepcopy(dict(patch)) if keep_directives else DELETED
    if directive == REPLACE:
        if keep_directives:
            return copy.deepcopy(dict(patch))
        return _merge_map({}, {k: v for k, v in patch.items() if k != PATCH_DIRECTIVE}, merge_keys, False)

    result: Dict[str, Any] = copy.deepcopy(target)
    deletions: List[Tuple[str, str, List[Any]]] = []
    for key, value in patch.items():
        if key == PATCH_DIRECTIVE:
            continue
        check_directive_key(key)
        if is_primitive_deletion(key):
            deletions.append((key, *primitive_deletions(key, value)))
            continue
        present = key in result
        current = result.get(key)
        if keep_directives and isinstance(key, str):
            # earlier deletions from a list this patch overwrites no longer apply
            if not (isinstance(value, list) and value and all(isinstance(item, Mapping) for item in value)):
                result.pop(DELETE_FROM_PRIMITIVE_LIST + key, None)
        if value is None:
            if keep_directives:
                result[key] = None
            else:
                result.pop(key, None)
            continue
        if isinstance(value, Mapping):
            if isinstance(current, dict):
                merged = _merge_map(current, value, merge_keys, keep_directives)
            elif keep_directives:
                # an earlier scalar, list or null already displaced the target's map
                merged = _replacing_map(value) if present else copy.deepcopy(dict(value))
            else:
                merged = _merge_map({}, value, merge_keys, False)
            if merged is DELETED:
                result.pop(key, None)
            else:
                result[key] = merged
        elif isinstance(value, list):
            if keep_directives and present and not isinstance(current, list):
                result[key] = _replacing_list(value)
            else:
                result[key] = _merge_list(
                    key, current if isinstance(current, list) else None, value, merge_keys, keep_directives
                )
        else:
            result[key] = value

    for key, field, values in deletions:
        if keep_directives:
            existing = result.get(key) or []
            result[key] = existing + [item for item in values if item not in existing]
            continue
        current = result.get(field)
        if isinstance(current, list):
            result[field] = [item for item in current if item not in values]
    return result


def _merge_list(
    field: str,
    current: Optional[List[Any]],
    patch: List[Any],
    merge_keys: MergeKeys,
    keep_directives: bool,
) -> List[Any]:
    replace = any(is_replace_marker(element) for element in patch)
    key = None
    if current is not None and patch and not replace:
        key = merge_keys.key_for(field, current, patch)
    if key is None:
        return copy.deepcopy(patch) if keep_directives else _clean_list(patch, merge_keys)

    result = copy.deepcopy(current)
    for element in patch:
        position = find_element(result, key, element[key])
        if directive_of(element) == DELETE:
            if keep_directives:
                if position is None:
                    result.append(copy.deepcopy(element))
                else:
                    result[position] = copy.deepcopy(element)
            elif position is not None:
                del result[position]
            continue
        if position is None:
            result.append(copy.deepcopy(element) if keep_directives else _clean(element, merge_keys))
        else:
            result[position] = _merge_map(result[position], element, merge_keys, keep_directives)
    return result


def _clean(value: Any, merge_keys: MergeKeys) -> Any:
    if isinstance(value, Mapping):
        return _merge_map({}, value, merge_keys, False)
    if isinstance(value, list):
        return _clean_list(value, merge_keys)
    return value


def _clean_list(items: List[Any], merge_keys: MergeKeys) -> List[Any]:
    cleaned = []
    for item in items:
        if is_replace_marker(item):
            continue
        value = _clean(item, merge_keys)
        if value is not DELETED:
            cleaned.append(value)
    return cleaned


def merge_patches(
    patches: Sequence[StrategicMergePatch],
    merge_keys: Optional[MergeKeys] = None,
) -> List[StrategicMergePatch]:
    """Consolidate patches sharing a target identity into one patch per identity.

    Patches are folded in input order; the result list is ordered by the first
    occurrence of each identity.
    """

    merge_keys = merge_keys or MergeKeys()
    grouped: List[Tuple[Identity, List[StrategicMergePatch]]] = []
    for patch in patches:
        identity = patch.identity
        for known, members in grouped:
            if known.matches(identity):
                members.append(patch)
                break
        else:
            grouped.append((identity, [patch]))

    consolidated: List[StrategicMergePatch] = []
    for identity, members in grouped:
        content = copy.deepcopy(members[0].resource.content)
        for patch in members[1:]:
            content = merge_patch_content(content, patch.resource.content, merge_keys)
        if len(members) > 1:
            _LOG.debug("Merged %d patches for %s", len(members), identity)
        consolidated.append(
            StrategicMergePatch(
                resource=Resource(content, original_identity=identity),
                source="\n---\n".join(patch.source for patch in members if patch.source),
            )
        )
    return consolidated
