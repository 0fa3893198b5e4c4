"""Transformers that apply loaded patches across a resource collection."""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Union

from ..apply import ApplyStrategy, apply_json_patch, apply_strategic_merge, strategy_for
from ..config import PatchConfig, StrategicMergePatchConfig, TargetSelector, TransformConfig
from ..loader import FileLoader, load_patch, load_strategic_merge_patches
from ..merge import merge_patches
from ..patches import JsonPatch, Patch, StrategicMergePatch
from ..resolve import resolve_targets
from ..resources.collection import ResourceCollection

_LOG = logging.getLogger(__name__)


def apply_to_targets(
    collection: ResourceCollection,
    patch: Patch,
    strategy: ApplyStrategy,
    target: Optional[TargetSelector] = None,
) -> int:
    """Resolve the targets of ``patch`` and apply it to each; returns the number patched.

    A resource emptied by a strategic-merge patch is removed from the
    collection. Failures propagate immediately; earlier mutations are kept.
    """

    targets = resolve_targets(patch, collection, target)
    if target is not None and not targets:
        _LOG.info("Target selector %s matched no resources", target.model_dump(exclude_none=True, by_alias=True))
    for resource in targets:
        identity = resource.identity
        if isinstance(patch, JsonPatch):
            apply_json_patch(resource, patch, strategy, collection)
            continue
        if apply_strategic_merge(resource, patch, strategy):
            _LOG.info("Patch emptied %s; removing it", identity)
            collection.remove_resource(resource)
    return len(targets)


class PatchStrategicMergeTransformer:
    """Merges all strategic-merge patches per target, then applies each once."""

    def __init__(self, config: StrategicMergePatchConfig, loader: Any = None) -> None:
        self.config = config
        self.strategy = strategy_for(config.yaml_support, config.merge_keys)
        self.patches: List[StrategicMergePatch] = load_strategic_merge_patches(config, loader or FileLoader())

    def transform(self, collection: ResourceCollection) -> None:
        merged = merge_patches(self.patches, self.strategy.merge_keys)
        _LOG.info(
            "Applying %d strategic merge patch(es) consolidated from %d source document(s)",
            len(merged),
            len(self.patches),
        )
        for patch in merged:
            apply_to_targets(collection, patch, self.strategy)


class PatchTransformer:
    """Applies one strategic-merge or JSON patch, optionally fanned out by a selector."""

    def __init__(self, config: PatchConfig, loader: Any = None) -> None:
        self.config = config
        self.strategy = strategy_for(config.yaml_support, config.merge_keys)
        self.patch: Patch = load_patch(config, loader or FileLoader())

    def transform(self, collection: ResourceCollection) -> None:
        kind = "json" if isinstance(self.patch, JsonPatch) else "strategic merge"
        count = apply_to_targets(collection, self.patch, self.strategy, self.config.target)
        _LOG.info("Applied %s patch to %d resource(s)", kind, count)


Transformer = Union[PatchStrategicMergeTransformer, PatchTransformer]


def build_transformer(config: Union[StrategicMergePatchConfig, PatchConfig], loader: Any = None) -> Transformer:
    if isinstance(config, StrategicMergePatchConfig):
        return PatchStrategicMergeTransformer(config, loader)
    return PatchTransformer(config, loader)


def run_transformers(config: TransformConfig, collection: ResourceCollection, loader: Any = None) -> ResourceCollection:
    """Load every configured transformer, then run each as its own pass over ``collection``."""

    transformers: Sequence[Transformer] = [build_transformer(entry, loader) for entry in config.transformers]
    for transformer in transformers:
        transformer.transform(collection)
    return collection
