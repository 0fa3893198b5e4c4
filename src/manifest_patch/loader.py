"""Parse raw patch sources into typed patches."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import jsonpatch
import jsonpointer

from . import codec
from .config import PatchConfig, StrategicMergePatchConfig
from .errors import ConfigError, NotFoundError, ParseError
from .patches import JsonPatch, Patch, StrategicMergePatch
from .resources.base import Resource

_LOG = logging.getLogger(__name__)


class FileLoader:
    """Reads patch references relative to a root directory."""

    def __init__(self, root: Union[str, Path] = ".") -> None:
        self.root = Path(root)

    def load(self, reference: str) -> bytes:
        path = Path(reference)
        if not path.is_absolute():
            path = self.root / path
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise NotFoundError(f"patch file {reference!r} not found under {self.root}") from exc
        except OSError as exc:
            raise ConfigError(f"unable to read patch file {reference!r}: {exc}") from exc


def read_reference(loader: Any, reference: str) -> str:
    raw = loader.load(reference)
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"patch file {reference!r} is not valid UTF-8") from exc


def _is_list_kind(document: Dict[str, Any]) -> bool:
    kind = document.get("kind")
    return isinstance(kind, str) and kind.endswith("List") and isinstance(document.get("items"), list)


def _expand(document: Any, text: str) -> List[Dict[str, Any]]:
    if isinstance(document, dict):
        if not document:
            raise ParseError("strategic merge patch document is empty", patch=text)
        if _is_list_kind(document):
            return [item for entry in document["items"] for item in _expand(entry, text)]
        return [document]
    if isinstance(document, list) and document:
        if all(isinstance(entry, dict) and entry.get("kind") for entry in document):
            return [dict(entry) for entry in document]
    raise ParseError(
        f"content is not a resource-shaped mapping (got {type(document).__name__})",
        patch=text,
    )


def parse_strategic_merge(text: str) -> List[StrategicMergePatch]:
    """Parse one or more strategic-merge documents; empty content yields none."""

    documents: List[Dict[str, Any]] = []
    for document in codec.load_documents(text):
        documents.extend(_expand(document, text))
    return [StrategicMergePatch(resource=Resource(document), source=text) for document in documents]


def parse_json_patch(text: str) -> JsonPatch:
    """Parse an RFC6902 operation list written as JSON or YAML."""

    if not text.strip():
        raise ParseError("empty json patch operations")
    operations = codec.load_document(text)
    if not isinstance(operations, list):
        raise ParseError(f"json patch must be a list of operations, got {type(operations).__name__}", patch=text)
    for operation in operations:
        if not isinstance(operation, dict):
            raise ParseError("json patch operations must be mappings", patch=text)
    try:
        decoded = jsonpatch.JsonPatch(operations)
    except (jsonpatch.InvalidJsonPatch, jsonpointer.JsonPointerException) as exc:
        raise ParseError(f"invalid json patch: {exc}", patch=text) from exc
    return JsonPatch(operations=decoded, source=text)


def classify(text: str) -> Patch:
    """Return the single patch that ``text`` encodes, strategic merge or JSON patch."""

    strategic: Optional[StrategicMergePatch] = None
    json_patch: Optional[JsonPatch] = None
    errors: List[str] = []
    try:
        parsed = parse_strategic_merge(text)
        if len(parsed) != 1:
            raise ParseError(f"expected 1 resource, found {len(parsed)}")
        strategic = parsed[0]
    except ParseError as exc:
        errors.append(exc.message)
    try:
        json_patch = parse_json_patch(text)
    except ParseError as exc:
        errors.append(exc.message)

    if strategic is not None and json_patch is not None:
        raise ConfigError("ambiguous patch: qualifies as both strategic-merge and JSON-Patch", patch=text)
    if strategic is not None:
        return strategic
    if json_patch is not None:
        return json_patch
    raise ParseError(f"unparseable patch content ({'; '.join(errors)})", patch=text)


def load_strategic_merge_patches(config: StrategicMergePatchConfig, loader: Any) -> List[StrategicMergePatch]:
    """Load every patch named by ``paths`` and ``patches``, in that order."""

    if not config.paths and not config.patches.strip():
        raise ConfigError("empty file path and empty patch content")

    loaded: List[StrategicMergePatch] = []
    for entry in config.paths:
        try:
            patches = parse_strategic_merge(entry)
        except ParseError:
            _LOG.debug("Treating %r as a patch file reference", entry)
            patches = parse_strategic_merge(read_reference(loader, entry))
        loaded.extend(patches)
    if config.patches.strip():
        loaded.extend(parse_strategic_merge(config.patches))

    if not loaded:
        raise ConfigError(f"patch appears to be empty; files={config.paths}, patch={config.patches!r}")
    _LOG.debug("Loaded %d strategic merge patch(es)", len(loaded))
    return loaded


def load_patch(config: PatchConfig, loader: Any) -> Patch:
    """Load the single patch of a ``PatchConfig`` from inline text or its ``path``."""

    text = config.patch.strip()
    if not text and not config.path:
        raise ConfigError("must specify one of patch and path")
    if text and config.path:
        raise ConfigError("patch and path can't be set at the same time", patch=text)
    if config.path:
        text = read_reference(loader, config.path)
    return classify(text)
