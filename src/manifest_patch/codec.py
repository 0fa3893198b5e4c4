"""Conversions between YAML/JSON text, plain field-trees and ruamel node trees."""
from __future__ import annotations

import io
import json
from typing import Any, Dict, Iterable, List

import yaml
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq

from .errors import ParseError


class _FieldTreeLoader(yaml.SafeLoader):
    """Safe loader that leaves timestamps as strings."""


_FieldTreeLoader.add_constructor(
    "tag:yaml.org,2002:timestamp",
    yaml.constructor.SafeConstructor.construct_yaml_str,
)

output_yaml = YAML()
output_yaml.explicit_start = False
output_yaml.width = 120
output_yaml.indent(mapping=2, sequence=4, offset=2)


def load_documents(text: str) -> List[Any]:
    """Parse every YAML document in ``text``, dropping empty ones."""

    try:
        documents = list(yaml.load_all(text, Loader=_FieldTreeLoader))
    except yaml.YAMLError as exc:
        raise ParseError(f"invalid YAML: {exc}", patch=text) from exc
    return [document for document in documents if document is not None]


def load_document(text: str) -> Any:
    """Parse exactly one YAML (or JSON) document."""

    try:
        return yaml.load(text, Loader=_FieldTreeLoader)
    except yaml.YAMLError as exc:
        raise ParseError(f"invalid YAML: {exc}", patch=text) from exc


def to_json(tree: Any) -> str:
    return json.dumps(tree, separators=(",", ":"))


def from_json(raw: str) -> Any:
    return json.loads(raw)


def to_node(tree: Any) -> Any:
    """Build a ruamel node tree (``CommentedMap``/``CommentedSeq``) from a field-tree."""

    if isinstance(tree, dict):
        node = CommentedMap()
        for key, value in tree.items():
            node[key] = to_node(value)
        return node
    if isinstance(tree, list):
        return CommentedSeq(to_node(item) for item in tree)
    return tree


def from_node(node: Any) -> Any:
    """Convert a ruamel node tree back to plain dicts, lists and scalars."""

    if isinstance(node, dict):
        return {key: from_node(value) for key, value in node.items()}
    if isinstance(node, list):
        return [from_node(item) for item in node]
    if isinstance(node, bool):
        return bool(node)
    if isinstance(node, int):
        return int(node)
    if isinstance(node, float):
        return float(node)
    if isinstance(node, str):
        return str(node)
    return node


def dump_documents(documents: Iterable[Dict[str, Any]]) -> str:
    """Render field-trees as a multi-document YAML stream."""

    stream = io.StringIO()
    output_yaml.dump_all([to_node(document) for document in documents], stream)
    return stream.getvalue()
