"""Resource identity and the mutable resource document."""
from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

DEFAULT_NAMESPACE = "default"


def split_api_version(api_version: Optional[str]) -> Tuple[str, str]:
    """Split ``apiVersion`` into ``(group, version)``; core resources have an empty group."""

    if not api_version:
        return "", ""
    if "/" in api_version:
        group, version = api_version.split("/", 1)
        return group, version
    return "", api_version


def join_api_version(group: str, version: str) -> str:
    if group:
        return f"{group}/{version}"
    return version


@dataclass(frozen=True)
class Identity:
    """Composite key addressing a resource within a collection."""

    group: str = ""
    version: str = ""
    kind: str = ""
    namespace: str = ""
    name: str = ""

    @classmethod
    def from_content(cls, content: Dict[str, Any]) -> "Identity":
        group, version = split_api_version(content.get("apiVersion"))
        metadata = content.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        return cls(
            group=group,
            version=version,
            kind=str(content.get("kind") or ""),
            namespace=str(metadata.get("namespace") or ""),
            name=str(metadata.get("name") or ""),
        )

    @property
    def api_version(self) -> str:
        return join_api_version(self.group, self.version)

    def matches(self, other: "Identity") -> bool:
        """Compare identities treating an empty namespace as ``default``."""

        return (
            self.group == other.group
            and self.version == other.version
            and self.kind == other.kind
            and self.name == other.name
            and (self.namespace or DEFAULT_NAMESPACE) == (other.namespace or DEFAULT_NAMESPACE)
        )

    def __str__(self) -> str:
        gvk = "/".join(part for part in (self.group, self.version, self.kind) if part)
        namespace = self.namespace or "~"
        return f"{gvk or '~'} {namespace}/{self.name or '~'}"


class Resource:
    """A declarative configuration document backed by a generic field-tree."""

    def __init__(self, content: Dict[str, Any], original_identity: Optional[Identity] = None) -> None:
        if not isinstance(content, dict):
            raise TypeError(f"Resource content must be a mapping, got {type(content).__name__}")
        self.content = content
        self.original_identity = original_identity or Identity.from_content(content)

    @property
    def identity(self) -> Identity:
        return Identity.from_content(self.content)

    @property
    def name(self) -> Optional[str]:
        return self._metadata().get("name")

    @property
    def namespace(self) -> Optional[str]:
        return self._metadata().get("namespace")

    @property
    def kind(self) -> Optional[str]:
        return self.content.get("kind")

    @property
    def api_version(self) -> Optional[str]:
        return self.content.get("apiVersion")

    @property
    def labels(self) -> Dict[str, str]:
        return dict(self._metadata().get("labels") or {})

    @property
    def annotations(self) -> Dict[str, str]:
        return dict(self._metadata().get("annotations") or {})

    def set_name(self, name: Optional[str]) -> None:
        self._set_metadata_field("name", name)

    def set_namespace(self, namespace: Optional[str]) -> None:
        self._set_metadata_field("namespace", namespace)

    def set_gvk(self, group: str, version: str, kind: str) -> None:
        api_version = join_api_version(group, version)
        if api_version:
            self.content["apiVersion"] = api_version
        else:
            self.content.pop("apiVersion", None)
        if kind:
            self.content["kind"] = kind
        else:
            self.content.pop("kind", None)

    def stamp_identity(self, identity: Identity) -> None:
        """Overwrite every identity field with the values of ``identity``."""

        self.set_gvk(identity.group, identity.version, identity.kind)
        self.set_name(identity.name)
        self.set_namespace(identity.namespace)

    def deep_copy(self) -> "Resource":
        return Resource(copy.deepcopy(self.content), original_identity=self.original_identity)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.content)

    def set_content(self, content: Dict[str, Any]) -> None:
        """Replace the field-tree in place so existing references observe the change."""

        self.content.clear()
        self.content.update(content)

    def is_empty(self) -> bool:
        return not self.content

    def _metadata(self) -> Dict[str, Any]:
        metadata = self.content.get("metadata")
        return metadata if isinstance(metadata, dict) else {}

    def _set_metadata_field(self, field: str, value: Optional[str]) -> None:
        metadata = self.content.get("metadata")
        if not isinstance(metadata, dict):
            if not value:
                return
            metadata = {}
            self.content["metadata"] = metadata
        if value:
            metadata[field] = value
        else:
            metadata.pop(field, None)
            if not metadata:
                self.content.pop("metadata", None)

    def __repr__(self) -> str:
        return f"Resource({self.identity})"
