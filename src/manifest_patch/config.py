"""Configuration models for the patch transformers."""
from __future__ import annotations

from pathlib import Path
from typing import Annotated, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .errors import ParseError


class ConfigModel(BaseModel):
    """Shared base model accepting both wire (camelCase) and attribute names."""

    model_config = ConfigDict(populate_by_name=True)


class TargetSelector(ConfigModel):
    """Selects the resources a patch fans out to; empty fields match anything."""

    group: Optional[str] = None
    version: Optional[str] = None
    kind: Optional[str] = None
    namespace: Optional[str] = None
    name: Optional[str] = None
    label_selector: Optional[str] = Field(default=None, alias="labelSelector")
    annotation_selector: Optional[str] = Field(default=None, alias="annotationSelector")


class StrategicMergePatchConfig(ConfigModel):
    """Several strategic-merge patches, each from literal text or a file reference."""

    kind: Literal["PatchStrategicMergeTransformer"] = "PatchStrategicMergeTransformer"
    paths: List[str] = Field(default_factory=list)
    patches: str = ""
    yaml_support: bool = Field(default=True, alias="yamlSupport")
    merge_keys: Dict[str, str] = Field(default_factory=dict, alias="mergeKeys")


class PatchConfig(ConfigModel):
    """A single strategic-merge or JSON patch, inline or by reference, with an optional target."""

    kind: Literal["PatchTransformer"] = "PatchTransformer"
    path: str = ""
    patch: str = ""
    target: Optional[TargetSelector] = None
    yaml_support: bool = Field(default=True, alias="yamlSupport")
    merge_keys: Dict[str, str] = Field(default_factory=dict, alias="mergeKeys")


TransformerConfig = Annotated[
    Union[StrategicMergePatchConfig, PatchConfig],
    Field(discriminator="kind"),
]


class TransformConfig(ConfigModel):
    """An ordered list of transformers, each run as its own pass."""

    transformers: List[TransformerConfig] = Field(default_factory=list)

    @classmethod
    def from_file(cls, path: str | Path) -> "TransformConfig":
        document_path = Path(path)
        try:
            data = yaml.safe_load(document_path.read_text())
        except yaml.YAMLError as exc:
            raise ParseError(f"invalid configuration YAML in {document_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError("Configuration file must contain a mapping at the top level.")
        return cls.model_validate(data)
