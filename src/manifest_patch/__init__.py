"""Strategic-merge and JSON patching of declarative resource collections."""

from .config import PatchConfig, StrategicMergePatchConfig, TargetSelector, TransformConfig  # noqa: F401
from .errors import ApplyError, ConfigError, NotFoundError, ParseError, PatchError  # noqa: F401
from .operations.transform import PatchStrategicMergeTransformer, PatchTransformer, run_transformers  # noqa: F401
from .resources.base import Identity, Resource  # noqa: F401
from .resources.collection import ResourceCollection  # noqa: F401

__all__ = [
    "ApplyError",
    "ConfigError",
    "Identity",
    "NotFoundError",
    "ParseError",
    "PatchConfig",
    "PatchError",
    "PatchStrategicMergeTransformer",
    "PatchTransformer",
    "Resource",
    "ResourceCollection",
    "StrategicMergePatchConfig",
    "TargetSelector",
    "TransformConfig",
    "run_transformers",
]
