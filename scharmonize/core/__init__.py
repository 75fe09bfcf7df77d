"""Core types and errors."""

from scharmonize.core.errors import (
    HomologyLookupError,
    MissingAssayError,
    MissingIndexError,
    MissingMatrixError,
    SchemaError,
    ScHarmonizeError,
    StoreAccessError,
    UnsupportedFormatError,
    UnsupportedPayloadError,
)
from scharmonize.core.types import (
    DetectionResult,
    FileFormat,
    FormatSpec,
    PayloadKind,
    RemapReport,
)

__all__ = [
    "ScHarmonizeError",
    "StoreAccessError",
    "SchemaError",
    "MissingIndexError",
    "MissingMatrixError",
    "MissingAssayError",
    "UnsupportedPayloadError",
    "UnsupportedFormatError",
    "HomologyLookupError",
    "DetectionResult",
    "FileFormat",
    "FormatSpec",
    "PayloadKind",
    "RemapReport",
]
