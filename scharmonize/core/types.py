"""Typed containers for ingestion and identifier harmonization."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FileFormat(Enum):
    """Input container formats, keyed by lower-case file extension."""

    TENX_H5 = "h5"
    PICKLE = "pkl"
    H5SEURAT = "h5seurat"
    H5AD = "h5ad"
    UNSUPPORTED = ""


@dataclass(frozen=True)
class FormatSpec:
    """Result of extension-based format detection.

    `extension` is the raw (lower-cased) extension, kept for error reporting
    when `kind` is `FileFormat.UNSUPPORTED`.
    """

    kind: FileFormat
    extension: str


class PayloadKind(Enum):
    """Accepted shapes of a pickled payload."""

    ANNDATA = "anndata"
    SPARSE = "sparse"
    DENSE = "dense"
    FRAME = "frame"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class DetectionResult:
    """Identifier vocabulary and organism inferred for a list of gene names.

    - `matched_column`: homology-table column with maximal overlap.
    - `idtype`: `matched_column` without its species suffix.
    """

    idtype: str
    species: str
    matched_column: str

    @property
    def label(self) -> str:
        return f"{self.idtype}.{self.species}"


@dataclass(frozen=True)
class RemapReport:
    """Coverage summary of one feature remapping."""

    n_found: int
    n_total: int
    n_kept: int
    source: str
    target: str

    @property
    def remapped(self) -> bool:
        return self.source != self.target
