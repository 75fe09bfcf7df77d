"""Load supported single-cell containers into a cells x genes AnnData.

The container format is inferred from the file extension, case-insensitively:

- ``h5``: 10x Genomics HDF5 matrix (Cell Ranger v2 and v3+). For multi-modal
  files only the first (gene expression) matrix is kept.
- ``pkl``: a pickled AnnData object, scipy sparse matrix, numpy array or
  pandas DataFrame. Bare matrices and frames are genes x cells.
- ``h5seurat``: only the RNA counts and cell metadata are read.
- ``h5ad``: see `scharmonize.ingest.h5ad`.

Every format except ``h5ad`` is passed through the minimum-presence filter
(genes in >= 1 cell, cells with >= 1 gene).
"""

from __future__ import annotations

import gc
import logging
import pickle
from pathlib import Path
from typing import Any, Callable

import anndata as ad
import pandas as pd
import scanpy as sc
import scipy.sparse as sp

from scharmonize.core.errors import (
    MissingAssayError,
    SchemaError,
    StoreAccessError,
    UnsupportedFormatError,
    UnsupportedPayloadError,
)
from scharmonize.core.types import FileFormat, FormatSpec, PayloadKind
from scharmonize.ingest.h5ad import load_h5ad
from scharmonize.ingest.h5seurat import load_h5seurat
from scharmonize.ingest.matrix import build_anndata, filter_min_presence
from scharmonize.ingest.store import open_store
from scharmonize.utils import oxford

logger = logging.getLogger(__name__)

_BY_EXTENSION = {fmt.value: fmt for fmt in FileFormat if fmt is not FileFormat.UNSUPPORTED}


def supported_extensions() -> list[str]:
    return list(_BY_EXTENSION)


def detect_format(path: str | Path) -> FormatSpec:
    """Map a file extension onto a `FileFormat`; never inspects content."""
    ext = Path(path).suffix.lower().lstrip(".")
    return FormatSpec(kind=_BY_EXTENSION.get(ext, FileFormat.UNSUPPORTED), extension=ext)


def _load_10x_h5(path: Path) -> ad.AnnData:
    with open_store(path) as store:
        roots = store.list_children("/")
    # Legacy (v2) files hold one group per genome; read the first.
    genome = None if "matrix" in roots else (roots[0] if roots else None)
    try:
        adata = sc.read_10x_h5(path, genome=genome, gex_only=True)
    except KeyError as exc:
        raise SchemaError(str(path), f"not a 10x Genomics matrix: {exc}") from exc
    adata = build_anndata(adata.X, adata.obs_names, adata.var_names, var=adata.var)
    return filter_min_presence(adata)


def classify_payload(obj: Any) -> PayloadKind:
    """Classify a deserialized object by the fields it carries."""
    if all(hasattr(obj, attr) for attr in ("X", "obs", "var", "layers")):
        return PayloadKind.ANNDATA
    if sp.issparse(obj):
        return PayloadKind.SPARSE
    if all(hasattr(obj, attr) for attr in ("columns", "index", "dtypes", "to_numpy")):
        return PayloadKind.FRAME
    dtype = getattr(obj, "dtype", None)
    if getattr(obj, "ndim", None) == 2 and getattr(dtype, "kind", None) in ("b", "i", "u", "f"):
        return PayloadKind.DENSE
    return PayloadKind.UNSUPPORTED


def _default_names(prefix: str, n: int) -> list[str]:
    return [f"{prefix}-{i}" for i in range(n)]


def _payload_to_anndata(obj: Any, path: Path) -> ad.AnnData:
    kind = classify_payload(obj)
    if kind is PayloadKind.ANNDATA:
        counts = obj.layers["counts"] if "counts" in obj.layers else obj.X
        if counts is None or 0 in counts.shape:
            raise MissingAssayError(str(path), "No RNA counts matrix present")
        return build_anndata(counts, obj.obs_names, obj.var_names, obs=obj.obs)
    if kind is PayloadKind.FRAME:
        if not all(pd.api.types.is_numeric_dtype(t) for t in obj.dtypes):
            raise UnsupportedPayloadError(str(path), "DataFrame with non-numeric columns")
        counts = sp.csr_matrix(obj.to_numpy()).T
        return build_anndata(counts, obj.columns, obj.index)
    if kind in (PayloadKind.SPARSE, PayloadKind.DENSE):
        counts = sp.csr_matrix(obj).T
        n_cells, n_genes = counts.shape
        return build_anndata(
            counts, _default_names("Cell", n_cells), _default_names("Gene", n_genes)
        )
    raise UnsupportedPayloadError(str(path), type(obj).__name__)


def _load_pickle(path: Path) -> ad.AnnData:
    try:
        obj = pd.read_pickle(path)
    except (OSError, EOFError, pickle.UnpicklingError) as exc:
        raise StoreAccessError(str(path), str(exc)) from exc
    except (ImportError, AttributeError, TypeError) as exc:
        # The pickle references a class that cannot be resolved here.
        name = getattr(exc, "name", None) or type(exc).__name__
        raise UnsupportedPayloadError(str(path), f"unresolvable {name}") from exc
    return filter_min_presence(_payload_to_anndata(obj, path))


def _load_h5seurat(path: Path) -> ad.AnnData:
    return filter_min_presence(load_h5seurat(path))


_LOADERS: dict[FileFormat, Callable[[Path], ad.AnnData]] = {
    FileFormat.TENX_H5: _load_10x_h5,
    FileFormat.PICKLE: _load_pickle,
    FileFormat.H5SEURAT: _load_h5seurat,
    FileFormat.H5AD: load_h5ad,
}


def load_file_input(path: str | Path) -> ad.AnnData:
    """Load any supported file into a cells x genes AnnData with CSR counts."""
    spec = detect_format(path)
    try:
        loader = _LOADERS.get(spec.kind)
        if loader is None:
            raise UnsupportedFormatError(
                spec.extension,
                supported=oxford(*supported_extensions(), join="or"),
            )
        adata = loader(Path(path))
    finally:
        gc.collect()
    logger.info(
        "Loaded %s file %s: %d cells x %d genes",
        spec.extension,
        path,
        adata.n_obs,
        adata.n_vars,
    )
    return adata
