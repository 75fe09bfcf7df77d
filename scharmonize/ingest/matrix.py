"""Counts-matrix decoding and AnnData assembly shared by the loaders."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import anndata as ad
import numpy as np
import pandas as pd
import scanpy as sc
import scipy.sparse as sp

from scharmonize.core.errors import SchemaError
from scharmonize.ingest.store import HierarchicalStoreReader

logger = logging.getLogger(__name__)

_SPARSE_FORMATS = {
    "csr_matrix": "csr",
    "csc_matrix": "csc",
    "csr": "csr",
    "csc": "csc",
}


def read_compressed(
    store: HierarchicalStoreReader,
    path: str,
    fmt: str,
    shape: Sequence[int],
) -> sp.csr_matrix:
    """Assemble a CSR/CSC matrix from `data`, `indices` and `indptr` children."""
    parts = {}
    for name in ("data", "indices", "indptr"):
        child = f"{path}/{name}"
        if not store.is_dataset(child):
            raise SchemaError(child, "sparse matrix component is missing")
        parts[name] = store.read_dataset(child)
    cls = sp.csr_matrix if fmt == "csr" else sp.csc_matrix
    try:
        mat = cls(
            (parts["data"], parts["indices"], parts["indptr"]),
            shape=tuple(int(s) for s in shape),
        )
    except ValueError as exc:
        raise SchemaError(path, f"inconsistent sparse matrix: {exc}") from exc
    return mat.tocsr()


def read_matrix(store: HierarchicalStoreReader, path: str) -> sp.csr_matrix:
    """Read an AnnData-encoded matrix (dense dataset or sparse group) as CSR."""
    if store.is_dataset(path):
        dense = store.read_dataset(path)
        if dense.ndim != 2:
            raise SchemaError(path, f"expected a 2-D matrix, got {dense.ndim} dimension(s)")
        return sp.csr_matrix(dense)

    encoding = store.read_attribute(path, "encoding-type")
    if encoding is None:
        encoding = store.read_attribute(path, "h5sparse_format")
    fmt = _SPARSE_FORMATS.get(str(encoding))
    if fmt is None:
        raise SchemaError(path, f"unsupported matrix encoding '{encoding}'")

    shape = store.read_attribute(path, "shape")
    if shape is None:
        shape = store.read_attribute(path, "h5sparse_shape")
    if shape is None or np.asarray(shape).size != 2:
        raise SchemaError(path, "sparse matrix has no usable shape attribute")
    return read_compressed(store, path, fmt, np.asarray(shape).ravel())


def _as_names(values: Any) -> pd.Index:
    return pd.Index(np.asarray(values).astype(str).ravel())


def build_anndata(
    counts,
    obs_names: Any,
    var_names: Any,
    obs: pd.DataFrame | None = None,
    var: pd.DataFrame | None = None,
) -> ad.AnnData:
    """Create a cells x genes AnnData with CSR counts and unique names.

    `obs` is attached only when it has at least one column; its rows must
    already be in `obs_names` order.
    """
    X = sp.csr_matrix(counts)
    obs_index = _as_names(obs_names)
    var_index = _as_names(var_names)
    if X.shape != (obs_index.size, var_index.size):
        raise SchemaError(
            "counts",
            f"matrix shape {X.shape} does not match {obs_index.size} cells "
            f"x {var_index.size} features",
        )

    if obs is not None and obs.shape[1] > 0:
        if obs.shape[0] != obs_index.size:
            raise SchemaError("obs", "cell metadata rows do not match the matrix")
        obs_frame = obs.copy()
        obs_frame.index = obs_index
    else:
        obs_frame = pd.DataFrame(index=obs_index)

    if var is not None:
        var_frame = var.copy()
        var_frame.index = var_index
    else:
        var_frame = pd.DataFrame(index=var_index)

    adata = ad.AnnData(X=X, obs=obs_frame, var=var_frame)
    if not adata.var_names.is_unique:
        logger.warning("Non-unique features present in the input matrix, making unique")
        adata.var_names_make_unique()
    if not adata.obs_names.is_unique:
        logger.warning("Non-unique cell names present in the input matrix, making unique")
        adata.obs_names_make_unique()
    return adata


def filter_min_presence(adata: ad.AnnData) -> ad.AnnData:
    """Keep cells with >= 1 detected gene, then genes detected in >= 1 cell."""
    n_obs, n_vars = adata.n_obs, adata.n_vars
    cell_mask, _ = sc.pp.filter_cells(adata, min_genes=1, inplace=False)
    adata = adata[cell_mask].copy()
    gene_mask, _ = sc.pp.filter_genes(adata, min_cells=1, inplace=False)
    adata = adata[:, gene_mask].copy()
    if adata.n_obs != n_obs or adata.n_vars != n_vars:
        logger.info(
            "Presence filter kept %d/%d cells and %d/%d genes",
            adata.n_obs,
            n_obs,
            adata.n_vars,
            n_vars,
        )
    return adata
