"""Counts-only reader for h5Seurat files.

Only the ``RNA`` assay's ``counts`` layer, its feature names, the cell names
and ``meta.data`` are read. Reductions, graphs, images and the other assays
are never opened.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import anndata as ad
import numpy as np
import pandas as pd
import scipy.sparse as sp

from scharmonize.core.errors import MissingAssayError, SchemaError
from scharmonize.ingest.h5ad import column_order, order_columns
from scharmonize.ingest.matrix import build_anndata, read_compressed
from scharmonize.ingest.store import HierarchicalStoreReader, open_store

logger = logging.getLogger(__name__)

DEFAULT_ASSAY = "RNA"


def _read_counts(
    store: HierarchicalStoreReader, path: str, n_features: int, n_cells: int
) -> sp.csr_matrix:
    # Seurat stores features x cells; sparse layers are CSC over cells.
    if store.is_dataset(path):
        dense = store.read_dataset(path)
        if dense.shape != (n_cells, n_features):
            raise SchemaError(path, f"dense counts have shape {dense.shape}")
        return sp.csr_matrix(dense)
    dims = store.read_attribute(path, "dims")
    if dims is None:
        dims = (n_features, n_cells)
    dims = tuple(int(d) for d in np.asarray(dims).ravel())
    if dims != (n_features, n_cells):
        raise SchemaError(
            path, f"counts dims {dims} do not match {n_features} features x {n_cells} cells"
        )
    return read_compressed(store, path, "csc", dims).T.tocsr()


def _read_factor(store: HierarchicalStoreReader, path: str) -> pd.Categorical | None:
    children = set(store.list_children(path))
    if not {"levels", "values"} <= children:
        return None
    values = np.asarray(store.read_dataset(f"{path}/values"))
    if values.dtype.kind not in ("i", "u"):
        raise SchemaError(path, "factor values must be integers")
    codes = values.astype(np.int64) - 1
    codes[codes < 0] = -1
    levels = store.read_dataset(f"{path}/levels")
    try:
        return pd.Categorical.from_codes(codes, categories=pd.Index(levels))
    except ValueError as exc:
        raise SchemaError(path, f"invalid factor: {exc}") from exc


def _read_meta_data(
    store: HierarchicalStoreReader, group: str, n_cells: int
) -> pd.DataFrame:
    columns = order_columns(
        store.list_children(group), column_order(store, group, attr_name="colnames")
    )
    data: dict[str, Any] = {}
    for col in columns:
        if col == "_index":
            continue
        path = f"{group}/{col}"
        if store.is_group(path):
            values = _read_factor(store, path)
            if values is None:
                logger.debug("Skipping unsupported meta.data group %s", path)
                continue
        else:
            values = store.read_dataset(path)
            if values.ndim != 1:
                raise SchemaError(path, f"expected a 1-D column, got shape {values.shape}")
        if len(values) != n_cells:
            raise SchemaError(path, f"column has {len(values)} values but there are {n_cells} cells")
        data[col] = values
    return pd.DataFrame(data, index=pd.RangeIndex(n_cells))


def load_h5seurat(path: str | Path) -> ad.AnnData:
    """Load the default assay's counts and cell metadata from an h5Seurat file."""
    with open_store(path) as store:
        if not store.is_group("assays") or DEFAULT_ASSAY not in store.list_children("assays"):
            raise MissingAssayError(
                str(path), f"Cannot find the {DEFAULT_ASSAY} assay in this h5Seurat file"
            )
        assay = f"assays/{DEFAULT_ASSAY}"
        if "counts" not in store.list_children(assay):
            raise MissingAssayError(str(path), f"No {DEFAULT_ASSAY} counts matrix provided")
        if not store.is_dataset(f"{assay}/features") or not store.is_dataset("cell.names"):
            raise SchemaError(str(path), "feature or cell names are missing")

        features = store.read_dataset(f"{assay}/features")
        cells = store.read_dataset("cell.names")
        counts = _read_counts(store, f"{assay}/counts", features.size, cells.size)
        if store.is_group("meta.data"):
            metadata = _read_meta_data(store, "meta.data", cells.size)
        else:
            metadata = None

    return build_anndata(counts, obs_names=cells, var_names=features, obs=metadata)
