"""Minimal reader for AnnData H5AD files.

Only the counts matrix, feature names and cell-level metadata are read:

- the counts matrix comes from ``/raw/X``, else ``/X``;
- feature names come from ``/raw/var`` (counts from ``/raw/X``) or ``/var``;
- cell names and metadata come from ``/obs``.

Metadata must be stored as HDF5 groups; compound-dataset layouts written by
AnnData < 0.7 are rejected. Row names are taken from the dataset named by the
``_index`` attribute, else a ``_index`` dataset, else an ``index`` dataset.
Categorical columns are rebuilt from ``__categories`` levels (AnnData 0.7) or
from ``codes``/``categories`` groups (AnnData >= 0.8). Nullable integer,
boolean and string columns are rebuilt from ``values``/``mask`` groups; any
other column group is a ``SchemaError``.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any

import anndata as ad
import numpy as np
import pandas as pd

from scharmonize.core.errors import (
    MissingIndexError,
    MissingMatrixError,
    SchemaError,
    StoreAccessError,
)
from scharmonize.ingest.matrix import build_anndata, read_matrix
from scharmonize.ingest.store import HierarchicalStoreReader, open_store

logger = logging.getLogger(__name__)

CATEGORIES_GROUP = "__categories"


class ColumnOrder(Enum):
    """Sentinel for "keep the store's enumeration order"."""

    NATURAL = "natural"


def resolve_index(store: HierarchicalStoreReader, group: str) -> str:
    """Name of the dataset holding row labels for `group`."""
    attr = store.read_attribute(group, "_index")
    if attr is not None:
        return str(attr)
    for candidate in ("_index", "index"):
        if store.is_dataset(f"{group}/{candidate}"):
            return candidate
    raise MissingIndexError(group)


def read_row_names(store: HierarchicalStoreReader, group: str) -> np.ndarray:
    index = resolve_index(store, group)
    return store.read_dataset(f"{group}/{index}").astype(str)


def column_order(
    store: HierarchicalStoreReader,
    group: str,
    attr_name: str = "column-order",
) -> list[str] | ColumnOrder:
    """Declared column order of `group`, or `ColumnOrder.NATURAL`.

    Falls back to natural order when the attribute is absent, unreadable or
    not a list of strings.
    """
    try:
        raw = store.read_attribute(group, attr_name)
    except StoreAccessError as exc:
        logger.debug("Ignoring unreadable '%s' on %s: %s", attr_name, group, exc)
        return ColumnOrder.NATURAL
    if raw is None:
        return ColumnOrder.NATURAL
    if isinstance(raw, str):
        return [raw]
    values = np.asarray(raw).ravel()
    if values.size == 0:
        return []
    if values.dtype == object and all(isinstance(v, str) for v in values):
        return [str(v) for v in values]
    logger.debug("Ignoring unparseable '%s' on %s", attr_name, group)
    return ColumnOrder.NATURAL


def order_columns(
    discovered: list[str],
    order: list[str] | ColumnOrder,
) -> list[str]:
    """Declared columns first (declared order), then the rest (natural order)."""
    if order is ColumnOrder.NATURAL:
        return list(discovered)
    present = set(discovered)
    declared = [c for c in dict.fromkeys(order) if c in present]
    mentioned = set(order)
    return declared + [c for c in discovered if c not in mentioned]


def _from_codes(codes: np.ndarray, levels: np.ndarray, path: str) -> pd.Categorical:
    codes = np.asarray(codes)
    if codes.dtype.kind not in ("i", "u"):
        raise SchemaError(path, "categorical codes must be integers")
    try:
        return pd.Categorical.from_codes(codes.astype(np.int64), categories=pd.Index(levels))
    except ValueError as exc:
        raise SchemaError(path, f"invalid categorical column: {exc}") from exc


def _read_encoded_categorical(
    store: HierarchicalStoreReader, path: str
) -> pd.Categorical | None:
    children = set(store.list_children(path))
    if not {"codes", "categories"} <= children:
        return None
    values = _from_codes(
        store.read_dataset(f"{path}/codes"),
        store.read_dataset(f"{path}/categories"),
        path,
    )
    if bool(store.read_attribute(path, "ordered")):
        values = values.as_ordered()
    return values


_NULLABLE_ENCODINGS = ("nullable-integer", "nullable-boolean", "nullable-string-array")


def _read_nullable(store: HierarchicalStoreReader, path: str, encoding: str) -> Any:
    """Rebuild a pandas masked array from `values` and `mask` (True = missing)."""
    for part in ("values", "mask"):
        if not store.is_dataset(f"{path}/{part}"):
            raise SchemaError(path, f"nullable column has no '{part}' dataset")
    values = store.read_dataset(f"{path}/values")
    mask = store.read_dataset(f"{path}/mask").astype(bool)
    if values.shape != mask.shape:
        raise SchemaError(path, "nullable column values and mask differ in length")
    try:
        if encoding == "nullable-integer":
            return pd.arrays.IntegerArray(values, mask)
        if encoding == "nullable-boolean":
            return pd.arrays.BooleanArray(values.astype(bool), mask)
        strings = values.astype(object)
        strings[mask] = pd.NA
        return pd.array(strings, dtype="string")
    except (TypeError, ValueError) as exc:
        raise SchemaError(path, f"invalid {encoding} column: {exc}") from exc


def _read_column_group(store: HierarchicalStoreReader, path: str) -> Any:
    encoding = store.read_attribute(path, "encoding-type")
    if encoding in _NULLABLE_ENCODINGS:
        return _read_nullable(store, path, str(encoding))
    values = _read_encoded_categorical(store, path)
    if values is None:
        raise SchemaError(path, f"unsupported column encoding '{encoding}'")
    return values


def read_metadata(store: HierarchicalStoreReader, group: str) -> pd.DataFrame:
    """Rebuild a metadata frame from a group of per-column datasets."""
    index_name = resolve_index(store, group)
    row_names = store.read_dataset(f"{group}/{index_name}").astype(str)

    levels: dict[str, np.ndarray] = {}
    categories_path = f"{group}/{CATEGORIES_GROUP}"
    if store.is_group(categories_path):
        for name in store.list_children(categories_path):
            levels[name] = store.read_dataset(f"{categories_path}/{name}")

    columns = order_columns(store.list_children(group), column_order(store, group))
    columns = [c for c in columns if c not in (CATEGORIES_GROUP, index_name)]

    data: dict[str, Any] = {}
    for col in columns:
        path = f"{group}/{col}"
        if store.is_group(path):
            values = _read_column_group(store, path)
        else:
            values = store.read_dataset(path)
            if values.ndim != 1:
                raise SchemaError(path, f"expected a 1-D column, got shape {values.shape}")
            if col in levels:
                values = _from_codes(values, levels[col], path)
        if len(values) != row_names.size:
            raise SchemaError(
                path, f"column has {len(values)} values but the index has {row_names.size}"
            )
        data[col] = values
    return pd.DataFrame(data, index=pd.Index(row_names))


def load_h5ad(path: str | Path) -> ad.AnnData:
    """Load counts, feature names and cell metadata from an H5AD file."""
    with open_store(path) as store:
        if store.exists("raw/X"):
            matrix_path, var_path = "raw/X", "raw/var"
        elif store.exists("X"):
            matrix_path, var_path = "X", "var"
        else:
            raise MissingMatrixError(str(path))

        if not store.is_group(var_path):
            raise SchemaError(var_path, "Cannot find feature-level metadata group")
        if not store.is_group("obs"):
            raise SchemaError("obs", "Cannot find cell-level metadata group")

        logger.info("Reading counts from /%s", matrix_path)
        counts = read_matrix(store, matrix_path)
        feature_names = read_row_names(store, var_path)
        metadata = read_metadata(store, "obs")

    return build_anndata(
        counts,
        obs_names=metadata.index,
        var_names=feature_names,
        obs=metadata,
    )
