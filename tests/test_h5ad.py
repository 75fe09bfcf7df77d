from __future__ import annotations

import anndata as ad
import h5py
import numpy as np
import pandas as pd
import pytest
import scipy.sparse as sp

from h5_builders import write_csr_group, write_frame_group, write_h5ad
from scharmonize.core.errors import MissingIndexError, MissingMatrixError, SchemaError
from scharmonize.ingest.h5ad import (
    ColumnOrder,
    column_order,
    load_h5ad,
    order_columns,
    read_metadata,
    resolve_index,
)
from scharmonize.ingest.store import open_store

CELLS = ["c0", "c1", "c2"]
GENES = ["g0", "g1", "g2", "g3"]
COUNTS = np.array(
    [
        [1, 0, 2, 0],
        [0, 3, 0, 0],
        [4, 0, 0, 5],
    ],
    dtype=np.float32,
)


def test_index_attribute_beats_index_dataset(tmp_path):
    path = tmp_path / "idx.h5"
    with h5py.File(path, "w") as f:
        grp = f.create_group("obs")
        grp.attrs["_index"] = "barcodes"
        grp.create_dataset("barcodes", data=np.array([b"a", b"b"]))
        grp.create_dataset("index", data=np.array([b"x", b"y"]))
    with open_store(path) as store:
        assert resolve_index(store, "obs") == "barcodes"


def test_index_dataset_precedence_and_missing(tmp_path):
    path = tmp_path / "idx.h5"
    with h5py.File(path, "w") as f:
        both = f.create_group("both")
        both.create_dataset("_index", data=np.array([b"a"]))
        both.create_dataset("index", data=np.array([b"x"]))
        plain = f.create_group("plain")
        plain.create_dataset("index", data=np.array([b"x"]))
        f.create_group("none").create_dataset("col", data=np.array([1]))
    with open_store(path) as store:
        assert resolve_index(store, "both") == "_index"
        assert resolve_index(store, "plain") == "index"
        with pytest.raises(MissingIndexError, match="none"):
            resolve_index(store, "none")


def test_order_columns_declared_then_natural():
    discovered = ["a", "b", "c", "d"]
    assert order_columns(discovered, ["c", "zz", "a"]) == ["c", "a", "b", "d"]
    assert order_columns(discovered, ColumnOrder.NATURAL) == discovered
    assert order_columns(discovered, []) == discovered


def test_categorical_round_trip_with_column_order(tmp_path):
    labels = ["T", "B", "T"]
    levels = ["B", "T"]
    codes = np.array([levels.index(v) for v in labels], dtype=np.int8)
    path = tmp_path / "meta.h5"
    with h5py.File(path, "w") as f:
        write_frame_group(
            f,
            "obs",
            CELLS,
            columns={"cell_type": codes, "n_counts": [3.0, 3.0, 9.0], "batch": ["x", "y", "x"]},
            categories={"cell_type": levels},
            column_order=np.array([b"n_counts", b"cell_type"]),
        )
    with open_store(path) as store:
        df = read_metadata(store, "obs")
    assert list(df.index) == CELLS
    assert list(df.columns) == ["n_counts", "cell_type", "batch"]
    assert isinstance(df["cell_type"].dtype, pd.CategoricalDtype)
    assert list(df["cell_type"].astype(str)) == labels
    assert list(df["batch"]) == ["x", "y", "x"]


def test_unparseable_column_order_falls_back_to_natural(tmp_path):
    path = tmp_path / "meta.h5"
    with h5py.File(path, "w") as f:
        write_frame_group(
            f,
            "obs",
            CELLS,
            columns={"b_col": [1, 2, 3], "a_col": [4, 5, 6]},
            column_order=np.array([7, 8]),
        )
    with open_store(path) as store:
        assert column_order(store, "obs") is ColumnOrder.NATURAL
        df = read_metadata(store, "obs")
    assert list(df.columns) == ["a_col", "b_col"]


def test_encoded_categorical_groups(tmp_path):
    path = tmp_path / "meta.h5"
    with h5py.File(path, "w") as f:
        grp = write_frame_group(f, "obs", CELLS)
        cat = grp.create_group("leiden")
        cat.attrs["encoding-type"] = "categorical"
        cat.attrs["ordered"] = False
        cat.create_dataset("codes", data=np.array([1, 0, -1], dtype=np.int8))
        cat.create_dataset("categories", data=np.array([b"0", b"1"]))
        other = grp.create_group("nullable")
        other.attrs["encoding-type"] = "nullable-integer"
        other.create_dataset("values", data=np.array([1, 2, 3]))
        other.create_dataset("mask", data=np.array([False, False, True]))
    with open_store(path) as store:
        df = read_metadata(store, "obs")
    assert list(df.columns) == ["leiden", "nullable"]
    assert str(df["nullable"].dtype) == "Int64"
    assert df["nullable"].isna().tolist() == [False, False, True]
    assert df["leiden"].iloc[0] == "1"
    assert df["leiden"].iloc[1] == "0"
    assert pd.isna(df["leiden"].iloc[2])


def test_unknown_column_group_is_schema_error(tmp_path):
    path = tmp_path / "meta.h5"
    with h5py.File(path, "w") as f:
        grp = write_frame_group(f, "obs", CELLS)
        odd = grp.create_group("odd")
        odd.attrs["encoding-type"] = "awkward-array"
        odd.create_dataset("values", data=np.array([1, 2, 3]))
    with open_store(path) as store:
        with pytest.raises(SchemaError, match="awkward-array"):
            read_metadata(store, "obs")


def test_anndata_written_file_keeps_every_obs_column(tmp_path):
    obs = pd.DataFrame(
        {
            "ct": pd.Categorical(["T", "B", "T"]),
            "s": ["x", "y", "z"],
            "flag": [True, False, True],
            "nint": pd.array([1, None, 3], dtype="Int64"),
            "nbool": pd.array([True, None, False], dtype="boolean"),
        },
        index=CELLS,
    )
    written = ad.AnnData(X=COUNTS, obs=obs, var=pd.DataFrame(index=GENES))
    path = tmp_path / "written.h5ad"
    written.write_h5ad(path)

    adata = load_h5ad(path)
    assert list(adata.obs.columns) == ["ct", "s", "flag", "nint", "nbool"]
    assert list(adata.obs["ct"].astype(str)) == ["T", "B", "T"]
    assert list(adata.obs["s"].astype(str)) == ["x", "y", "z"]
    assert adata.obs["flag"].tolist() == [True, False, True]
    assert str(adata.obs["nint"].dtype) == "Int64"
    assert adata.obs["nint"].isna().tolist() == [False, True, False]
    assert adata.obs["nint"].iloc[2] == 3
    assert str(adata.obs["nbool"].dtype) == "boolean"
    assert adata.obs["nbool"].isna().tolist() == [False, True, False]
    np.testing.assert_array_equal(adata.X.toarray(), COUNTS)


def test_column_length_mismatch_is_schema_error(tmp_path):
    path = tmp_path / "meta.h5"
    with h5py.File(path, "w") as f:
        write_frame_group(f, "obs", CELLS, columns={"short": [1, 2]})
    with open_store(path) as store:
        with pytest.raises(SchemaError, match="short"):
            read_metadata(store, "obs")


def test_load_h5ad_from_x(tmp_path):
    path = write_h5ad(
        tmp_path / "x.h5ad",
        COUNTS,
        CELLS,
        GENES,
        obs_columns={"cluster": np.array([0, 1, 0], dtype=np.int8)},
        obs_categories={"cluster": ["alpha", "beta"]},
    )
    adata = load_h5ad(path)
    assert adata.shape == (3, 4)
    assert list(adata.obs_names) == CELLS
    assert list(adata.var_names) == GENES
    assert sp.isspmatrix_csr(adata.X)
    np.testing.assert_array_equal(adata.X.toarray(), COUNTS)
    assert list(adata.obs["cluster"].astype(str)) == ["alpha", "beta", "alpha"]
    assert adata.obs.shape[0] == adata.n_obs


def test_load_h5ad_prefers_raw(tmp_path):
    raw = np.arange(15, dtype=np.float32).reshape(3, 5)
    raw_genes = [f"R{i}" for i in range(5)]
    path = write_h5ad(
        tmp_path / "raw.h5ad",
        COUNTS,
        CELLS,
        GENES,
        raw_counts=raw,
        raw_var_names=raw_genes,
    )
    adata = load_h5ad(path)
    assert list(adata.var_names) == raw_genes
    np.testing.assert_array_equal(adata.X.toarray(), raw)
    assert adata.obs.shape[1] == 0


def test_load_h5ad_dense_matrix(tmp_path):
    path = write_h5ad(tmp_path / "dense.h5ad", COUNTS, CELLS, GENES, dense=True)
    adata = load_h5ad(path)
    np.testing.assert_array_equal(adata.X.toarray(), COUNTS)


def test_load_h5ad_legacy_csc_encoding(tmp_path):
    path = tmp_path / "legacy.h5ad"
    mat = sp.csc_matrix(COUNTS)
    with h5py.File(path, "w") as f:
        grp = f.create_group("X")
        grp.attrs["h5sparse_format"] = "csc"
        grp.attrs["h5sparse_shape"] = np.array(mat.shape)
        grp.create_dataset("data", data=mat.data)
        grp.create_dataset("indices", data=mat.indices)
        grp.create_dataset("indptr", data=mat.indptr)
        write_frame_group(f, "var", GENES, index_attr=False, index_name="index")
        write_frame_group(f, "obs", CELLS)
    adata = load_h5ad(path)
    np.testing.assert_array_equal(adata.X.toarray(), COUNTS)
    assert list(adata.var_names) == GENES


def test_missing_matrix(tmp_path):
    path = tmp_path / "nomatrix.h5ad"
    with h5py.File(path, "w") as f:
        write_frame_group(f, "var", GENES)
        write_frame_group(f, "obs", CELLS)
    with pytest.raises(MissingMatrixError, match="nomatrix"):
        load_h5ad(path)


def test_compound_var_is_rejected(tmp_path):
    path = tmp_path / "compound.h5ad"
    records = np.array([(b"g0", 1), (b"g1", 2)], dtype=[("index", "S4"), ("n", "i4")])
    with h5py.File(path, "w") as f:
        write_csr_group(f, "X", COUNTS[:, :2])
        f.create_dataset("var", data=records)
        write_frame_group(f, "obs", CELLS)
    with pytest.raises(SchemaError, match="feature-level"):
        load_h5ad(path)


def test_missing_obs_group_is_rejected(tmp_path):
    path = tmp_path / "noobs.h5ad"
    with h5py.File(path, "w") as f:
        write_csr_group(f, "X", COUNTS)
        write_frame_group(f, "var", GENES)
    with pytest.raises(SchemaError, match="cell-level"):
        load_h5ad(path)


def test_unknown_matrix_encoding(tmp_path):
    path = tmp_path / "weird.h5ad"
    with h5py.File(path, "w") as f:
        grp = f.create_group("X")
        grp.attrs["encoding-type"] = "coo_matrix"
        write_frame_group(f, "var", GENES)
        write_frame_group(f, "obs", CELLS)
    with pytest.raises(SchemaError, match="coo_matrix"):
        load_h5ad(path)
