from __future__ import annotations

import h5py
import numpy as np
import pytest

from scharmonize.core.errors import SchemaError, StoreAccessError
from scharmonize.ingest.store import HierarchicalStoreReader, open_store


@pytest.fixture()
def store_path(tmp_path):
    path = tmp_path / "store.h5"
    with h5py.File(path, "w") as f:
        grp = f.create_group("obs")
        grp.attrs["_index"] = "cell_id"
        grp.attrs["codes"] = np.array([b"a", b"b"])
        grp.create_dataset("cell_id", data=np.array([b"c0", b"c1"]))
        grp.create_dataset("n_genes", data=np.array([3, 5]))
        f.create_dataset("X", data=np.eye(2))
    return path


def test_exists_walks_segments(store_path):
    with open_store(store_path) as store:
        assert store.exists("obs")
        assert store.exists("obs/cell_id")
        assert not store.exists("raw/X")
        assert not store.exists("obs/missing/deeper")
        # A dataset cannot have children.
        assert not store.exists("X/data")


def test_node_kinds_and_children(store_path):
    with open_store(store_path) as store:
        assert store.is_group("obs")
        assert not store.is_group("X")
        assert store.is_dataset("X")
        assert not store.is_dataset("nope")
        assert store.list_children("obs") == ["cell_id", "n_genes"]
        assert sorted(store.list_children("/")) == ["X", "obs"]


def test_attributes_are_decoded(store_path):
    with open_store(store_path) as store:
        assert store.read_attribute("obs", "_index") == "cell_id"
        assert list(store.read_attribute("obs", "codes")) == ["a", "b"]
        assert store.read_attribute("obs", "missing") is None
        assert store.read_attribute("raw/var", "_index") is None


def test_datasets_decode_strings(store_path):
    with open_store(store_path) as store:
        names = store.read_dataset("obs/cell_id")
        assert list(names) == ["c0", "c1"]
        assert all(isinstance(v, str) for v in names)
        np.testing.assert_array_equal(store.read_dataset("obs/n_genes"), [3, 5])


def test_wrong_node_kind_is_schema_error(store_path):
    with open_store(store_path) as store:
        with pytest.raises(SchemaError):
            store.read_dataset("obs")
        with pytest.raises(SchemaError):
            store.list_children("X")
        with pytest.raises(SchemaError):
            store.read_dataset("obs/missing")


def test_closed_store_raises_store_access_error(store_path):
    with open_store(store_path) as store:
        kept: HierarchicalStoreReader = store
    with pytest.raises(StoreAccessError, match="closed"):
        kept.exists("obs")


def test_handle_released_when_body_raises(store_path):
    with pytest.raises(RuntimeError):
        with open_store(store_path) as store:
            kept = store
            raise RuntimeError("boom")
    with pytest.raises(StoreAccessError):
        kept.read_dataset("X")


def test_missing_or_corrupt_file(tmp_path):
    with pytest.raises(StoreAccessError):
        with open_store(tmp_path / "absent.h5"):
            pass
    bad = tmp_path / "bad.h5"
    bad.write_bytes(b"not an hdf5 file")
    with pytest.raises(StoreAccessError) as excinfo:
        with open_store(bad):
            pass
    assert str(bad) in str(excinfo.value)
