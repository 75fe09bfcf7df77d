"""Read-only access to HDF5-backed hierarchical stores."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import h5py
import numpy as np

from scharmonize.core.errors import SchemaError, StoreAccessError

logger = logging.getLogger(__name__)

_H5_READ_ERRORS = (OSError, RuntimeError, ValueError)


def _decode(value: Any) -> Any:
    if isinstance(value, (bytes, np.bytes_)):
        return value.decode("utf-8")
    if isinstance(value, np.ndarray):
        if value.dtype.kind in ("S", "O"):
            out = np.array([_decode(v) for v in value.ravel()], dtype=object)
            return out.reshape(value.shape)
        return value
    if isinstance(value, np.generic):
        return value.item()
    return value


class HierarchicalStoreReader:
    """Path-addressed reads over an open `h5py.File`.

    Paths are slash-delimited and relative to the file root. The reader never
    writes and never owns the handle; use `open_store` to get one.
    """

    def __init__(self, handle: h5py.File, path: str | Path) -> None:
        self._handle = handle
        self.path = str(path)

    def _check_open(self) -> None:
        if not self._handle:
            raise StoreAccessError(self.path, "store is closed")

    def _node(self, path: str):
        self._check_open()
        if not self.exists(path):
            raise SchemaError(f"{self.path}:{path}", "node does not exist")
        try:
            return self._handle[path]
        except _H5_READ_ERRORS as exc:
            raise StoreAccessError(self.path, f"cannot open '{path}': {exc}") from exc

    def exists(self, path: str) -> bool:
        """Check a path one segment at a time, stopping at the first miss."""
        self._check_open()
        node = self._handle
        for segment in (s for s in str(path).split("/") if s):
            if not isinstance(node, h5py.Group):
                return False
            try:
                if segment not in node:
                    return False
                node = node[segment]
            except _H5_READ_ERRORS as exc:
                raise StoreAccessError(self.path, f"cannot open '{path}': {exc}") from exc
        return True

    def is_group(self, path: str) -> bool:
        return self.exists(path) and isinstance(self._handle[path], h5py.Group)

    def is_dataset(self, path: str) -> bool:
        return self.exists(path) and isinstance(self._handle[path], h5py.Dataset)

    def read_attribute(self, path: str, name: str) -> Any | None:
        """Return a decoded attribute value, or None when it or `path` is absent."""
        if not self.exists(path):
            return None
        node = self._node(path)
        try:
            if name not in node.attrs:
                return None
            return _decode(node.attrs[name])
        except _H5_READ_ERRORS as exc:
            raise StoreAccessError(
                self.path, f"cannot read attribute '{name}' of '{path}': {exc}"
            ) from exc

    def read_dataset(self, path: str) -> np.ndarray:
        """Read a full dataset; string data comes back as `str` objects."""
        node = self._node(path)
        if not isinstance(node, h5py.Dataset):
            raise SchemaError(f"{self.path}:{path}", "expected a dataset, found a group")
        try:
            if h5py.check_string_dtype(node.dtype) is not None:
                values = node.asstr()[()]
            else:
                values = node[()]
        except _H5_READ_ERRORS as exc:
            raise StoreAccessError(self.path, f"cannot read '{path}': {exc}") from exc
        return np.asarray(_decode(values))

    def list_children(self, path: str) -> list[str]:
        node = self._node(path)
        if not isinstance(node, h5py.Group):
            raise SchemaError(f"{self.path}:{path}", "expected a group, found a dataset")
        return [str(k) for k in node.keys()]


@contextmanager
def open_store(path: str | Path) -> Iterator[HierarchicalStoreReader]:
    """Open `path` read-only; the handle is closed on every exit path."""
    try:
        handle = h5py.File(path, "r")
    except OSError as exc:
        raise StoreAccessError(str(path), str(exc)) from exc
    logger.debug("Opened store %s", path)
    try:
        yield HierarchicalStoreReader(handle, path)
    finally:
        handle.close()
