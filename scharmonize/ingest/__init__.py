"""Readers for on-disk single-cell containers."""

from scharmonize.ingest.formats import detect_format, load_file_input
from scharmonize.ingest.h5ad import load_h5ad, read_metadata, resolve_index
from scharmonize.ingest.h5seurat import load_h5seurat
from scharmonize.ingest.store import HierarchicalStoreReader, open_store

__all__ = [
    "HierarchicalStoreReader",
    "open_store",
    "resolve_index",
    "read_metadata",
    "load_h5ad",
    "load_h5seurat",
    "detect_format",
    "load_file_input",
]
