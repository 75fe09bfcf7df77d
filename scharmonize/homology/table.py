"""Loading the human/mouse homology table from a path or URL."""

from __future__ import annotations

import io
import logging
import pickle
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

import pandas as pd
import requests

from scharmonize.core.errors import HomologyLookupError
from scharmonize.net import DEFAULT_TIMEOUT, fetch_bytes, is_online

logger = logging.getLogger(__name__)

_COMPRESSION = {".gz": "gzip", ".bz2": "bz2", ".xz": "xz", ".zip": "zip"}
_TEXT_SEPARATORS = {".csv": ",", ".tsv": "\t", ".txt": "\t"}


def is_local(location: str) -> bool:
    """True when `location` has no URI scheme (a one-letter scheme is a drive)."""
    scheme = urlparse(str(location)).scheme
    return scheme == "" or len(scheme) == 1


def _split_suffixes(name: str) -> tuple[str, str | None]:
    suffixes = [s.lower() for s in PurePosixPath(name).suffixes]
    compression = None
    if suffixes and suffixes[-1] in _COMPRESSION:
        compression = _COMPRESSION[suffixes.pop()]
    return (suffixes[-1] if suffixes else ""), compression


def _read_table(source, name: str) -> object:
    suffix, compression = _split_suffixes(name)
    if suffix in _TEXT_SEPARATORS:
        return pd.read_csv(
            source,
            sep=_TEXT_SEPARATORS[suffix],
            dtype=str,
            compression=compression,
        )
    return pd.read_pickle(source, compression=compression)


def load_homology_table(
    location: str | Path,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> pd.DataFrame:
    """Read the homology table from a local file or a URL.

    Pickled data frames are read by default; ``.csv``/``.tsv`` (optionally
    compressed) are read as text with all values kept as strings.
    """
    location = str(location)
    try:
        if is_local(location):
            path = Path(location)
            if not path.exists():
                raise HomologyLookupError(location, "Homolog file doesn't exist at path provided")
            table = _read_table(path, path.name)
        else:
            if not is_online(location, timeout=timeout):
                raise HomologyLookupError(location, "Cannot find the homolog table at the URL given")
            payload = io.BytesIO(fetch_bytes(location, timeout=timeout))
            table = _read_table(payload, urlparse(location).path)
    except (OSError, ValueError, EOFError, pickle.UnpicklingError, requests.RequestException) as exc:
        raise HomologyLookupError(location, f"Cannot read homolog table ({exc})") from exc

    if not isinstance(table, pd.DataFrame):
        raise HomologyLookupError(
            location, f"Homolog table must be a data frame, got {type(table).__name__}"
        )
    if table.shape[1] == 0:
        raise HomologyLookupError(location, "Homolog table has no columns")
    logger.info("Loaded homology table with %d rows and %d columns", *table.shape)
    return table
