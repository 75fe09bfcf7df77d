"""Identifier-vocabulary and species detection against a homology table."""

from __future__ import annotations

import logging
import re
from typing import Iterable

import numpy as np
import pandas as pd

from scharmonize.config import DEFAULT_SAMPLE_SIZE
from scharmonize.core.types import DetectionResult

logger = logging.getLogger(__name__)

# Human (ENSG...) and mouse (ENSMUS...) stable IDs may carry a ".<version>".
_VERSIONED_ID = re.compile(r"^((?:ENSG|ENSMUS).*)\..*$", re.DOTALL)
_SPECIES_SUFFIX = re.compile(r"\.mouse|\.human")

DISPLAY_NAMES: dict[str, str] = {
    "Gene.stable.ID": "ENSEMBL gene",
    "Transcript.stable.ID": "ENSEMBL transcript",
    "Gene.name": "gene name",
    "Transcript.name": "transcript name",
}


def strip_version(name: str) -> str:
    """Drop the version suffix from an Ensembl stable ID; other names pass through.

    >>> strip_version("ENSG00000141510.17")
    'ENSG00000141510'
    >>> strip_version("TP53")
    'TP53'
    """
    match = _VERSIONED_ID.match(name)
    return match.group(1) if match else name


def strip_versions(names: Iterable[object]) -> list[str]:
    out = []
    for name in names:
        if name is None or (isinstance(name, float) and np.isnan(name)):
            continue
        stripped = strip_version(str(name))
        if stripped != "":
            out.append(stripped)
    return out


def display_name(idtype: str) -> str:
    return DISPLAY_NAMES.get(idtype, idtype)


def _sample(names: list[str], size: int, seed: int | None) -> set[str]:
    if len(names) <= size:
        return set(names)
    rng = np.random.default_rng(seed)
    picked = rng.choice(len(names), size=size, replace=False)
    return {names[i] for i in picked}


def column_overlaps(table: pd.DataFrame, names: set[str]) -> dict[str, int]:
    """Number of distinct values of each column found in `names`."""
    overlaps = {}
    for col in table.columns:
        values = set(table[col].dropna().astype(str))
        overlaps[str(col)] = len(values & names)
    return overlaps


def detect_idtype(
    names: Iterable[object],
    table: pd.DataFrame,
    *,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    seed: int | None = None,
) -> DetectionResult:
    """Infer id type and species of `names` by maximal column overlap.

    Up to `sample_size` names are sampled without replacement; pass `seed` for
    reproducible results on longer lists. Ties go to the first column in table
    order. Detection never fails on poor overlap: with no overlap at all the
    first column is returned.
    """
    if table.shape[1] == 0:
        raise ValueError("Homology table has no columns.")
    if int(sample_size) <= 0:
        raise ValueError("sample_size must be a positive integer.")

    sample = _sample(strip_versions(names), int(sample_size), seed)
    overlaps = column_overlaps(table, sample)
    best = max(overlaps, key=overlaps.__getitem__)
    if overlaps[best] == 0:
        logger.warning(
            "No homology-table column overlaps the %d sampled names; defaulting to '%s'.",
            len(sample),
            best,
        )

    species = "mouse" if ".mouse" in best else "human"
    idtype = _SPECIES_SUFFIX.sub("", best)
    return DetectionResult(idtype=idtype, species=species, matched_column=best)
