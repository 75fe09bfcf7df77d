"""Convert query gene identifiers to the reference's vocabulary and species."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable

import anndata as ad
import numpy as np
import pandas as pd

from scharmonize.config import HarmonizeConfig
from scharmonize.core.types import DetectionResult, RemapReport
from scharmonize.homology.detect import detect_idtype, display_name, strip_version
from scharmonize.homology.table import load_homology_table
from scharmonize.ingest.matrix import build_anndata

logger = logging.getLogger(__name__)


def describe_conversion(query: DetectionResult, reference: DetectionResult) -> str:
    return (
        f"Converted {query.species} {display_name(query.idtype)} IDs to "
        f"{reference.species} {display_name(reference.idtype)} IDs"
    )


def _first_wins_lookup(table: pd.DataFrame, source: str, target: str) -> pd.Series:
    """Target values indexed by unique source values; first row wins."""
    for col in (source, target):
        if col not in table.columns:
            raise KeyError(f"Column '{col}' not found in homology table.")
    rows = table.loc[table[source].notna(), [source, target]]
    keys = rows[source].astype(str)
    rows = rows.loc[~keys.duplicated(keep="first")]
    return pd.Series(rows[target].to_numpy(), index=pd.Index(rows[source].astype(str)))


def remap_features(
    query: ad.AnnData,
    query_detection: DetectionResult,
    reference_detection: DetectionResult,
    table: pd.DataFrame,
) -> tuple[ad.AnnData, RemapReport]:
    """Rename query genes into the reference's homology-table column.

    Genes absent from the table, without an ortholog, or mapping onto a name
    already produced by an earlier gene are dropped. Cell metadata is kept
    as is. When both detections share a column, `query` itself is returned.
    """
    source = query_detection.matched_column
    target = reference_detection.matched_column
    n_total = int(query.n_vars)
    if source == target:
        return query, RemapReport(n_total, n_total, n_total, source, target)

    lookup = _first_wins_lookup(table, source, target)
    names = pd.Index([strip_version(str(n)) for n in query.var_names])
    found = names.isin(lookup.index)
    n_found = int(found.sum())
    logger.info("Found %d out of %d total inputs in conversion table", n_found, n_total)

    targets = pd.Series(lookup.reindex(names).to_numpy(), index=np.arange(n_total))
    targets = targets[found & targets.notna().to_numpy()].astype(str)
    targets = targets[~targets.duplicated(keep="first")]
    positions = targets.index.to_numpy()

    counts = query.X[:, positions]
    var = pd.DataFrame({"original_id": np.asarray(query.var_names)[positions]})
    out = build_anndata(
        counts,
        obs_names=query.obs_names,
        var_names=targets.to_numpy(),
        obs=query.obs,
        var=var,
    )
    report = RemapReport(
        n_found=n_found,
        n_total=n_total,
        n_kept=int(positions.size),
        source=source,
        target=target,
    )
    return out, report


def convert_gene_names(
    query: ad.AnnData,
    reference_names: Iterable[object],
    homology_table: str | Path | pd.DataFrame,
    *,
    config: HarmonizeConfig | None = None,
    notify: Callable[[str], None] | None = None,
) -> ad.AnnData:
    """Convert query gene names to match the id type and species of a reference.

    Args:
        query: Cells x genes AnnData holding raw counts.
        reference_names: Gene names of the reference.
        homology_table: Loaded table, or its path/URL.
        config: Sampling and network settings.
        notify: Called with a one-line summary when a conversion happens.

    Returns:
        `query` unchanged when both sides already share a vocabulary, else a
        new AnnData with converted (and likely fewer) genes. The coverage
        summary is stored in ``uns["gene_conversion"]``.
    """
    config = config or HarmonizeConfig()
    if isinstance(homology_table, pd.DataFrame):
        table = homology_table
    else:
        table = load_homology_table(homology_table, timeout=config.timeout)

    query_det = detect_idtype(
        query.var_names, table, sample_size=config.sample_size, seed=config.seed
    )
    logger.info(
        "detected inputs from %s with id type %s", query_det.species.upper(), query_det.idtype
    )
    ref_det = detect_idtype(
        reference_names, table, sample_size=config.sample_size, seed=config.seed
    )
    logger.info(
        "reference rownames detected %s with id type %s",
        ref_det.species.upper(),
        ref_det.idtype,
    )

    out, report = remap_features(query, query_det, ref_det, table)
    if not report.remapped:
        return out

    message = describe_conversion(query_det, ref_det)
    logger.info(message)
    if notify is not None:
        notify(message)
    out.uns["gene_conversion"] = {
        "source": report.source,
        "target": report.target,
        "n_found": report.n_found,
        "n_total": report.n_total,
        "n_kept": report.n_kept,
    }
    return out
