"""Cluster preservation score for mapped query data."""

from __future__ import annotations

import logging
import math

import anndata as ad
import numpy as np
import pandas as pd
import scanpy as sc
import scipy.sparse as sp

logger = logging.getLogger(__name__)

MAX_SCORE = 5.0


def neighbor_lists(distances: sp.spmatrix) -> list[np.ndarray]:
    """Per-cell neighbor indices (self first) from a kNN distance graph."""
    graph = sp.csr_matrix(distances)
    return [
        np.concatenate(([i], graph.indices[graph.indptr[i] : graph.indptr[i + 1]]))
        for i in range(graph.shape[0])
    ]


def neighbor_entropy(labels: np.ndarray, neighbors: list[np.ndarray]) -> np.ndarray:
    """Sum of p * log(p) over neighbor-label proportions, per cell."""
    labels = np.asarray(labels)
    out = np.empty(len(neighbors), dtype=float)
    for i, idx in enumerate(neighbors):
        _, counts = np.unique(labels[idx], return_counts=True)
        p = counts / counts.sum()
        out[i] = float(np.sum(p * np.log(p)))
    return out


def preservation_stat(
    orig_entropy: np.ndarray, proj_entropy: np.ndarray, clusters: np.ndarray
) -> float:
    """Map the per-cluster entropy gap onto [0, MAX_SCORE]; higher is better."""
    clusters = np.asarray(clusters)
    orig = pd.Series(orig_entropy).groupby(clusters).mean()
    proj = pd.Series(proj_entropy).groupby(clusters).mean()
    stat = float(np.median((orig - proj).to_numpy()))
    if stat <= 0:
        return MAX_SCORE
    return float(np.clip(-math.log2(stat), 0.0, MAX_SCORE))


def cluster_preservation_score(
    query: ad.AnnData,
    *,
    ds_amount: int,
    max_dims: int,
    integrated_key: str = "X_integrated_dr",
    n_neighbors: int = 20,
    resolution: float = 0.6,
    seed: int = 0,
) -> float:
    """Score how well clusters of the query survive projection onto a reference.

    Clusters come from a PCA kNN graph of the (scaled) query expression. Each
    cell's neighbor-label entropy in that graph is compared with its entropy
    among neighbors in the integrated embedding ``obsm[integrated_key]``.
    """
    if integrated_key not in query.obsm:
        raise KeyError(f"adata.obsm['{integrated_key}'] is required for the preservation score.")
    if int(ds_amount) <= 0:
        raise ValueError("ds_amount must be positive.")

    rng = np.random.default_rng(seed)
    if query.n_obs > ds_amount:
        cells = np.sort(rng.choice(query.n_obs, size=int(ds_amount), replace=False))
        sub = query[cells].copy()
    else:
        sub = query.copy()

    dims = min(50, int(max_dims), sub.n_obs - 1, sub.n_vars - 1)
    if dims < 1:
        raise ValueError("Too few cells or genes to compute principal components.")
    k = min(int(n_neighbors), sub.n_obs)

    sc.pp.pca(sub, n_comps=dims, random_state=seed)
    sc.pp.neighbors(sub, n_neighbors=k, use_rep="X_pca", key_added="pca", random_state=seed)
    sc.tl.leiden(
        sub,
        resolution=resolution,
        neighbors_key="pca",
        key_added="pca_clusters",
        flavor="igraph",
        n_iterations=2,
        directed=False,
        random_state=seed,
    )
    sub.obsm["X_integrated_use"] = np.asarray(sub.obsm[integrated_key])[:, :dims]
    sc.pp.neighbors(
        sub, n_neighbors=k, use_rep="X_integrated_use", key_added="integrated", random_state=seed
    )

    clusters = sub.obs["pca_clusters"].to_numpy()
    orig = neighbor_entropy(clusters, neighbor_lists(sub.obsp["pca_distances"]))
    proj = neighbor_entropy(clusters, neighbor_lists(sub.obsp["integrated_distances"]))
    score = preservation_stat(orig, proj, clusters)
    logger.info("Cluster preservation score %.3f over %d cells", score, sub.n_obs)
    return score


def transform_neighbor_index(
    indices: np.ndarray, obs: pd.DataFrame, key: str = "ori.index"
) -> np.ndarray:
    """Replace positional kNN indices with the values of ``obs[key]``."""
    if key not in obs.columns:
        raise KeyError(f"obs['{key}'] not found.")
    idx = np.asarray(indices, dtype=int)
    if idx.size and (idx.min() < 0 or idx.max() >= obs.shape[0]):
        raise IndexError("Neighbor indices fall outside the metadata rows.")
    return obs[key].to_numpy()[idx]
