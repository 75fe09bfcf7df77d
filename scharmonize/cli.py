"""Command-line interface for loading and harmonizing single-cell inputs."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable

from scharmonize.config import HarmonizeConfig, load_json_config
from scharmonize.core.errors import ScHarmonizeError
from scharmonize.homology.detect import detect_idtype, display_name
from scharmonize.homology.remap import convert_gene_names
from scharmonize.homology.table import load_homology_table
from scharmonize.ingest.formats import load_file_input
from scharmonize.utils import ensure_dir, setup_logger

logger = logging.getLogger("scharmonize")


def _write_h5ad(adata, out: str) -> None:
    out_path = Path(out)
    ensure_dir(out_path.parent.as_posix())
    adata.write_h5ad(out_path)
    print(f"wrote {out_path} ({adata.n_obs} cells x {adata.n_vars} genes)")


def _resolve_config(args) -> HarmonizeConfig:
    payload = load_json_config(args.config) if args.config else {}
    if getattr(args, "seed", None) is not None:
        payload["seed"] = args.seed
    if getattr(args, "homology", None):
        payload["homology_table"] = args.homology
    config = HarmonizeConfig.from_mapping(payload)
    if config.homology_table is None:
        raise ValueError("A homology table is required (--homology or config 'homology_table').")
    return config


def load_main(argv: Iterable[str] | None = None) -> int:
    """Convert any supported input file to H5AD.

    Args:
        argv: Command-line arguments (if None, uses sys.argv).

    Returns:
        Exit code (0 for success).
    """
    parser = argparse.ArgumentParser(description="Load a single-cell file and write H5AD")
    parser.add_argument("input", help="Input file (.h5, .pkl, .h5seurat or .h5ad)")
    parser.add_argument("--out", required=True, help="Output .h5ad path")
    args = parser.parse_args(list(argv) if argv is not None else None)

    adata = load_file_input(args.input)
    _write_h5ad(adata, args.out)
    return 0


def detect_main(argv: Iterable[str] | None = None) -> int:
    """Print the detected id type and species of an input file's genes."""
    parser = argparse.ArgumentParser(description="Detect gene id type and species")
    parser.add_argument("input", help="Input file")
    parser.add_argument("--homology", default=None, help="Homology table path or URL")
    parser.add_argument("--config", default=None, help="JSON config file")
    parser.add_argument("--seed", type=int, default=None, help="Sampling seed")
    args = parser.parse_args(list(argv) if argv is not None else None)

    config = _resolve_config(args)
    table = load_homology_table(config.homology_table, timeout=config.timeout)
    adata = load_file_input(args.input)
    result = detect_idtype(
        adata.var_names, table, sample_size=config.sample_size, seed=config.seed
    )
    print(f"species={result.species}")
    print(f"idtype={result.idtype} ({display_name(result.idtype)})")
    print(f"column={result.matched_column}")
    return 0


def harmonize_main(argv: Iterable[str] | None = None) -> int:
    """Convert query gene names to the reference's vocabulary and write H5AD."""
    parser = argparse.ArgumentParser(description="Harmonize query genes with a reference")
    parser.add_argument("query", help="Query input file")
    parser.add_argument("reference", help="Reference input file")
    parser.add_argument("--out", required=True, help="Output .h5ad path")
    parser.add_argument("--homology", default=None, help="Homology table path or URL")
    parser.add_argument("--config", default=None, help="JSON config file")
    parser.add_argument("--seed", type=int, default=None, help="Sampling seed")
    parser.add_argument("--log", default=None, help="Optional log file")
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.log:
        setup_logger(Path(args.log), "scharmonize")
    config = _resolve_config(args)
    query = load_file_input(args.query)
    reference = load_file_input(args.reference)
    out = convert_gene_names(query, reference.var_names, config.homology_table, config=config)
    _write_h5ad(out, args.out)
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (if None, uses sys.argv).

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(description="scharmonize CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("load", help="Load a file and write H5AD")
    sub.add_parser("detect", help="Detect gene id type and species")
    sub.add_parser("harmonize", help="Convert query genes to a reference's vocabulary")

    args, remainder = parser.parse_known_args(list(argv) if argv is not None else None)
    commands = {"load": load_main, "detect": detect_main, "harmonize": harmonize_main}
    try:
        return commands[args.command](remainder)
    except (ScHarmonizeError, ValueError, FileNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
