"""scharmonize public API."""

from scharmonize._version import __version__
from scharmonize.config import HarmonizeConfig, load_json_config
from scharmonize.core.errors import ScHarmonizeError
from scharmonize.core.types import DetectionResult, FileFormat, RemapReport
from scharmonize.homology.detect import detect_idtype
from scharmonize.homology.remap import convert_gene_names, remap_features
from scharmonize.homology.table import load_homology_table
from scharmonize.ingest.formats import detect_format, load_file_input
from scharmonize.ingest.h5ad import load_h5ad


def cluster_preservation_score(*args, **kwargs):
    """Lazy wrapper to avoid importing clustering dependencies at import time."""
    from scharmonize.stats.preservation import cluster_preservation_score as _score

    return _score(*args, **kwargs)


__all__ = [
    "__version__",
    "HarmonizeConfig",
    "load_json_config",
    "ScHarmonizeError",
    "DetectionResult",
    "FileFormat",
    "RemapReport",
    "detect_format",
    "load_file_input",
    "load_h5ad",
    "detect_idtype",
    "remap_features",
    "convert_gene_names",
    "load_homology_table",
    "cluster_preservation_score",
]
