"""Gene identifier detection and homology-based conversion."""

from scharmonize.homology.detect import detect_idtype, strip_version, strip_versions
from scharmonize.homology.remap import convert_gene_names, remap_features
from scharmonize.homology.table import load_homology_table

__all__ = [
    "detect_idtype",
    "strip_version",
    "strip_versions",
    "remap_features",
    "convert_gene_names",
    "load_homology_table",
]
