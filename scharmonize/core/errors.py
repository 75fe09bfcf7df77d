"""Exception hierarchy for scharmonize.

Every error is fatal for the load or harmonize call that raised it and
names the offending path, extension or payload type.
"""

from __future__ import annotations


class ScHarmonizeError(Exception):
    """Base exception for all scharmonize failures."""


class StoreAccessError(ScHarmonizeError):
    """Raised when a hierarchical store is missing, closed or corrupt."""

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = str(path)
        self.reason = str(reason)
        msg = f"Cannot access store '{self.path}'"
        if self.reason:
            msg = f"{msg}: {self.reason}"
        super().__init__(msg)


class SchemaError(ScHarmonizeError):
    """Raised when a well-formed container violates a structural expectation."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = str(path)
        self.reason = str(reason)
        super().__init__(f"Invalid layout at '{self.path}': {self.reason}")


class MissingIndexError(ScHarmonizeError):
    """Raised when no row-name dataset can be found for a metadata group."""

    def __init__(self, path: str) -> None:
        self.path = str(path)
        super().__init__(f"Cannot find the rownames for '{self.path}'")


class MissingMatrixError(ScHarmonizeError):
    """Raised when an h5ad file has neither 'raw/X' nor 'X'."""

    def __init__(self, path: str) -> None:
        self.path = str(path)
        super().__init__(f"Cannot find counts matrix in '{self.path}'")


class MissingAssayError(ScHarmonizeError):
    """Raised when the RNA assay or its counts layer is absent or empty."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = str(path)
        self.reason = str(reason)
        super().__init__(f"{self.reason} ({self.path})")


class UnsupportedPayloadError(ScHarmonizeError):
    """Raised when a pickled payload is not one of the accepted shapes."""

    def __init__(self, path: str, type_name: str) -> None:
        self.path = str(path)
        self.type_name = str(type_name)
        super().__init__(
            f"Unsupported object of type '{self.type_name}' in '{self.path}'; "
            "expected an AnnData object, a matrix or a data frame"
        )


class UnsupportedFormatError(ScHarmonizeError):
    """Raised for file extensions outside the supported set."""

    def __init__(self, extension: str, supported: str = "") -> None:
        self.extension = str(extension)
        msg = f"Unknown file type: {self.extension}"
        if supported:
            msg = f"{msg} (supported: {supported})"
        super().__init__(msg)


class HomologyLookupError(ScHarmonizeError):
    """Raised when the homology table cannot be located or read."""

    def __init__(self, location: str, reason: str) -> None:
        self.location = str(location)
        self.reason = str(reason)
        super().__init__(f"{self.reason}: {self.location}")
