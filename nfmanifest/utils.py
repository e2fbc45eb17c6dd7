"""
Helper Functions and Utilities

This module provides common utility functions used throughout the nfmanifest
package: logging configuration, identifier parsing, path segmentation and
tabular file reading.

Key Utilities:
1. Logging Configuration
   - Centralized logging setup for the ``nfmanifest`` package logger
   - Optional log file output

2. Identifier Parsing
   - Bare identifiers (``syn12345678``)
   - Identifiers embedded in URIs or paths (``synapse://syn12345678``)
   - Batch extraction with uniqueness checks

3. Path Handling
   - Splitting storage paths into ordered segments
   - Layout-dependent segment selection via index functions

4. Tabular Files
   - Reading CSV/TSV from a local path or from a file index by identifier

Example Usage:
    >>> from nfmanifest.utils import parse_identifier, split_path
    >>> parse_identifier("synapse://syn12345678")
    'syn12345678'
    >>> split_path("project/results/star_salmon/S1/quant.sf")
    ['project', 'results', 'star_salmon', 'S1', 'quant.sf']
"""

from typing import Any, Callable, Iterable, List, Optional, Sequence, Union
from pathlib import Path
import logging
import re
import sys

import pandas as pd

from .exceptions import AmbiguousIdentifierError, InvalidIdentifierError

# Configure module logger
logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^syn[0-9]+$")
EMBEDDED_IDENTIFIER_PATTERN = re.compile(r"\b(syn[0-9]+)\b")


# ============================================================================
# Logging Configuration
# ============================================================================

def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Configure logging for nfmanifest.

    Sets up the package logger with console and optional file output.

    Parameters
    ----------
    log_level : str, optional
        Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL (default: INFO)
    log_file : str, optional
        Path to log file. If None, logs only to console (default: None)
    format_string : str, optional
        Custom format string for log messages. If None, uses default format

    Returns
    -------
    logging.Logger
        Configured logger instance

    Examples
    --------
    >>> logger = setup_logging(log_level="DEBUG", log_file="manifest.log")
    >>> logger.info("Starting annotation")
    """
    package_logger = logging.getLogger("nfmanifest")
    package_logger.setLevel(getattr(logging, log_level.upper()))

    # Remove existing handlers to avoid duplicates
    package_logger.handlers.clear()

    if format_string is None:
        format_string = "[%(asctime)s] %(levelname)s: %(message)s"

    formatter = logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level.upper()))
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

        package_logger.info(f"Logging to file: {log_file}")

    return package_logger


def create_output_directory(output_dir: Union[str, Path]) -> Path:
    """
    Create output directory if it doesn't exist.

    Raises
    ------
    OSError
        If directory cannot be created due to permissions or other issues
    """
    path = Path(output_dir)

    try:
        path.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Created/verified output directory: {path}")
        return path
    except OSError as e:
        logger.error(f"Failed to create directory {path}: {e}")
        raise


# ============================================================================
# Identifier Parsing
# ============================================================================

def is_missing(value: Any) -> bool:
    """True for None, NaN and blank strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def is_valid_identifier(value: Any) -> bool:
    """
    Check whether a value is a bare identifier.

    Examples
    --------
    >>> is_valid_identifier("syn123")
    True
    >>> is_valid_identifier("syn123.1")
    False
    """
    return isinstance(value, str) and bool(IDENTIFIER_PATTERN.match(value))


def bare_identifier(value: Any) -> Optional[str]:
    """Return the trimmed value if it is itself a bare identifier, else None."""
    if not isinstance(value, str):
        return None
    candidate = value.strip()
    return candidate if is_valid_identifier(candidate) else None


def embedded_identifier(value: Any) -> Optional[str]:
    """Return the first identifier token found inside a longer string, else None."""
    if not isinstance(value, str):
        return None
    match = EMBEDDED_IDENTIFIER_PATTERN.search(value)
    return match.group(1) if match else None


def parse_identifier(raw: Any) -> str:
    """
    Extract a valid identifier from a heterogeneous string encoding.

    Strategies are tried in priority order:

    1. the whole trimmed string is a bare identifier
    2. the first identifier token embedded in a longer string (e.g. a URI)

    Parameters
    ----------
    raw : Any
        Raw value, usually a samplesheet cell

    Returns
    -------
    str
        The identifier token, unchanged

    Raises
    ------
    InvalidIdentifierError
        If neither strategy yields an identifier

    Examples
    --------
    >>> parse_identifier(" syn26462036 ")
    'syn26462036'
    >>> parse_identifier("synapse://syn26462036")
    'syn26462036'
    """
    for extract in (bare_identifier, embedded_identifier):
        result = extract(raw)
        if result is not None:
            return result
    raise InvalidIdentifierError(f"Could not parse a valid identifier from {raw!r}")


def extract_identifiers(
    values: Iterable[Any],
    unique: bool = True,
) -> List[Optional[str]]:
    """
    Extract identifiers for a whole batch of values.

    Each extraction strategy is applied to the entire batch, and a batch
    result is accepted only if every non-missing value parses and, when
    ``unique`` is set, no identifier is repeated. Missing values stay None.

    Parameters
    ----------
    values : Iterable[Any]
        Raw values
    unique : bool
        Require identifiers to be unique within the batch (default: True)

    Returns
    -------
    List[Optional[str]]
        Identifiers aligned with ``values``

    Raises
    ------
    AmbiguousIdentifierError
        If every value parses but identifiers are duplicated
    InvalidIdentifierError
        If some value cannot be parsed by any strategy
    """
    values = list(values)
    duplicated = False

    for extract in (bare_identifier, embedded_identifier):
        result = [None if is_missing(v) else extract(v) for v in values]
        parsed = [r for v, r in zip(values, result) if not is_missing(v)]
        if any(r is None for r in parsed):
            continue
        if unique and len(set(parsed)) != len(parsed):
            duplicated = True
            continue
        return result

    if duplicated:
        raise AmbiguousIdentifierError("Identifiers are not unique within the batch")
    bad = [v for v in values if not is_missing(v) and embedded_identifier(v) is None]
    raise InvalidIdentifierError(f"Could not parse valid identifiers from: {bad[:5]}")


# ============================================================================
# Path Handling
# ============================================================================

def split_path(path: str) -> List[str]:
    """Split a storage path into ordered segments on ``/``."""
    return path.split("/")


def extract_segment(
    segments: Sequence[str],
    index_fun: Callable[[Sequence[str]], int],
) -> str:
    """
    Select one segment of a path using a layout-dependent index function.

    Examples
    --------
    >>> extract_segment(["a", "S1", "quant.sf"], lambda x: len(x) - 2)
    'S1'
    """
    return segments[index_fun(segments)]


def path_extract(
    paths: Iterable[str],
    index_fun: Callable[[Sequence[str]], int],
) -> List[str]:
    """Apply :func:`extract_segment` to each path."""
    return [extract_segment(split_path(p), index_fun) for p in paths]


# ============================================================================
# Tabular Files
# ============================================================================

def _infer_separator(name: str) -> str:
    lowered = name.lower()
    if lowered.endswith((".tsv", ".txt", ".tab")):
        return "\t"
    return ","


def read_table(
    source: Union[str, Path],
    file_index: Optional[Any] = None,
    sep: Optional[str] = None,
) -> pd.DataFrame:
    """
    Read a delimited table from a local path or from a file index by identifier.

    Parameters
    ----------
    source : Union[str, Path]
        Local file path, or an identifier resolvable by ``file_index``
    file_index : FileIndex, optional
        Index used to resolve identifiers to local copies
    sep : str, optional
        Delimiter. Inferred from the file extension if not given
        (``.tsv``/``.txt``/``.tab`` are tab-separated, otherwise comma)

    Returns
    -------
    pd.DataFrame
        Table with all columns read as strings

    Raises
    ------
    FileNotFoundError
        If the file does not exist locally and cannot be resolved
    """
    if is_valid_identifier(str(source)):
        if file_index is None:
            raise FileNotFoundError(
                f"{source} looks like an identifier but no file index was given"
            )
        path = Path(file_index.local_path(str(source)))
    else:
        path = Path(source)

    if not path.exists():
        raise FileNotFoundError(f"Table file not found: {path}")

    if sep is None:
        sep = _infer_separator(path.name)

    logger.debug(f"Reading table: {path}")
    return pd.read_csv(path, sep=sep, dtype=str, keep_default_na=True)
