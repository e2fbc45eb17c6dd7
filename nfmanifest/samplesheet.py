"""
Sample Sheet Parsing

Parses nf-core samplesheets (https://nf-co.re/rnaseq/usage#full-samplesheet)
into a mapping of samples to input file identifiers. After a pipeline run the
samplesheet is usually found under ``pipeline_info/`` in the output folder.

Samplesheet headers are not standardized: read columns may be named
``fastq_1``/``fastq_2`` (canonical), ``fastq1``/``fastq2``, or ``fastq``.
Read references may be bare identifiers or URIs/paths embedding them.

Multi-lane and multi-timepoint rows are merged under one sample key by a
sample transform (default: strip a trailing ``_T<digit>`` suffix).

Example Usage:
    >>> from nfmanifest.samplesheet import parse_samplesheet
    >>> inputs = parse_samplesheet("samplesheet.valid.csv")
    >>> inputs.head()
      sample                input_id
    0      X  [syn01, syn02, syn03]
"""

from typing import Callable, List, Optional, Union
from pathlib import Path
import logging
import re

import pandas as pd

from .exceptions import InvalidIdentifierError, SampleSheetParseError
from .utils import extract_identifiers, is_missing, read_table

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SUFFIX = r"_T[0-9]$"

# Canonical column -> accepted aliases
READ_COLUMN_ALIASES = {
    "fastq_1": ["fastq1", "fastq"],
    "fastq_2": ["fastq2"],
}


def strip_sample_suffix(pattern: str = DEFAULT_SAMPLE_SUFFIX) -> Callable[[str], str]:
    """Build a sample transform that removes ``pattern`` from sample names."""
    compiled = re.compile(pattern)
    return lambda sample: compiled.sub("", sample)


def normalize_read_columns(ss: pd.DataFrame) -> pd.DataFrame:
    """
    Rename read-reference column aliases to ``fastq_1``/``fastq_2``.

    Raises
    ------
    SampleSheetParseError
        If no recognized forward-read column is present
    """
    ss = ss.copy()
    for canonical, aliases in READ_COLUMN_ALIASES.items():
        if canonical in ss.columns:
            continue
        for alias in aliases:
            if alias in ss.columns:
                ss = ss.rename(columns={alias: canonical})
                logger.info(
                    f"In this samplesheet version, looks like we have '{alias}' "
                    f"-- reading as '{canonical}'"
                )
                break

    if "fastq_1" not in ss.columns:
        raise SampleSheetParseError(
            f"Samplesheet has no recognized read column. Found columns: {list(ss.columns)}"
        )
    if "sample" not in ss.columns:
        raise SampleSheetParseError("Samplesheet is missing the 'sample' column")
    if "fastq_2" not in ss.columns:
        ss["fastq_2"] = None
    return ss


def _dedupe(ids: List[Optional[str]]) -> List[str]:
    seen = []
    for i in ids:
        if i is not None and i not in seen:
            seen.append(i)
    return seen


def parse_samplesheet(
    samplesheet: Union[str, Path, pd.DataFrame],
    parse_fun: Optional[Callable[[str], str]] = None,
    file_index=None,
) -> pd.DataFrame:
    """
    Parse a samplesheet into one row per sample with its input file identifiers.

    Parameters
    ----------
    samplesheet : Union[str, Path, pd.DataFrame]
        Local file, identifier of the samplesheet (resolved via ``file_index``),
        or an already-loaded table
    parse_fun : Callable[[str], str], optional
        Sample key transform. Defaults to stripping a ``_T<digit>`` suffix
    file_index : FileIndex, optional
        Index used when ``samplesheet`` is an identifier

    Returns
    -------
    pd.DataFrame
        Columns ``sample`` and ``input_id`` (list of identifiers, order
        preserved, duplicates and missing values removed), one row per
        distinct transformed sample in first-seen order

    Raises
    ------
    SampleSheetParseError
        If read references do not yield a consistent, unique identifier set
        across the whole sheet, or if a row has no forward read reference
    """
    if parse_fun is None:
        parse_fun = strip_sample_suffix()

    if isinstance(samplesheet, pd.DataFrame):
        ss = samplesheet
    else:
        ss = read_table(samplesheet, file_index=file_index)

    ss = normalize_read_columns(ss)

    # Identifiers are extracted for both read columns at once so that a
    # file referenced twice anywhere in the sheet is caught
    n = len(ss)
    reads = list(ss["fastq_1"]) + list(ss["fastq_2"])
    try:
        ids = extract_identifiers(reads, unique=True)
    except InvalidIdentifierError as e:
        raise SampleSheetParseError(
            f"Failed parsing consistent input file IDs in samplesheet: {e}"
        ) from e

    # Every row needs at least its forward read; mates may be absent
    no_reads = [i for i, id_1 in enumerate(ids[:n]) if id_1 is None]
    if no_reads:
        raise SampleSheetParseError(
            f"Samplesheet rows without a fastq_1 reference: {no_reads[:5]}"
        )

    missing_samples = ss["sample"].map(is_missing)
    if missing_samples.any():
        raise SampleSheetParseError(f"Samplesheet has {missing_samples.sum()} rows without a sample")

    ss["input_id_1"] = ids[:n]
    ss["input_id_2"] = ids[n:]
    ss["sample"] = [parse_fun(str(s).strip()) for s in ss["sample"]]

    records = {}
    for sample, id_1, id_2 in zip(ss["sample"], ss["input_id_1"], ss["input_id_2"]):
        records.setdefault(sample, []).extend([id_1, id_2])

    sample_inputs = pd.DataFrame({
        "sample": list(records.keys()),
        "input_id": [_dedupe(ids) for ids in records.values()],
    })

    logger.info(f"Input samplesheet parsed: {len(ss)} rows, {len(sample_inputs)} samples")
    return sample_inputs
