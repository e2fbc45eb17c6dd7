"""
Finding Entities in Nested Folders

Utilities to resolve storage paths for an entity and to locate entities
several folder levels deep when the layout is known, including the standard
assets that nf-core workflows write next to their results.
"""

from typing import Dict, List, Optional
import logging

import yaml

from .rules import Workflow, as_workflow
from .store import FileIndex

logger = logging.getLogger(__name__)

# Known paths relative to the workflow's top-level output folder (publishDir).
# Samplesheets are only published by newer versions of nf-core/rnaseq and not
# yet by sarek.
NF_ASSET_PATHS: Dict[Workflow, Dict[str, str]] = {
    Workflow.RNASEQ: {
        "software_versions": "pipeline_info/software_versions.yml",
        "multiqc_report": "multiqc/star_salmon/multiqc_report.html",
        "samplesheet": "pipeline_info/samplesheet.valid.csv",
        "samtools_stats": "multiqc/star_salmon/multiqc_data/multiqc_samtools_stats.txt",
    },
    Workflow.SAREK: {
        "software_versions": "pipeline_info/software_versions.yml",
        "multiqc_report": "multiqc/multiqc_report.html",
        "samtools_stats": "multiqc/multiqc_data/multiqc_samtools_stats.txt",
    },
}

NF_ASSETS = ("software_versions", "multiqc_report", "samplesheet", "samtools_stats")


def get_path(file_index: FileIndex, entity_id: str) -> str:
    """
    Get the full path of an entity, from its project down to itself.

    Walks parent links until the containing project.

    Examples
    --------
    >>> get_path(index, "syn3")
    'Project/results/star_salmon'
    """
    names = []
    current = entity_id
    seen = set()
    while current is not None:
        if current in seen:
            raise ValueError(f"Cycle in folder hierarchy at {current}")
        seen.add(current)
        entity = file_index.get_entity(current)
        names.insert(0, entity.name)
        if entity.is_project:
            break
        current = entity.parent_id
    return "/".join(names)


def find_child(file_index: FileIndex, child_name: str, parent: str) -> Optional[str]:
    """Id of the child named ``child_name`` in ``parent``, or None."""
    for child in file_index.children(parent):
        if child.name == child_name:
            return child.id
    return None


def find_in(file_index: FileIndex, scope: str, path: str) -> Optional[str]:
    """
    Find the id of an entity nested under ``scope`` by its relative path.

    Parameters
    ----------
    scope : str
        Id of the container (project or folder) to begin the search
    path : str
        Path in the form "subdir1/subdir2/file.txt"

    Returns
    -------
    Optional[str]
        Id of the last path element, or None if any level is missing
    """
    here = scope
    for child in path.split("/"):
        here = find_child(file_index, child, here)
        if here is None:
            return None
    return here


def find_parent(file_index: FileIndex, entity_id: str) -> Optional[str]:
    return file_index.get_entity(entity_id).parent_id


def find_child_type(
    file_index: FileIndex,
    parent: str,
    child_type: tuple = ("file",),
) -> Dict[str, str]:
    """Children of ``parent`` with a type in ``child_type``, as ``{name: id}``."""
    return {
        child.name: child.id
        for child in file_index.children(parent)
        if child.entity_type in child_type
    }


def find_data_root(file_index: FileIndex, project_id: str) -> Optional[str]:
    """Data folder of a project, which is named either "Data" or "Raw Data"."""
    data_root = find_child(file_index, "Data", project_id)
    if data_root is None:
        data_root = find_child(file_index, "Raw Data", project_id)
    return data_root


def find_nf_asset(
    file_index: FileIndex,
    output_dir: str,
    asset: str = "software_versions",
    workflow: str = "nf-rnaseq",
) -> Optional[str]:
    """
    Find a standard nf-core output asset.

    Paths correspond to the latest major workflow versions and may need
    updating as workflows change.

    Parameters
    ----------
    output_dir : str
        Id of the top-level output folder (the workflow's ``publishDir``)
    asset : str
        One of "software_versions", "multiqc_report", "samplesheet",
        "samtools_stats"
    workflow : str
        "nf-rnaseq" or "nf-sarek"

    Returns
    -------
    Optional[str]
        Id of the asset, or None if it is not present

    Raises
    ------
    ValueError
        If the asset is unknown or not published by the workflow
    """
    if asset not in NF_ASSETS:
        raise ValueError(f"asset must be one of {NF_ASSETS}, got {asset!r}")
    paths = NF_ASSET_PATHS[as_workflow(workflow)]
    if asset not in paths:
        raise ValueError(f"{asset} is not published by {workflow}")
    return find_in(file_index, output_dir, paths[asset])


def nf_workflow_version(file_index: FileIndex, output_dir: str) -> Dict[str, str]:
    """
    Workflow name and version according to ``software_versions.yml``.

    The ``Workflow`` section lists Nextflow first and the pipeline second,
    e.g. ``{"Nextflow": "23.04.1", "nf-core/rnaseq": "3.12.0"}``.

    Raises
    ------
    FileNotFoundError
        If the software versions asset cannot be found
    """
    version_meta = find_nf_asset(file_index, output_dir, asset="software_versions")
    if version_meta is None:
        raise FileNotFoundError(f"software_versions.yml not found under {output_dir}")
    with open(file_index.local_path(version_meta), 'r') as f:
        yml = yaml.safe_load(f)
    entries: List = list((yml.get("Workflow") or {}).items())
    if len(entries) < 2:
        raise ValueError("Unexpected software_versions.yml: no workflow entry")
    workflow, version = entries[1]
    return {"workflow": workflow, "version": str(version)}
