"""
Storage Collaborators

Interfaces to the external storage service that holds pipeline files, their
folder hierarchy, a tabular file index ("fileview") and per-entity annotation
key-value sets, plus local implementations of those interfaces.

Interfaces:
- FileIndex: filtered queries over (path, name, type), entity lookup for
  walking the folder hierarchy, and local copies of stored files
- AnnotationStore: get/set of full annotation sets (set replaces; callers
  read-merge-write)

Local implementations:
- FileviewIndex: backed by an exported fileview table (TSV/CSV) with columns
  ``id``, ``name``, ``type``, ``parentId``, ``path`` and optional
  ``local_path``
- InMemoryAnnotationStore / JsonAnnotationStore: annotation sets held in a
  dict, optionally persisted to a JSON document

Example Usage:
    >>> from nfmanifest.store import FileviewIndex, LikeFilter
    >>> index = FileviewIndex.from_file("fileview.tsv")
    >>> index.query(LikeFilter(["project/results/%.bam"]))
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import copy
import json
import logging
import re

import pandas as pd

from .utils import is_missing, read_table

logger = logging.getLogger(__name__)

QUERY_COLUMNS = ["path", "output_name", "output_id"]
FILEVIEW_COLUMNS = ["id", "name", "type", "parentId", "path"]


# ============================================================================
# Query Filters
# ============================================================================

def like_to_regex(pattern: str) -> "re.Pattern":
    """
    Translate a SQL ``LIKE`` pattern to a compiled regular expression.

    ``%`` matches any run of characters and ``_`` any single character.
    Matching is case-insensitive, as in the storage service's query engine.
    """
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class LikeFilter:
    """
    Path filter for a file index query.

    Attributes
    ----------
    patterns : List[str]
        ``LIKE`` patterns over ``path``; a row matches if any pattern matches
    entity_type : str
        Entity type to restrict to (default: "file")
    """
    patterns: List[str]
    entity_type: str = "file"

    def matches(self, path: str) -> bool:
        return any(like_to_regex(p).match(path) for p in self.patterns)

    def to_sql(self, fileview: str) -> str:
        """Render the equivalent fileview query."""
        path_spec = " or ".join(f"path like '{p}'" for p in self.patterns)
        return (
            f"SELECT path, name as output_name, id as output_id from {fileview} "
            f"where ({path_spec}) and type = '{self.entity_type}'"
        )


@dataclass(frozen=True)
class Entity:
    """A stored file or container."""
    id: str
    name: str
    parent_id: Optional[str] = None
    entity_type: str = "file"
    is_project: bool = False


# ============================================================================
# Interfaces
# ============================================================================

class FileIndex(ABC):
    """Queryable index of stored files and their folder hierarchy."""

    @abstractmethod
    def query(self, like_filter: LikeFilter) -> pd.DataFrame:
        """Return matching rows with columns ``path``, ``output_name``, ``output_id``."""

    @abstractmethod
    def get_entity(self, entity_id: str) -> Entity:
        """Return display name and parent of an entity."""

    @abstractmethod
    def children(self, parent_id: str) -> List[Entity]:
        """Return the direct children of a container."""

    @abstractmethod
    def local_path(self, entity_id: str) -> Path:
        """Return a local copy of a stored file."""


class AnnotationStore(ABC):
    """Per-entity annotation key-value sets."""

    @abstractmethod
    def get(self, entity_id: str) -> Dict[str, Any]:
        """Return a snapshot of the entity's full annotation set."""

    @abstractmethod
    def set(self, entity_id: str, annotations: Dict[str, Any]) -> None:
        """Replace the entity's full annotation set."""


# ============================================================================
# Fileview-backed Index
# ============================================================================

class FileviewIndex(FileIndex):
    """
    File index over an exported fileview table.

    Parameters
    ----------
    fileview : pd.DataFrame
        Table with at least ``id``, ``name``, ``type``, ``parentId`` and
        ``path``. ``type`` is "file", "folder" or "project". An optional
        ``local_path`` column points to local copies of files.
    base_dir : Path, optional
        Directory that relative ``local_path`` values are resolved against
    """

    def __init__(self, fileview: pd.DataFrame, base_dir: Optional[Path] = None):
        missing = [c for c in FILEVIEW_COLUMNS if c not in fileview.columns]
        if missing:
            raise ValueError(f"Fileview is missing required columns: {missing}")
        duplicates = fileview["id"].duplicated()
        if duplicates.any():
            raise ValueError(
                f"Fileview ids are not unique: {fileview.loc[duplicates, 'id'].tolist()[:5]}"
            )
        self.fileview = fileview.reset_index(drop=True)
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self._by_id = {row["id"]: row for row in self.fileview.to_dict("records")}

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "FileviewIndex":
        """Load a fileview export; relative local paths resolve against its folder."""
        path = Path(path)
        fileview = read_table(path)
        logger.info(f"Loaded fileview with {len(fileview)} entities from {path}")
        return cls(fileview, base_dir=path.parent)

    def query(self, like_filter: LikeFilter) -> pd.DataFrame:
        view = self.fileview
        mask = view["type"].str.lower() == like_filter.entity_type
        mask &= view["path"].fillna("").map(like_filter.matches)
        result = view.loc[mask, ["path", "name", "id"]]
        result.columns = QUERY_COLUMNS
        return result.reset_index(drop=True)

    def get_entity(self, entity_id: str) -> Entity:
        try:
            row = self._by_id[entity_id]
        except KeyError:
            raise LookupError(f"Entity not found in fileview: {entity_id}") from None
        parent = row.get("parentId")
        entity_type = str(row.get("type", "file")).lower()
        return Entity(
            id=row["id"],
            name=row["name"],
            parent_id=None if is_missing(parent) else parent,
            entity_type=entity_type,
            is_project=entity_type == "project",
        )

    def children(self, parent_id: str) -> List[Entity]:
        rows = self.fileview.loc[self.fileview["parentId"] == parent_id, "id"]
        return [self.get_entity(i) for i in rows]

    def local_path(self, entity_id: str) -> Path:
        row = self._by_id.get(entity_id)
        if row is None or is_missing(row.get("local_path")):
            raise FileNotFoundError(f"No local copy available for {entity_id}")
        path = Path(row["local_path"])
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        return path


# ============================================================================
# Annotation Stores
# ============================================================================

class InMemoryAnnotationStore(AnnotationStore):
    """Annotation store held in a dict of ``{entity_id: {key: value}}``."""

    def __init__(self, annotations: Optional[Dict[str, Dict[str, Any]]] = None):
        self._annotations = copy.deepcopy(annotations) if annotations else {}

    def get(self, entity_id: str) -> Dict[str, Any]:
        return copy.deepcopy(self._annotations.get(entity_id, {}))

    def set(self, entity_id: str, annotations: Dict[str, Any]) -> None:
        self._annotations[entity_id] = copy.deepcopy(dict(annotations))

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(self._annotations)


class JsonAnnotationStore(InMemoryAnnotationStore):
    """
    Annotation store persisted to a JSON document.

    Every ``set`` rewrites the document, so the file always reflects the
    last write.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        data = {}
        if self.path.exists():
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            logger.info(f"Loaded annotations for {len(data)} entities from {self.path}")
        super().__init__(data)

    def set(self, entity_id: str, annotations: Dict[str, Any]) -> None:
        super().set(entity_id, annotations)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(self._annotations, f, indent=2, sort_keys=True)
