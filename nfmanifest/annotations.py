"""
Annotation Store Primitives

Read-modify-write helpers over an :class:`~nfmanifest.store.AnnotationStore`,
whose ``set`` replaces an entity's full annotation set. Each helper takes a
snapshot with ``get``, changes only an explicit key selection, and writes the
whole set back.
"""

from typing import Any, Dict, Iterable, List, Optional, Union
import logging

import numpy as np
import pandas as pd

from .store import AnnotationStore
from .utils import is_missing

logger = logging.getLogger(__name__)


def set_annotations(store: AnnotationStore, entity_id: str, annotations: Dict[str, Any]) -> Dict[str, Any]:
    """
    Add or replace annotations on an entity, keeping its other annotations.

    Returns
    -------
    Dict[str, Any]
        The annotation set as written
    """
    current = store.get(entity_id)
    current.update(annotations)
    store.set(entity_id, current)
    return current


def copy_annotations(
    store: AnnotationStore,
    entity_from: str,
    entity_to: Union[str, Iterable[str]],
    select: Optional[Iterable[str]] = None,
    update: bool = False,
) -> Dict[str, Dict[str, Any]]:
    """
    Copy annotations (all or selectively) from one entity to others.

    Keys that already exist on a target are replaced by the copied values.

    Parameters
    ----------
    store : AnnotationStore
        Annotation store
    entity_from : str
        Id to copy from
    entity_to : Union[str, Iterable[str]]
        One or more ids to copy to
    select : Iterable[str], optional
        Keys to copy if present on the source. If None, copies everything,
        which may not be desirable
    update : bool
        Write the merged sets back to the store (default: False, only return)

    Returns
    -------
    Dict[str, Dict[str, Any]]
        Merged annotation set for each target id
    """
    from_annotations = store.get(entity_from)
    if select is None:
        keys = list(from_annotations)
    else:
        keys = [k for k in select if k in from_annotations]

    if isinstance(entity_to, str):
        entity_to = [entity_to]

    merged = {}
    for target in entity_to:
        to_annotations = store.get(target)
        for k in keys:
            to_annotations[k] = from_annotations[k]
        if update:
            store.set(target, to_annotations)
        merged[target] = to_annotations
    return merged


def _keep_value(value: Any, ignore_na: bool, ignore_blank: bool) -> bool:
    values = list(value) if isinstance(value, (list, tuple, np.ndarray)) else [value]
    if not values:
        return False
    if ignore_na and any(v is None or (not isinstance(v, str) and is_missing(v)) for v in values):
        return False
    if ignore_blank and any(isinstance(v, str) and v == "" for v in values):
        return False
    return True


def _to_native(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return [_to_native(v) for v in value.tolist()]
    if isinstance(value, (list, tuple)):
        return [_to_native(v) for v in value]
    if isinstance(value, np.generic):
        return value.item()
    return value


def annotate_with_manifest(
    store: AnnotationStore,
    manifest: pd.DataFrame,
    ignore_na: bool = True,
    ignore_blank: bool = True,
) -> List[str]:
    """
    Set annotations from a manifest, one row per entity.

    There is no validation against the data model. ``Filename`` is not
    submitted. A value that is NA, or a list containing NA, is skipped when
    ``ignore_na``; likewise empty strings when ``ignore_blank``.

    Parameters
    ----------
    store : AnnotationStore
        Annotation store
    manifest : pd.DataFrame
        Manifest with an ``entityId`` column
    ignore_na : bool
        Skip NA values (default: True)
    ignore_blank : bool
        Skip empty strings (default: True)

    Returns
    -------
    List[str]
        Ids of annotated entities
    """
    if "entityId" not in manifest.columns:
        raise ValueError("Manifest must contain an 'entityId' column")

    annotations = manifest.drop(columns=["Filename"], errors="ignore")
    annotated = []
    for row in annotations.to_dict("records"):
        entity_id = str(row.pop("entityId"))
        values = {
            k: _to_native(v) for k, v in row.items()
            if _keep_value(v, ignore_na, ignore_blank)
        }
        set_annotations(store, entity_id, values)
        annotated.append(entity_id)

    logger.info(f"Annotations submitted for {len(annotated)} entities")
    return annotated
