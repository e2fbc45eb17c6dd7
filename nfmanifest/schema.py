"""
Data Model Templates

Reads template (class) definitions from a JSON-LD data model such as the
NF metadata dictionary, to find which properties a template governs. This is
the only dependency on an external schema.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Union
from urllib.request import urlopen
import json
import logging

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = "https://raw.githubusercontent.com/nf-osi/nf-metadata-dictionary/main/NF.jsonld"
DEPENDENCY_PROP = "sms:requiresDependency"


@lru_cache(maxsize=8)
def load_schema(schema: str) -> Dict[str, Dict[str, Any]]:
    """
    Load a JSON-LD schema from a local path or URL, indexed by ``@id``.

    Results are cached per source for the lifetime of the process.
    """
    if schema.startswith(("http://", "https://")):
        logger.info(f"Fetching data model from {schema}")
        with urlopen(schema, timeout=60) as response:
            document = json.load(response)
    else:
        path = Path(schema)
        if not path.exists():
            raise FileNotFoundError(f"Schema file not found: {path}")
        with open(path, 'r', encoding='utf-8') as f:
            document = json.load(f)

    graph = document.get("@graph", []) if isinstance(document, dict) else document
    return {node["@id"]: node for node in graph if "@id" in node}


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _label(node_id: str, nodes: Dict[str, Dict[str, Any]]) -> str:
    node = nodes.get(node_id, {})
    label = node.get("rdfs:label")
    if label:
        return label
    return node_id.split(":", 1)[-1]


def get_template_properties(
    template: str,
    schema: Union[str, Path] = DEFAULT_SCHEMA,
) -> List[str]:
    """
    Properties governed by a template, in schema order.

    Parameters
    ----------
    template : str
        Template id, e.g. "bts:ProcessedAlignedReadsTemplate"
    schema : Union[str, Path]
        JSON-LD data model (local path or URL)

    Returns
    -------
    List[str]
        Property labels from the template's ``sms:requiresDependency``

    Raises
    ------
    KeyError
        If the template is not defined in the schema
    """
    nodes = load_schema(str(schema))
    if template not in nodes:
        raise KeyError(f"Template {template} not found in schema {schema}")
    dependencies = _as_list(nodes[template].get(DEPENDENCY_PROP))
    props = []
    for dep in dependencies:
        dep_id = dep["@id"] if isinstance(dep, dict) else dep
        label = _label(dep_id, nodes)
        if label not in props:
            props.append(label)
    return props
