"""
Configuration Management for nfmanifest

Dataclass-based configuration for a manifest build. The configuration system
supports:

1. Default parameter values matching the standard nf-core output layouts
2. Loading configuration from YAML/JSON files
3. Environment variable overrides
4. Validation of parameter values

Configuration Structure:
- SampleSheetConfig: How sample names in the samplesheet are normalized
- AnnotationConfig: Data model and annotation defaults
- PipelineConfig: Master configuration combining all components

Configuration objects are immutable (frozen dataclasses); use ``update`` to
derive a modified copy.

Example Usage:
    >>> from nfmanifest.config import get_default_config, load_config_from_file
    >>>
    >>> config = get_default_config()
    >>> print(config.annotation.genomic_reference)
    GRCh38
    >>>
    >>> config = load_config_from_file("sarek_run.yaml")
    >>> custom_config = config.update(
    ...     workflow="nf-sarek",
    ...     annotation__add_samtools_stats=False,
    ... )
"""

from dataclasses import dataclass, field, asdict, replace
from pathlib import Path
from typing import Optional, List, Dict, Any, Union
import os
import json
import logging
import re

import yaml

from .rules import WORKFLOW_OUTPUTS, as_output_kind, as_workflow
from .samplesheet import DEFAULT_SAMPLE_SUFFIX
from .schema import DEFAULT_SCHEMA

logger = logging.getLogger(__name__)

ENV_PREFIX = "NFMANIFEST_"
ON_ERROR_MODES = ("collect", "raise")


# ============================================================================
# Samplesheet Configuration
# ============================================================================

@dataclass(frozen=True)
class SampleSheetConfig:
    """
    Configuration for samplesheet parsing.

    Attributes
    ----------
    sample_suffix_pattern : str
        Regular expression removed from sample names, e.g. the technical
        replicate suffix nf-rnaseq adds to merged runs (default: "_T[0-9]$").
        Set to "" to keep sample names as given.
    """
    sample_suffix_pattern: str = DEFAULT_SAMPLE_SUFFIX

    def __post_init__(self):
        try:
            re.compile(self.sample_suffix_pattern)
        except re.error as e:
            raise ValueError(f"sample_suffix_pattern is not a valid regex: {e}")


# ============================================================================
# Annotation Configuration
# ============================================================================

@dataclass(frozen=True)
class AnnotationConfig:
    """
    Configuration for annotation inference.

    Attributes
    ----------
    schema : str
        Path or URL of the JSON-LD data model
    genomic_reference : str
        Reference recorded on aligned reads (default: "GRCh38")
    add_samtools_stats : bool
        Enrich nf-rnaseq aligned reads with samtools stats (default: True)
    """
    schema: str = DEFAULT_SCHEMA
    genomic_reference: str = "GRCh38"
    add_samtools_stats: bool = True

    def __post_init__(self):
        if not self.schema:
            raise ValueError("schema must be a path or URL")
        if not self.genomic_reference:
            raise ValueError("genomic_reference must not be empty")


# ============================================================================
# Master Pipeline Configuration
# ============================================================================

@dataclass(frozen=True)
class PipelineConfig:
    """
    Master configuration for a manifest build.

    Attributes
    ----------
    samplesheet : SampleSheetConfig
        Samplesheet parsing configuration
    annotation : AnnotationConfig
        Annotation configuration
    workflow : str
        "nf-rnaseq" or "nf-sarek" (default: "nf-rnaseq")
    outputs : List[str], optional
        Output kinds to build; None selects all outputs of the workflow
    workflow_link : str, optional
        Link recorded as ``workflowLink`` on every manifest
    on_error : str
        "collect" keeps going and reports failed output kinds, "raise" stops
        at the first failure (default: "collect")
    log_level : str
        Logging level (default: "INFO")
    output_dir : Path
        Directory for manifests and report (default: "manifests")
    """
    samplesheet: SampleSheetConfig = field(default_factory=SampleSheetConfig)
    annotation: AnnotationConfig = field(default_factory=AnnotationConfig)
    workflow: str = "nf-rnaseq"
    outputs: Optional[List[str]] = None
    workflow_link: Optional[str] = None
    on_error: str = "collect"
    log_level: str = "INFO"
    output_dir: Path = field(default_factory=lambda: Path("manifests"))

    def __post_init__(self):
        """Validate and normalize configuration."""
        if isinstance(self.output_dir, str):
            object.__setattr__(self, 'output_dir', Path(self.output_dir))

        workflow = as_workflow(self.workflow)
        object.__setattr__(self, 'workflow', workflow.value)

        if isinstance(self.outputs, str):
            object.__setattr__(self, 'outputs', [self.outputs])
        if self.outputs is not None:
            kinds = [as_output_kind(o) for o in self.outputs]
            unsupported = [k.value for k in kinds if k not in WORKFLOW_OUTPUTS[workflow]]
            if unsupported:
                raise ValueError(f"Outputs not produced by {workflow.value}: {unsupported}")
            object.__setattr__(self, 'outputs', [k.value for k in kinds])

        if self.on_error not in ON_ERROR_MODES:
            raise ValueError(f"on_error must be one of {list(ON_ERROR_MODES)}")

        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")

    def update(self, **kwargs) -> 'PipelineConfig':
        """
        Create a new configuration with updated values.

        Supports nested updates using double underscore notation:
        config.update(annotation__genomic_reference="GRCh37")

        Parameters
        ----------
        **kwargs
            Configuration parameters to update

        Returns
        -------
        PipelineConfig
            New configuration object with updates
        """
        top_level = {}
        nested = {}

        for key, value in kwargs.items():
            if '__' in key:
                component, param = key.split('__', 1)
                nested.setdefault(component, {})[param] = value
            else:
                top_level[key] = value

        for component, updates in nested.items():
            current = getattr(self, component)
            top_level[component] = replace(current, **updates)

        return replace(self, **top_level)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_yaml(self, output_path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        config_dict = _convert_paths_to_strings(self.to_dict())

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {path}")

    def to_json(self, output_path: Union[str, Path]) -> None:
        """Save configuration to a JSON file."""
        config_dict = _convert_paths_to_strings(self.to_dict())

        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            json.dump(config_dict, f, indent=2)

        logger.info(f"Configuration saved to {path}")


# ============================================================================
# Helper Functions
# ============================================================================

def get_default_config() -> PipelineConfig:
    """
    Get default configuration.

    Examples
    --------
    >>> config = get_default_config()
    >>> config.workflow
    'nf-rnaseq'
    """
    return PipelineConfig()


def load_config_from_file(config_path: Union[str, Path]) -> PipelineConfig:
    """
    Load configuration from YAML or JSON file.

    Automatically detects file format based on extension.

    Parameters
    ----------
    config_path : Union[str, Path]
        Path to configuration file (.yaml, .yml, or .json)

    Returns
    -------
    PipelineConfig
        Loaded configuration

    Raises
    ------
    FileNotFoundError
        If configuration file doesn't exist
    ValueError
        If file format is not supported
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()

    with open(path, 'r') as f:
        if suffix in ['.yaml', '.yml']:
            config_dict = yaml.safe_load(f) or {}
        elif suffix == '.json':
            config_dict = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {suffix}")

    logger.info(f"Loaded configuration from {path}")
    return _dict_to_config(config_dict)


def _dict_to_config(config_dict: Dict[str, Any]) -> PipelineConfig:
    """Convert a (possibly partial) nested dictionary to PipelineConfig."""
    config_dict = dict(config_dict)
    nested_configs = {}

    if 'samplesheet' in config_dict:
        nested_configs['samplesheet'] = SampleSheetConfig(**config_dict.pop('samplesheet'))

    if 'annotation' in config_dict:
        nested_configs['annotation'] = AnnotationConfig(**config_dict.pop('annotation'))

    return PipelineConfig(**nested_configs, **config_dict)


def _convert_paths_to_strings(obj: Any) -> Any:
    """Recursively convert Path objects to strings for serialization."""
    if isinstance(obj, Path):
        return str(obj)
    elif isinstance(obj, dict):
        return {k: _convert_paths_to_strings(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_convert_paths_to_strings(item) for item in obj]
    else:
        return obj


def load_config_from_env() -> Dict[str, Any]:
    """
    Load configuration overrides from environment variables.

    Environment variables are prefixed with NFMANIFEST_ and use double
    underscores for nesting:

    NFMANIFEST_WORKFLOW=nf-sarek
    NFMANIFEST_ANNOTATION__GENOMIC_REFERENCE=GRCh37

    Returns
    -------
    Dict[str, Any]
        Overrides suitable for ``PipelineConfig.update``
    """
    overrides = {}

    for key, value in os.environ.items():
        if key.startswith(ENV_PREFIX):
            config_key = key[len(ENV_PREFIX):].lower()
            overrides[config_key] = _parse_env_value(value)

    if overrides:
        logger.debug(f"Loaded {len(overrides)} configuration overrides from environment")

    return overrides


def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate type."""
    if value.lower() in ['true', 'yes']:
        return True
    if value.lower() in ['false', 'no']:
        return False
    # Comma-separated lists, e.g. NFMANIFEST_OUTPUTS=Strelka2,Mutect2
    if ',' in value:
        return [v.strip() for v in value.split(',') if v.strip()]
    return value


def validate_config(config: PipelineConfig) -> List[str]:
    """
    Validate configuration and return list of warnings.

    Parameters
    ----------
    config : PipelineConfig
        Configuration to validate

    Returns
    -------
    List[str]
        List of warning messages (empty if no issues)
    """
    warnings = []

    schema = config.annotation.schema
    if not schema.startswith(("http://", "https://")) and not Path(schema).exists():
        warnings.append(f"Schema file not found: {schema}")

    if config.workflow_link is None:
        warnings.append("No workflow_link set; manifests will have an empty workflowLink.")
    elif not config.workflow_link.startswith(("http://", "https://")):
        warnings.append(f"workflow_link ({config.workflow_link}) does not look like a URL.")

    if config.workflow == "nf-sarek" and config.outputs is None:
        warnings.append(
            "All nf-sarek callers selected; typically only a subset was run, "
            "consider setting outputs."
        )

    if config.annotation.genomic_reference not in ("GRCh38", "GRCh37", "hg38", "hg19"):
        warnings.append(
            f"Unusual genomic_reference ({config.annotation.genomic_reference})."
        )

    return warnings


# ============================================================================
# Configuration Templates
# ============================================================================

def create_config_template(output_path: Union[str, Path], format: str = "yaml") -> None:
    """
    Create a configuration template file.

    Parameters
    ----------
    output_path : Union[str, Path]
        Output file path
    format : str
        File format: "yaml" or "json" (default: "yaml")
    """
    config = get_default_config()

    if format.lower() == "yaml":
        config.to_yaml(output_path)
    elif format.lower() == "json":
        config.to_json(output_path)
    else:
        raise ValueError(f"Unsupported format: {format}")

    logger.info(f"Created configuration template: {output_path}")
