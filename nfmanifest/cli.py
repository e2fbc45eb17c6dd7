#!/usr/bin/env python3
"""
nfmanifest Command-Line Interface

Builds annotation manifests for nf-core workflow outputs from a samplesheet
and a fileview export, and submits reviewed manifests to the annotation
store.

Subcommands:
  build            (default) classify outputs and write manifests
  submit           apply a manifest's annotations to the annotation store
  config-template  write a default configuration file
"""

import argparse
import sys
import logging
from pathlib import Path
from typing import List, Optional

from . import __version__, config, reports, utils
from .annotations import annotate_with_manifest
from .core import run_build, write_manifests
from .exceptions import ManifestError
from .rules import OutputKind, Workflow
from .store import FileviewIndex, JsonAnnotationStore

logger = logging.getLogger(__name__)


def _build_config(args: argparse.Namespace) -> config.PipelineConfig:
    """File config, then environment overrides, then command-line flags."""
    if args.config is not None:
        cfg = config.load_config_from_file(args.config)
    else:
        cfg = config.get_default_config()

    cfg = cfg.update(**config.load_config_from_env())

    overrides = {}
    if args.workflow is not None:
        overrides['workflow'] = args.workflow
    if args.outputs is not None:
        overrides['outputs'] = args.outputs
    if args.workflow_link is not None:
        overrides['workflow_link'] = args.workflow_link
    if args.schema is not None:
        overrides['annotation__schema'] = args.schema
    if args.genomic_reference is not None:
        overrides['annotation__genomic_reference'] = args.genomic_reference
    if args.no_samtools_stats:
        overrides['annotation__add_samtools_stats'] = False
    if args.sample_suffix is not None:
        overrides['samplesheet__sample_suffix_pattern'] = args.sample_suffix
    if args.on_error is not None:
        overrides['on_error'] = args.on_error
    if args.output is not None:
        overrides['output_dir'] = args.output
    overrides['log_level'] = args.log_level

    return cfg.update(**overrides)


def main_build(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point for the 'build' subcommand.

    Example:
        nfmanifest build pipeline_info/samplesheet.valid.csv \
            --fileview fileview.tsv \
            --output-dir-id syn51476537 \
            --annotations annotations.json \
            --workflow nf-sarek --outputs Strelka2 Mutect2 \
            --workflow-link https://nf-co.re/sarek/3.4.2
    """
    parser = argparse.ArgumentParser(
        prog="nfmanifest build",
        description="Build annotation manifests for processed nf-core workflow outputs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # nf-rnaseq, all outputs under star_salmon
  nfmanifest build samplesheet.csv --fileview fileview.tsv \\
      --output-dir-id syn3 --annotations annotations.json

  # nf-sarek, only the callers that were run
  nfmanifest build syn12345 --fileview fileview.tsv --output-dir-id syn7 \\
      --annotations annotations.json --workflow nf-sarek --outputs Strelka2 Mutect2

Configuration precedence: --config file < NFMANIFEST_* environment < flags
        """
    )

    parser.add_argument(
        'samplesheet',
        type=str,
        help='Samplesheet path or identifier of a samplesheet in the fileview'
    )
    parser.add_argument(
        '--fileview',
        required=True,
        type=Path,
        help='Fileview export (TSV/CSV with id, name, type, parentId, path)'
    )
    parser.add_argument(
        '--output-dir-id',
        required=True,
        type=str,
        help='Identifier of the workflow output folder (e.g. star_salmon or VariantCalling)'
    )
    parser.add_argument(
        '--annotations',
        required=True,
        type=Path,
        help='JSON annotation store holding the input file annotations'
    )
    parser.add_argument(
        '--workflow',
        choices=[w.value for w in Workflow],
        default=None,
        help='Workflow that produced the outputs (default: nf-rnaseq)'
    )
    parser.add_argument(
        '--outputs',
        nargs='+',
        choices=[k.value for k in OutputKind],
        default=None,
        help='Output kinds to build (default: all outputs of the workflow)'
    )
    parser.add_argument(
        '--workflow-link',
        type=str,
        default=None,
        help='Link to the workflow (version) recorded as workflowLink'
    )
    parser.add_argument(
        '--schema',
        type=str,
        default=None,
        help='JSON-LD data model path or URL (default: NF metadata dictionary)'
    )
    parser.add_argument(
        '--genomic-reference',
        type=str,
        default=None,
        help='Genomic reference for aligned reads (default: GRCh38)'
    )
    parser.add_argument(
        '--no-samtools-stats',
        action='store_true',
        help='Do not enrich aligned reads with samtools stats'
    )
    parser.add_argument(
        '--sample-suffix',
        type=str,
        default=None,
        help='Regex removed from samplesheet sample names (default: "_T[0-9]$")'
    )
    parser.add_argument(
        '--on-error',
        choices=list(config.ON_ERROR_MODES),
        default=None,
        help='Keep going past failed output kinds ("collect", default) or stop ("raise")'
    )
    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='YAML/JSON configuration file'
    )
    parser.add_argument(
        '--output', '--output-dir',
        type=Path,
        default=None,
        help='Directory for manifests and report (default: manifests)'
    )
    parser.add_argument(
        '--no-report',
        action='store_true',
        help='Skip generating HTML summary report'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Logging verbosity (default: INFO)'
    )

    args = parser.parse_args(argv)

    if not args.fileview.exists():
        print(f"Error: Fileview not found: {args.fileview}", file=sys.stderr)
        return 1

    try:
        cfg = _build_config(args)
    except (ValueError, TypeError, FileNotFoundError) as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        return 1

    output_dir = cfg.output_dir.resolve()
    output_dir.mkdir(parents=True, exist_ok=True)
    log_file = output_dir / "nfmanifest.log"
    utils.setup_logging(log_level=cfg.log_level, log_file=str(log_file))

    for warning in config.validate_config(cfg):
        logger.warning(warning)

    try:
        file_index = FileviewIndex.from_file(args.fileview)
        store = JsonAnnotationStore(args.annotations)
        result = run_build(args.samplesheet, args.output_dir_id, file_index, store, cfg)
    except KeyboardInterrupt:
        print("\n\nBuild interrupted by user", file=sys.stderr)
        return 130
    except (ManifestError, ValueError, LookupError, OSError) as e:
        logger.error(f"Build failed with error: {e}", exc_info=True)
        print(f"\nError: Build failed. Check log file: {log_file}", file=sys.stderr)
        return 1

    files = write_manifests(result, output_dir)
    cfg.to_yaml(output_dir / "nfmanifest_config.yaml")

    if not args.no_report:
        reports.generate_html_report(
            result, output_dir, title=f"{cfg.workflow} manifests", version=__version__
        )

    print("=" * 80)
    print(f"Manifests written to {output_dir}")
    for output_kind, path in files.items():
        print(f"  {output_kind}: {path.name}")
    for output_kind, error in result.errors.items():
        print(f"  FAILED {output_kind}: {error}")
    print("=" * 80)

    return 0 if result.success else 1


def main_submit(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point for the 'submit' subcommand.

    Example:
        nfmanifest submit manifests/strelka2_manifest.csv --annotations annotations.json
    """
    parser = argparse.ArgumentParser(
        prog="nfmanifest submit",
        description="Apply a reviewed manifest to the annotation store",
    )
    parser.add_argument(
        'manifest',
        type=Path,
        help='Manifest CSV/TSV with an entityId column',
    )
    parser.add_argument(
        '--annotations',
        required=True,
        type=Path,
        help='JSON annotation store to update',
    )
    parser.add_argument(
        '--keep-na',
        action='store_true',
        help='Also submit NA values',
    )
    parser.add_argument(
        '--keep-blank',
        action='store_true',
        help='Also submit empty strings',
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Logging verbosity (default: INFO)',
    )

    args = parser.parse_args(argv)
    utils.setup_logging(log_level=args.log_level)

    if not args.manifest.exists():
        print(f"Error: Manifest not found: {args.manifest}", file=sys.stderr)
        return 1

    manifest = utils.read_table(args.manifest)
    store = JsonAnnotationStore(args.annotations)
    try:
        annotated = annotate_with_manifest(
            store, manifest, ignore_na=not args.keep_na, ignore_blank=not args.keep_blank
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Annotated {len(annotated)} entities in {args.annotations}")
    return 0


def main_config_template(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the 'config-template' subcommand."""
    parser = argparse.ArgumentParser(
        prog="nfmanifest config-template",
        description="Write a configuration file with default values",
    )
    parser.add_argument('path', type=Path, help='Output file (.yaml or .json)')
    args = parser.parse_args(argv)

    fmt = "json" if args.path.suffix.lower() == ".json" else "yaml"
    config.create_config_template(args.path, format=fmt)
    print(f"Configuration template written to {args.path}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    argv = sys.argv[1:] if argv is None else list(argv)

    if argv and argv[0] in ("--version", "-V"):
        print(f"nfmanifest {__version__}")
        return 0
    if argv and argv[0] == "submit":
        return main_submit(argv[1:])
    if argv and argv[0] == "config-template":
        return main_config_template(argv[1:])
    if argv and argv[0] == "build":
        argv = argv[1:]
    return main_build(argv)


if __name__ == '__main__':
    sys.exit(main())
