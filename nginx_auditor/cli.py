"""Command-line entry point for the ingress-nginx auditor."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from . import TOOL_NAME, __version__, exit_codes
from .config import (
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_INCLUDE_PATTERNS,
    AuditorConfig,
    load_config,
    split_csv,
)
from .engine import RuleEngine
from .errors import ConfigurationError, SourceUnavailable
from .logging_config import resolve_level, setup_logging
from .orchestrator import MODE_CLUSTER, MODE_REPO, run_scan
from .readers import ReaderOptions
from .readers.cluster import ClusterResourceReader
from .readers.files import FileResourceReader
from .readers.kube import create_kubernetes_api, current_context_name
from .readers.stdin import STDIN_SOURCE, StdinResourceReader
from .reporting import write_reports
from .result import ScanResult, format_summary_table
from .rules import RuleMetadata
from .severity import Severity

logger = logging.getLogger(__name__)

SEVERITY_CHOICES = [severity.value.lower() for severity in Severity]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=TOOL_NAME,
        description="Audit Kubernetes clusters and manifests for ingress-nginx dependencies and migration risks.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR).")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v INFO, -vv DEBUG).")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file.")
    commands = parser.add_subparsers(dest="command", required=True)

    # ---- scan ----
    scan = commands.add_parser("scan", help="Scan for ingress-nginx usage")
    scan_targets = scan.add_subparsers(dest="target", required=True)

    repo = scan_targets.add_parser("repo", help="Scan YAML files in a repository")
    source = repo.add_mutually_exclusive_group(required=True)
    source.add_argument("-p", "--path", help="Directory containing YAML manifests.")
    source.add_argument("--stdin", action="store_true", help="Read YAML from standard input.")
    repo.add_argument(
        "-i", "--include", default=",".join(DEFAULT_INCLUDE_PATTERNS), help="Glob patterns to include (comma-separated)."
    )
    repo.add_argument(
        "-e", "--exclude", default=",".join(DEFAULT_EXCLUDE_PATTERNS), help="Glob patterns to exclude (comma-separated)."
    )
    _add_common_scan_options(repo)
    repo.set_defaults(handler=scan_repo)

    cluster = scan_targets.add_parser("cluster", help="Scan a live Kubernetes cluster")
    cluster.add_argument("-k", "--kubeconfig", help="Path to a kubeconfig file.")
    cluster.add_argument("-c", "--context", help="Kubeconfig context to use.")
    cluster.add_argument(
        "-n", "--namespace", dest="namespaces", action="append", default=[],
        help="Namespace to scan (repeatable or comma-separated; default: all).",
    )
    cluster.add_argument(
        "--exclude-namespace", dest="exclude_namespaces", action="append", default=[],
        help="Namespace to skip (repeatable or comma-separated).",
    )
    cluster.add_argument("-l", "--selector", "--label-selector", dest="selector", help="Label selector.")
    cluster.add_argument("--kinds", help="Resource kinds besides Ingress (comma-separated, e.g. Deployment,ConfigMap).")
    cluster.add_argument("--concurrency", "--api-concurrency", dest="concurrency", type=int, help="Max concurrent API calls.")
    cluster.add_argument("--timeout", type=int, help="Scan timeout in seconds.")
    _add_common_scan_options(cluster)
    cluster.set_defaults(handler=scan_cluster)

    # ---- rules ----
    rules = commands.add_parser("rules", help="Inspect detection rules")
    rule_commands = rules.add_subparsers(dest="rules_command", required=True)

    rules_list = rule_commands.add_parser("list", help="List available rules")
    rules_list.add_argument("--format", choices=["table", "json"], default="table")
    rules_list.add_argument("--category", help="Filter by category (substring, e.g. risk).")
    rules_list.add_argument("--severity", choices=SEVERITY_CHOICES, help="Filter by default severity.")
    rules_list.add_argument("--config", help="Path to configuration file.")
    rules_list.set_defaults(handler=list_rules)

    explain = rule_commands.add_parser("explain", help="Show details for one rule")
    explain.add_argument("rule_id", metavar="RULE_ID")
    explain.add_argument("--format", choices=["text", "json"], default="text")
    explain.add_argument("--config", help="Path to configuration file.")
    explain.set_defaults(handler=explain_rule)
    return parser


def _add_common_scan_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to configuration file.")
    parser.add_argument("-f", "--format", dest="formats", help="Report formats (comma-separated: md,json).")
    parser.add_argument("-o", "--output", dest="output_path", help="Directory for report files.")
    parser.add_argument("--fail-on", choices=SEVERITY_CHOICES, type=str.lower, help="Minimum failing severity.")
    parser.add_argument("--show-annotation-values", action="store_true", help="Include truncated annotation values.")
    parser.add_argument("--confidence-weighted", action="store_true", help="Scale risk scores by confidence.")


# ----------------------------------------------------------------------
# Configuration
# ----------------------------------------------------------------------
def load_cli_config(args: argparse.Namespace) -> AuditorConfig:
    """Load ``--config`` and apply command-line overrides on top."""

    config = load_config(args.config) if getattr(args, "config", None) else AuditorConfig()
    if getattr(args, "fail_on", None):
        config = config.with_fail_on(Severity.parse(args.fail_on))
    if getattr(args, "show_annotation_values", False):
        config = config.with_output(show_annotation_values=True)
    if getattr(args, "confidence_weighted", False):
        config = config.with_output(confidence_weighted=True)
    formats = split_csv(getattr(args, "formats", None))
    if formats:
        config = config.with_output(formats=formats)
    if getattr(args, "output_path", None):
        config = config.with_output(output_path=args.output_path)
    concurrency = getattr(args, "concurrency", None)
    if concurrency is not None:
        if concurrency <= 0:
            raise ConfigurationError(f"--concurrency must be positive, got {concurrency}")
        config = config.with_cluster(api_concurrency=concurrency)
    timeout = getattr(args, "timeout", None)
    if timeout is not None:
        if timeout <= 0:
            raise ConfigurationError(f"--timeout must be positive, got {timeout}")
        config = config.with_cluster(timeout_seconds=timeout)
    return config


def _flatten_csv(values: Iterable[str]) -> List[str]:
    items: List[str] = []
    for value in values:
        items.extend(split_csv(value) or ())
    return items


# ----------------------------------------------------------------------
# scan
# ----------------------------------------------------------------------
def scan_repo(args: argparse.Namespace) -> int:
    config = load_cli_config(args)
    engine = RuleEngine(config=config)

    if args.stdin:
        reader = StdinResourceReader()
        scanned_path = STDIN_SOURCE
    else:
        if not Path(args.path).is_dir():
            print(f"Error: Directory not found: {args.path}", file=sys.stderr)
            return exit_codes.INVALID_CONFIG
        reader = FileResourceReader()
        scanned_path = args.path

    options = ReaderOptions(
        path=args.path,
        include_patterns=split_csv(args.include),
        exclude_patterns=split_csv(args.exclude),
        timeout_seconds=None,
    )
    result = run_scan(reader, options, MODE_REPO, config=config, engine=engine, scanned_path=scanned_path)

    if args.stdin and not reader.had_input:
        print("Warning: No input received from stdin", file=sys.stderr)
        return exit_codes.PARTIAL_FAILURE
    return _finish(result, config)


def scan_cluster(args: argparse.Namespace) -> int:
    config = load_cli_config(args)
    engine = RuleEngine(config=config)
    api = create_kubernetes_api(args.kubeconfig, args.context)
    context = api.context or current_context_name(args.kubeconfig, args.context)

    namespaces = _flatten_csv(args.namespaces)
    excluded = _flatten_csv(args.exclude_namespaces)
    kinds = split_csv(args.kinds)
    options = ReaderOptions(
        include_namespaces=frozenset(namespaces) if namespaces else None,
        exclude_namespaces=frozenset(excluded) if excluded else None,
        label_selector=args.selector,
        resource_kinds=frozenset(kinds) if kinds else None,
        max_concurrency=config.cluster.api_concurrency,
        timeout_seconds=config.cluster.timeout_seconds,
    )
    reader = ClusterResourceReader.from_api(api, options)
    result = run_scan(reader, options, MODE_CLUSTER, config=config, engine=engine, cluster_context=context)
    return _finish(result, config)


def _finish(result: ScanResult, config: AuditorConfig) -> int:
    print(format_summary_table(result))
    written = write_reports(result, config.output.formats, config.output.output_path)
    if written:
        print(f"\nReports written to {written[0].parent}")
    return result.exit_code


# ----------------------------------------------------------------------
# rules
# ----------------------------------------------------------------------
def list_rules(args: argparse.Namespace) -> int:
    engine = RuleEngine(config=load_cli_config(args))
    rules = engine.rule_metadata()
    if args.category:
        rules = [rule for rule in rules if args.category.lower() in rule.category.lower()]
    if args.severity:
        wanted = Severity.parse(args.severity)
        rules = [rule for rule in rules if rule.default_severity is wanted]

    if args.format == "json":
        print(json.dumps([rule.to_dict() for rule in rules], indent=2))
        return exit_codes.SUCCESS

    header = f"{'Rule ID':<28} {'Severity':<9} {'Category':<14} Title"
    print(header)
    print("-" * len(header))
    for rule in rules:
        print(f"{rule.rule_id:<28} {rule.default_severity.value:<9} {rule.category:<14} {rule.title}")
    print(f"\n{len(rules)} rule(s)")
    return exit_codes.SUCCESS


def explain_rule(args: argparse.Namespace) -> int:
    engine = RuleEngine(config=load_cli_config(args))
    matches = engine.rule_metadata(args.rule_id)
    if not matches:
        print(f"Error: Rule '{args.rule_id}' not found", file=sys.stderr)
        print(f"Available rules: {', '.join(engine.registry.rule_ids)}", file=sys.stderr)
        return exit_codes.INVALID_CONFIG
    rule = matches[0]
    if args.format == "json":
        print(json.dumps(rule.to_dict(), indent=2))
    else:
        print(_format_rule(rule))
    return exit_codes.SUCCESS


def _format_rule(rule: RuleMetadata) -> str:
    lines = [
        f"{rule.rule_id}: {rule.title}",
        "=" * 40,
        f"Category   : {rule.category}",
        f"Severity   : {rule.default_severity.value}",
        f"Confidence : {rule.default_confidence.value}",
        "",
        rule.description,
    ]
    if rule.rationale:
        lines.extend(["", f"Why it matters: {rule.rationale}"])
    if rule.recommendations:
        lines.extend(["", "Recommendations:"])
        lines.extend(f"  - {item}" for item in rule.recommendations)
    if rule.tags:
        lines.extend(["", f"Tags: {', '.join(rule.tags)}"])
    if rule.references:
        lines.extend(["", "References:"])
        lines.extend(f"  - {item}" for item in rule.references)
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    flag_level = args.log_level
    if not flag_level and args.verbose:
        flag_level = "DEBUG" if args.verbose > 1 else "INFO"
    setup_logging(resolve_level(flag_level), log_file=args.log_file)

    try:
        return args.handler(args)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return exit_codes.INVALID_CONFIG
    except SourceUnavailable as exc:
        print(f"Fatal error: {exc}", file=sys.stderr)
        return exit_codes.FATAL_ERROR


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
