"""CLI interface for apicompat."""

import argparse
import json
import logging
import sys
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from . import __version__
from .classifier import ValidationMode
from .config import ValidationConfig
from .diagnostics import Severity
from .errors import ApiCompatError
from .extractor import extract_surface
from .package_spec import PackageSpec
from .reporter import EXIT_ERROR, EXIT_OK, Report
from .sources import create_source
from .validator import CompatibilityValidator

logger = logging.getLogger(__name__)


def _parse_severity_overrides(values: Optional[List[str]]) -> Dict[str, Severity]:
    """Parse repeated ``--severity ID=LEVEL`` options."""
    overrides = {}
    for item in values or []:
        if "=" not in item:
            raise ValueError(f"Invalid --severity '{item}'. Expected ID=LEVEL")
        diag_id, level = item.split("=", 1)
        diag_id, level = diag_id.strip(), level.strip().lower()
        try:
            overrides[diag_id] = Severity(level)
        except ValueError:
            choices = ", ".join(s.value for s in Severity)
            raise ValueError(f"Invalid severity '{level}' for {diag_id}. Choose from: {choices}") from None
    return overrides


def _build_config(args) -> ValidationConfig:
    """Layer command-line options over the config file (if any)."""
    config = ValidationConfig.from_json(Path(args.config)) if args.config else ValidationConfig()

    changes = {}
    if args.disable:
        changes["enabled"] = False
    if args.suppressions:
        changes["suppression_file"] = Path(args.suppressions)
    if args.generate_suppressions:
        changes["generate_suppressions"] = True
    if args.mode:
        changes["mode"] = ValidationMode(args.mode)
    if args.severity:
        overrides = dict(config.severity_overrides)
        overrides.update(_parse_severity_overrides(args.severity))
        changes["severity_overrides"] = overrides
    if args.diagnostic_prefix:
        changes["diagnostic_prefix"] = args.diagnostic_prefix
    if getattr(args, "compare_previous", False):
        changes["compare_previous"] = True
    return config.with_options(**changes) if changes else config


def _write_output(text: str, output: Optional[str]) -> None:
    if output:
        Path(output).write_text(text if text.endswith("\n") else text + "\n", encoding="utf-8")
    else:
        print(text)


def _emit_report(report: Report, args) -> int:
    _write_output(report.render(args.format), args.output)
    if args.output and args.format != "text":
        print(report.format_summary(), file=sys.stderr)
    return report.exit_code


def _fetch_artifact(value: str, work_dir: Path, config: ValidationConfig,
                    index_url: Optional[str]) -> Path:
    """Turn a compare operand into an artifact path.

    Existing paths are used as-is; anything else must be a package spec.
    """
    path = Path(value).expanduser()
    if path.exists():
        return path
    spec = PackageSpec.parse(value)
    source = create_source(spec, index_url=index_url)
    if spec.channel == "local":
        return spec.path
    meta = source.get_package(spec.package, spec.version, work_dir / spec.package,
                              attempts=config.fetch_attempts, backoff=config.fetch_backoff)
    return meta.download_path


def cmd_compare(args):
    """Execute compare command."""
    try:
        config = _build_config(args)
        validator = CompatibilityValidator(config)
        with tempfile.TemporaryDirectory(prefix="apicompat_") as tmpdir:
            tmp = Path(tmpdir)
            if config.enabled:
                old_path = _fetch_artifact(args.old, tmp / "old", config, args.index_url)
                new_path = _fetch_artifact(args.new, tmp / "new", config, args.index_url)
            else:
                old_path, new_path = Path(args.old), Path(args.new)
            logger.info("Comparing %s → %s", old_path, new_path)
            report = validator.run(old_path, new_path)
        return _emit_report(report, args)

    except (ApiCompatError, ValueError, OSError) as e:
        if args.verbose:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


def cmd_validate(args):
    """Compare a candidate artifact against a previously published version."""
    try:
        spec = PackageSpec.parse(args.spec, require_version=False)
        if args.baseline_version:
            if spec.channel == "local":
                raise ValueError("--baseline-version cannot be used with a local spec")
            spec = PackageSpec.parse(f"{spec.channel}:{spec.package}=={args.baseline_version}")
        config = _build_config(args)
        source = create_source(spec, index_url=args.index_url)
        report = CompatibilityValidator(config).run_against_previous(
            Path(args.candidate), spec, source=source)
        return _emit_report(report, args)

    except (ApiCompatError, ValueError, OSError) as e:
        if args.verbose:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


def cmd_extract(args):
    """Write the API surface of an artifact as a JSON snapshot."""
    try:
        surface = extract_surface(Path(args.artifact), name=args.name, version=args.version)
    except (ApiCompatError, ValueError, OSError) as e:
        if args.verbose:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.output:
        surface.save(Path(args.output))
        print(f"Wrote {len(surface)} members of {surface.identity} to {args.output}",
              file=sys.stderr)
    else:
        print(json.dumps(surface.to_dict(), indent=2))
    return EXIT_OK


def cmd_list(args):
    """List available versions for a package spec."""
    try:
        spec = PackageSpec.parse(args.spec, require_version=False)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if spec.channel == "local":
        print("Error: list not supported for channel 'local'", file=sys.stderr)
        return EXIT_ERROR

    try:
        source = create_source(spec, index_url=args.index_url)
        versions = source.list_versions(spec.package)
    except (ApiCompatError, ValueError) as e:
        print(f"Error fetching versions: {e}", file=sys.stderr)
        return EXIT_ERROR

    if not versions:
        print(f"No versions found for {spec.channel}:{spec.package}", file=sys.stderr)
        return EXIT_ERROR

    if args.format == "json":
        print(json.dumps([v.version for v in versions], indent=2))
    else:
        print(f"Versions for {spec.channel}:{spec.package} ({len(versions)} total):")
        for v in versions:
            print(f"  {v.version}")
    return EXIT_OK


def _add_run_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", metavar="FILE", help="JSON configuration file")
    p.add_argument("--format", choices=["text", "json", "markdown"], default="text",
                   help="Report format (default: text)")
    p.add_argument("--output", metavar="FILE", help="Write report to FILE instead of stdout")
    p.add_argument("--suppressions", metavar="FILE",
                   help="JSON file of acknowledged breaking changes")
    p.add_argument("--generate-suppressions", action="store_true",
                   help="Accept all current breaking changes into the suppression file")
    p.add_argument("--mode", choices=[m.value for m in ValidationMode],
                   help="binary: binary breaks only; full: also source breaks (default)")
    p.add_argument("--severity", action="append", metavar="ID=LEVEL",
                   help="Override severity of a diagnostic id (error, warning, none); repeatable")
    p.add_argument("--diagnostic-prefix", metavar="PREFIX",
                   help="Prefix for diagnostic ids (default: APICOMPAT)")
    p.add_argument("--disable", action="store_true",
                   help="Skip the check entirely (always passes)")
    p.add_argument("--index-url", metavar="URL",
                   help="PyPI-compatible index base URL (default: https://pypi.org)")
    p.add_argument("-v", "--verbose", action="store_true")


def create_parser():
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="apicompat",
        description="API compatibility checker for Python libraries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Compare two local builds
  apicompat compare dist/mylib-1.0.0-py3-none-any.whl dist/mylib-2.0.0-py3-none-any.whl

  # Compare a published release with a source tree
  apicompat compare pypi:mylib=1.0.0 ./src

  # Check a build against the previously published version
  apicompat validate dist/mylib-2.0.0-py3-none-any.whl pypi:mylib --compare-previous

  # Snapshot a surface for later comparison
  apicompat extract dist/mylib-1.0.0-py3-none-any.whl -o mylib-1.0.0.json

Exit codes:
  0  = No unsuppressed breaking changes
  1  = Fatal error (extraction, fetch or usage)
  12 = Breaking changes
"""
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # compare
    cp = subparsers.add_parser("compare", help="Compare the API of two artifacts")
    cp.add_argument("old", help="Baseline artifact path or package spec (channel:package=version)")
    cp.add_argument("new", help="Candidate artifact path or package spec")
    _add_run_options(cp)

    # validate
    val = subparsers.add_parser("validate",
        help="Compare an artifact against the previously published version")
    val.add_argument("candidate", help="Candidate artifact (wheel, sdist, directory, snapshot)")
    val.add_argument("spec", help="Package spec: channel:package[=version] (e.g. pypi:mylib)")
    val.add_argument("--baseline-version", metavar="VERSION",
                     help="Compare against VERSION instead of the latest earlier release")
    val.add_argument("--compare-previous", action="store_true",
                     help="Enable comparison against the previous version (network access)")
    _add_run_options(val)

    # extract
    ex = subparsers.add_parser("extract", help="Write an artifact's API surface as JSON")
    ex.add_argument("artifact", help="Wheel, sdist, zip, directory or .py file")
    ex.add_argument("-o", "--output", metavar="FILE", help="Snapshot file (default: stdout)")
    ex.add_argument("--name", help="Library name (default: inferred)")
    ex.add_argument("--version", dest="version", help="Library version (default: inferred)")
    ex.add_argument("-v", "--verbose", action="store_true")

    # list
    lst = subparsers.add_parser("list", help="List available versions for a package")
    lst.add_argument("spec", help="Package spec: channel:package (e.g. pypi:requests)")
    lst.add_argument("--format", choices=["text", "json"], default="text")
    lst.add_argument("--index-url", metavar="URL",
                     help="PyPI-compatible index base URL (default: https://pypi.org)")
    lst.add_argument("-v", "--verbose", action="store_true")

    return parser


def main(argv: Optional[List[str]] = None):
    """Entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_ERROR

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    handlers = {
        "compare":  cmd_compare,
        "validate": cmd_validate,
        "extract":  cmd_extract,
        "list":     cmd_list,
    }
    return handlers[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
