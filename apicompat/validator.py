"""Compatibility run orchestration.

A run moves through the stages extract -> diff -> classify -> filter ->
report exactly once. Extraction of the two artifacts happens in parallel;
everything after it is a pure function of the two surfaces and the
configuration.
"""

import logging
import tempfile
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .classifier import Classification, classify
from .config import ValidationConfig
from .diagnostics import Diagnostic, Severity, build_diagnostics
from .differ import Difference, diff_surfaces
from .extractor import extract_surface
from .package_spec import PackageSpec
from .reporter import Report
from .sources import PackageSource, create_source
from .suppression import (
    apply_suppressions,
    generate_suppressions,
    load_suppressions,
    save_suppressions,
)
from .surface import Surface

logger = logging.getLogger(__name__)

Extractor = Callable[..., Surface]


class RunStage(Enum):
    PENDING = 0
    EXTRACTED = 1
    DIFFED = 2
    CLASSIFIED = 3
    FILTERED = 4
    REPORTED = 5


class ValidationRun:
    """One pass over a baseline/candidate pair.

    Stages only move forward, one step at a time; a run object cannot be
    reused for a second comparison.
    """

    def __init__(self, config: Optional[ValidationConfig] = None,
                 extractor: Extractor = extract_surface):
        self.config = config or ValidationConfig()
        self.extractor = extractor
        self.stage = RunStage.PENDING

    def advance(self, stage: RunStage) -> None:
        if stage.value != self.stage.value + 1:
            raise RuntimeError(f"Cannot move run from {self.stage.name} to {stage.name}")
        logger.debug("run stage %s -> %s", self.stage.name, stage.name)
        self.stage = stage

    def extract_pair(self, baseline_path: Path, candidate_path: Path) -> Tuple[Surface, Surface]:
        """Extract both surfaces concurrently.

        The first extraction error is raised and the run stays PENDING.
        """
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="extract") as pool:
            baseline_future = pool.submit(self.extractor, Path(baseline_path))
            candidate_future = pool.submit(self.extractor, Path(candidate_path))
            baseline = baseline_future.result()
            candidate = candidate_future.result()
        logger.info("extracted %s (%d members) and %s (%d members)",
                    baseline.identity, len(baseline), candidate.identity, len(candidate))
        self.advance(RunStage.EXTRACTED)
        return baseline, candidate

    def compare(self, baseline: Surface, candidate: Surface) -> Report:
        """Diff, classify, filter and report two already extracted surfaces."""
        if self.stage is RunStage.PENDING:
            self.advance(RunStage.EXTRACTED)
        config = self.config

        differences = diff_surfaces(baseline, candidate)
        self.advance(RunStage.DIFFED)
        logger.info("%d difference(s) between %s and %s",
                    len(differences), baseline.identity, candidate.identity)

        classified: List[Tuple[Difference, Classification]] = [
            (diff, classify(diff, baseline, candidate)) for diff in differences
        ]
        self.advance(RunStage.CLASSIFIED)

        diagnostics = build_diagnostics(
            classified,
            old_version=baseline.version,
            new_version=candidate.version,
            mode=config.mode,
            prefix=config.diagnostic_prefix,
            overrides=config.severity_overrides,
            downgrade_unstable=config.downgrade_unstable,
        )
        unreported = [c for _, c in classified if not c.is_reportable(config.mode)]
        compatible = Counter(c.category.value for c in unreported if not c.is_breaking)
        source_only = Counter(c.category.value for c in unreported if c.is_breaking)

        existing = load_suppressions(config.suppression_file)
        if config.generate_suppressions:
            suppressions = generate_suppressions(diagnostics, existing)
            save_suppressions(config.suppression_file, suppressions)
            logger.warning("wrote %d suppression(s) to %s",
                           len(suppressions), config.suppression_file)
        else:
            suppressions = existing
        result = apply_suppressions(diagnostics, suppressions)
        self.advance(RunStage.FILTERED)

        reported: List[Diagnostic] = []
        for diag in result.reportable:
            if diag.severity is Severity.NONE:
                logger.debug("diagnostic %s for %s is disabled", diag.id, diag.target)
                continue
            reported.append(diag)

        report = Report(
            baseline=baseline.identity,
            candidate=candidate.identity,
            mode=config.mode,
            diagnostics=reported,
            suppressed=result.suppressed,
            stale=result.stale,
            compatible_changes=dict(compatible),
            source_only_changes=dict(source_only),
        )
        self.advance(RunStage.REPORTED)
        return report


class CompatibilityValidator:
    """Entry point for comparing artifacts under one configuration."""

    def __init__(self, config: Optional[ValidationConfig] = None,
                 extractor: Extractor = extract_surface):
        self.config = config or ValidationConfig()
        self.extractor = extractor

    def _skipped(self, baseline: str, candidate: str) -> Report:
        return Report(baseline=baseline, candidate=candidate, mode=self.config.mode, skipped=True)

    def run(self, baseline_path: Path, candidate_path: Path) -> Report:
        """Compare two artifacts on disk.

        Raises:
            ExtractionError: If either artifact cannot be read
        """
        if not self.config.enabled:
            logger.info("compatibility check disabled; skipping")
            return self._skipped(str(baseline_path), str(candidate_path))
        run = ValidationRun(self.config, self.extractor)
        baseline, candidate = run.extract_pair(baseline_path, candidate_path)
        return run.compare(baseline, candidate)

    def run_against_previous(self, candidate_path: Path, spec: PackageSpec,
                             source: Optional[PackageSource] = None,
                             work_dir: Optional[Path] = None) -> Report:
        """Compare an artifact against a previously published version.

        The baseline is ``spec.version`` when given, otherwise the highest
        published version lower than the candidate's.

        Raises:
            FetchError: If the baseline cannot be resolved or downloaded
            ExtractionError: If either artifact cannot be read
        """
        config = self.config
        if not config.enabled or not config.compare_previous:
            logger.info("comparison against previous version not enabled; skipping")
            return self._skipped(str(spec), str(candidate_path))

        source = source or create_source(spec)
        if work_dir is not None:
            return self._run_against_previous(candidate_path, spec, source, Path(work_dir))
        with tempfile.TemporaryDirectory(prefix="apicompat_") as tmpdir:
            return self._run_against_previous(candidate_path, spec, source, Path(tmpdir))

    def _run_against_previous(self, candidate_path: Path, spec: PackageSpec,
                              source: PackageSource, work_dir: Path) -> Report:
        config = self.config
        run = ValidationRun(config, self.extractor)
        candidate: Optional[Surface] = None

        if spec.channel == "local":
            package, version = str(spec.path), spec.version or ""
        else:
            package, version = spec.package, spec.version
            if version is None:
                candidate = self.extractor(Path(candidate_path))
                version = source.previous_version(
                    package, candidate.version,
                    attempts=config.fetch_attempts, backoff=config.fetch_backoff,
                )
                logger.info("previous version of %s is %s", package, version)

        meta = source.get_package(package, version, work_dir,
                                  attempts=config.fetch_attempts, backoff=config.fetch_backoff)
        if candidate is None:
            baseline, candidate = run.extract_pair(meta.download_path, Path(candidate_path))
        else:
            baseline = self.extractor(meta.download_path)
        return run.compare(baseline, candidate)


def validate_surfaces(baseline: Surface, candidate: Surface,
                      config: Optional[ValidationConfig] = None) -> Report:
    """Run the post-extraction stages over two in-memory surfaces."""
    config = config or ValidationConfig()
    if not config.enabled:
        return Report(baseline=baseline.identity, candidate=candidate.identity,
                      mode=config.mode, skipped=True)
    return ValidationRun(config).compare(baseline, candidate)
