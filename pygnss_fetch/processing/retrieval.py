"""
Retrieval orchestrator.

Executes one RetrievalUnit end to end:

    witness check -> fetch -> decompress (.gz, then .Z) -> rename
    -> Hatanaka conversion -> transient directory cleanup -> outcome

Every step works inside the unit's explicit target directory; the
process working directory is never changed, so units can run on
worker threads.

The outcome is decided by the existence of the canonical local file.
The transfer agent's status is kept on the outcome for diagnostics.
"""

from __future__ import annotations

import shutil
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

from pygnss_fetch.data_access.transfer import (
    COMPRESSION_SUFFIXES,
    TransferAgent,
    TransferReport,
    TransferStatus,
    select_latest,
    strip_compression,
)
from pygnss_fetch.products.naming import (
    BulkMember,
    BulkPlan,
    FilenameSynthesizer,
    RetrievalPlan,
    RetrievalUnit,
)
from pygnss_fetch.utils.compression import Decompressor, HatanakaConverter
from pygnss_fetch.utils.logging import get_logger


logger = get_logger(__name__)


class OutcomeStatus(str, Enum):
    """Final state of a retrieval unit."""

    ALREADY_PRESENT = "already_present"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


@dataclass
class RetrievalOutcome:
    """Result of one retrieval unit."""

    status: OutcomeStatus
    unit: RetrievalUnit
    local_path: Path | None = None
    reason: str = ""
    transfer: TransferReport | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status != OutcomeStatus.FAILED

    @property
    def name(self) -> str:
        return self.local_path.name if self.local_path else self.unit.label

    @property
    def message(self) -> str:
        """Console status line."""
        if self.status == OutcomeStatus.ALREADY_PRESENT:
            return f"{self.name} has existed"
        if self.status == OutcomeStatus.DOWNLOADED:
            return f"successfully downloaded {self.name}"
        if self.reason:
            return f"failed to download {self.name} ({self.reason})"
        return f"failed to download {self.name}"


class RetrievalOrchestrator:
    """Runs the retrieval state machine for single units and bulk fetches.

    Args:
        transfer: Transfer agent used for every fetch
        decompressor: Decompression utility (default: Decompressor())
        converter: Hatanaka converter (default: HatanakaConverter())
        synthesizer: Filename synthesizer used when no plan is given
        max_retries: Extra attempts after a network error or timeout
        retry_delay: Seconds to wait between attempts
        timeout: Per-fetch timeout in seconds (agent default if None)
    """

    def __init__(
        self,
        transfer: TransferAgent,
        decompressor: Decompressor | None = None,
        converter: HatanakaConverter | None = None,
        synthesizer: FilenameSynthesizer | None = None,
        max_retries: int = 0,
        retry_delay: float = 0.0,
        timeout: int | None = None,
    ):
        self.transfer = transfer
        self.decompressor = decompressor or Decompressor()
        self.converter = converter or HatanakaConverter()
        self.synthesizer = synthesizer or FilenameSynthesizer()
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Single unit

    def retrieve(self, unit: RetrievalUnit, plan: RetrievalPlan | None = None) -> RetrievalOutcome:
        """Retrieve one unit into its target directory.

        Raises:
            NoTemplateError: No naming rule for the unit (only when ``plan`` is None)
        """
        plan = plan or self.synthesizer.synthesize(unit)
        target_dir = Path(unit.target_dir)
        target_dir.mkdir(parents=True, exist_ok=True)

        for name in plan.idempotency_names:
            if (target_dir / name).exists():
                logger.debug("Already present", unit=unit.label, file=name)
                return RetrievalOutcome(
                    OutcomeStatus.ALREADY_PRESENT, unit, target_dir / name,
                )

        outcome = self._execute(unit, plan, target_dir)
        if not outcome.success and plan.fallback is not None:
            logger.info(
                "Trying fallback product",
                unit=unit.label,
                failed=plan.description,
                fallback=plan.fallback.description,
            )
            fallback = self._execute(unit, plan.fallback, target_dir)
            fallback.warnings = outcome.warnings + fallback.warnings
            if not fallback.success:
                fallback.reason = f"{outcome.reason}; fallback: {fallback.reason}"
            return fallback
        return outcome

    def _execute(self, unit: RetrievalUnit, plan: RetrievalPlan, target_dir: Path) -> RetrievalOutcome:
        local_path = target_dir / plan.local_name
        report = self._fetch(plan.url, plan.fetch_pattern, target_dir, plan.path_depth, single=True)
        warnings = list(report.warnings)
        errors: list[str] = []

        artifact = self._local_artifact(plan, target_dir, warnings, errors)
        if artifact is not None and plan.rename_to and artifact.name != plan.rename_to:
            artifact = artifact.rename(target_dir / plan.rename_to)
        if artifact is not None and plan.convert and artifact != local_path:
            result = self.converter.convert(artifact, local_path)
            if result.success:
                artifact.unlink(missing_ok=True)
            else:
                errors.append(result.error)

        self._cleanup(plan.cleanup_dirs, target_dir)

        for warning in warnings:
            logger.warning("Ambiguous match", unit=unit.label, detail=warning)

        if local_path.exists():
            logger.info("Downloaded", unit=unit.label, file=str(local_path))
            return RetrievalOutcome(
                OutcomeStatus.DOWNLOADED, unit, local_path,
                transfer=report, warnings=warnings,
            )

        reason = "; ".join(errors) if errors else _failure_reason(report)
        logger.warning(
            "Retrieval failed",
            unit=unit.label,
            url=plan.url,
            pattern=plan.remote_pattern,
            transfer_status=report.status.value,
            reason=reason,
        )
        return RetrievalOutcome(
            OutcomeStatus.FAILED, unit, local_path,
            reason=reason, transfer=report, warnings=warnings,
        )

    def _local_artifact(
        self,
        plan: RetrievalPlan,
        target_dir: Path,
        warnings: list[str],
        errors: list[str],
    ) -> Path | None:
        """Decompressed file matching the plan's remote pattern, if any."""
        if plan.compressed:
            for suffix in COMPRESSION_SUFFIXES:
                candidates = _matching(target_dir, plan.remote_pattern + suffix)
                if not candidates:
                    continue
                chosen, warning = select_latest(candidates)
                if warning:
                    warnings.append(warning)
                result = self.decompressor.decompress(target_dir / chosen)
                if result.success:
                    _discard_variants(target_dir, chosen)
                    return result.output_path
                errors.append(result.error)

        candidates = _matching(target_dir, plan.remote_pattern)
        chosen, warning = select_latest(candidates)
        if warning:
            warnings.append(warning)
        return target_dir / chosen if chosen else None

    # ------------------------------------------------------------------
    # All-stations mode

    def retrieve_bulk(
        self,
        unit: RetrievalUnit,
        plan: BulkPlan | None = None,
        quarter_subdirs: bool = False,
    ) -> list[RetrievalOutcome]:
        """Fetch every station file of a network-wide pattern.

        Each extracted file becomes its own outcome, with the site taken
        from the first four characters of its name.

        Raises:
            NoTemplateError: The category has no all-stations mode (only when ``plan`` is None)
        """
        plan = plan or self.synthesizer.synthesize_bulk(unit)
        target_dir = Path(unit.target_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        present_before = {p.name for p in target_dir.iterdir()}

        report = self._fetch(plan.url, plan.fetch_pattern, target_dir, plan.path_depth, single=False)

        outcomes: list[RetrievalOutcome] = []
        for member in plan.members:
            out_dir = target_dir / member.quarter if quarter_subdirs and member.quarter else target_dir
            for names in _variants(target_dir, member.member_glob).values():
                errors = []
                for name in names:
                    result = self.decompressor.decompress(target_dir / name)
                    if result.success:
                        _discard_variants(target_dir, name)
                        break
                    errors.append(result.error)
                else:
                    outcomes.append(
                        self._bulk_failure(unit, member.quarter, target_dir / names[0], "; ".join(errors), report)
                    )

            for name in _matching(target_dir, member.member_glob):
                outcomes.append(
                    self._finish_member(unit, member, target_dir / name, out_dir, present_before, report)
                )

        if not outcomes:
            reason = _failure_reason(report)
            logger.warning(
                "Bulk retrieval found nothing",
                unit=unit.label,
                url=plan.url,
                pattern=plan.remote_pattern,
                transfer_status=report.status.value,
            )
            return [RetrievalOutcome(OutcomeStatus.FAILED, unit, None, reason=reason, transfer=report)]

        logger.info(
            "Bulk retrieval finished",
            unit=unit.label,
            files=len(outcomes),
            failed=sum(1 for o in outcomes if not o.success),
        )
        return outcomes

    def _finish_member(
        self,
        unit: RetrievalUnit,
        member: BulkMember,
        extracted: Path,
        out_dir: Path,
        present_before: set[str],
        report: TransferReport,
    ) -> RetrievalOutcome:
        site = extracted.name[:4].lower()
        member_unit = replace(unit, site=site, quarter=member.quarter, target_dir=out_dir)
        local_path = out_dir / member.local_name(site)

        if local_path == extracted:
            status = (
                OutcomeStatus.ALREADY_PRESENT
                if extracted.name in present_before
                else OutcomeStatus.DOWNLOADED
            )
            return RetrievalOutcome(status, member_unit, local_path, transfer=report)

        if local_path.exists():
            extracted.unlink(missing_ok=True)
            return RetrievalOutcome(OutcomeStatus.ALREADY_PRESENT, member_unit, local_path, transfer=report)

        out_dir.mkdir(parents=True, exist_ok=True)
        intermediate = out_dir / member.intermediate_name(site)
        if intermediate != extracted:
            extracted = extracted.rename(intermediate)

        if intermediate != local_path:
            result = self.converter.convert(intermediate, local_path)
            if not result.success:
                return RetrievalOutcome(
                    OutcomeStatus.FAILED, member_unit, local_path,
                    reason=result.error, transfer=report,
                )
            intermediate.unlink(missing_ok=True)

        if not local_path.exists():
            return RetrievalOutcome(
                OutcomeStatus.FAILED, member_unit, local_path,
                reason="converted file missing", transfer=report,
            )
        return RetrievalOutcome(OutcomeStatus.DOWNLOADED, member_unit, local_path, transfer=report)

    def _bulk_failure(
        self,
        unit: RetrievalUnit,
        quarter: str | None,
        path: Path,
        error: str,
        report: TransferReport,
    ) -> RetrievalOutcome:
        member_unit = replace(unit, site=path.name[:4].lower(), quarter=quarter)
        return RetrievalOutcome(OutcomeStatus.FAILED, member_unit, path, reason=error, transfer=report)

    # ------------------------------------------------------------------
    # Shared steps

    def _fetch(
        self,
        url: str,
        pattern: str | None,
        target_dir: Path,
        path_depth: int,
        single: bool,
    ) -> TransferReport:
        """Fetch with bounded retries on network errors and timeouts."""
        attempt = 0
        while True:
            report = self.transfer.fetch(
                url, pattern, target_dir, path_depth,
                single=single, timeout=self.timeout,
            )
            if not report.retryable or attempt >= self.max_retries:
                return report
            attempt += 1
            logger.info(
                "Retrying transfer",
                url=url,
                attempt=attempt,
                max_retries=self.max_retries,
                status=report.status.value,
            )
            if self.retry_delay > 0:
                time.sleep(self.retry_delay)

    @staticmethod
    def _cleanup(names: tuple[str, ...], target_dir: Path) -> None:
        for name in names:
            path = target_dir / name
            if path.is_dir():
                shutil.rmtree(path, ignore_errors=True)
                logger.debug("Removed transient directory", path=str(path))


def _matching(directory: Path, pattern: str) -> list[str]:
    """Sorted names of regular files in ``directory`` matching ``pattern``."""
    return sorted(p.name for p in directory.glob(pattern) if p.is_file())


def _variants(directory: Path, pattern: str) -> dict[str, list[str]]:
    """Compressed files matching ``pattern``, grouped by stripped name, .gz before .Z."""
    grouped: dict[str, list[str]] = {}
    for suffix in COMPRESSION_SUFFIXES:
        for name in _matching(directory, pattern + suffix):
            grouped.setdefault(strip_compression(name), []).append(name)
    return grouped


def _discard_variants(directory: Path, used: str) -> None:
    """Remove the other compression variants of a decompressed file."""
    base = strip_compression(used)
    for suffix in COMPRESSION_SUFFIXES:
        if base + suffix != used:
            (directory / (base + suffix)).unlink(missing_ok=True)


def _failure_reason(report: TransferReport) -> str:
    if report.ok:
        return f"no local file matching {report.pattern or report.url}"
    if report.status == TransferStatus.NO_MATCH:
        return f"no remote file matching {report.pattern or report.url}"
    return str(report)
