"""Dual-run validation of a candidate import pipeline against the legacy one.

Both pipelines run against the same target system, one after the other,
and the target is rolled back to its starting snapshot after each run.
Rollback recreates records (no transactions), so it is verified afterwards
and a target that still differs raises `RollbackError`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from tokenbridge_core.config import CutoverFlags
from tokenbridge_core.errors import Result, RollbackError
from tokenbridge_core.models import ImportStats

from tokenbridge_store.target import StateRecord, TargetSystem

logger = logging.getLogger(__name__)

Pipeline = Callable[[TargetSystem, Any], Awaitable[ImportStats]]


@dataclass
class ValueMismatch:
    identity: str
    legacy_value: Any
    candidate_value: Any


@dataclass
class TypeMismatch:
    identity: str
    legacy_type: str
    candidate_type: str


@dataclass
class ComparisonResult:
    identical: bool
    discrepancy_rate: float
    total: int
    only_in_legacy: list[str] = field(default_factory=list)
    only_in_candidate: list[str] = field(default_factory=list)
    value_mismatches: list[ValueMismatch] = field(default_factory=list)
    type_mismatches: list[TypeMismatch] = field(default_factory=list)
    threshold: float = 0.05

    @property
    def total_differences(self) -> int:
        return (
            len(self.only_in_legacy)
            + len(self.only_in_candidate)
            + len(self.value_mismatches)
            + len(self.type_mismatches)
        )

    @property
    def within_threshold(self) -> bool:
        """True when the candidate may replace the legacy output."""
        return self.identical or self.discrepancy_rate < self.threshold

    @property
    def exceeds_threshold(self) -> bool:
        return not self.within_threshold


@dataclass
class CutoverDecision:
    pipeline: Literal["legacy", "candidate"]
    stats: ImportStats
    comparison: ComparisonResult | None = None
    reason: str = ""


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def compare_states(
    legacy: list[StateRecord], candidate: list[StateRecord], threshold: float = 0.05
) -> ComparisonResult:
    """Compare two captured states by identity."""
    legacy_map = {r.identity: r for r in legacy}
    candidate_map = {r.identity: r for r in candidate}

    only_in_legacy = [i for i in legacy_map if i not in candidate_map]
    only_in_candidate = [i for i in candidate_map if i not in legacy_map]
    value_mismatches: list[ValueMismatch] = []
    type_mismatches: list[TypeMismatch] = []

    for identity, a in legacy_map.items():
        b = candidate_map.get(identity)
        if b is None:
            continue
        if a.type != b.type:
            type_mismatches.append(TypeMismatch(identity, a.type, b.type))
        if _canonical(a.value) != _canonical(b.value):
            value_mismatches.append(ValueMismatch(identity, a.value, b.value))

    total = max(len(legacy_map), len(candidate_map))
    differences = len(only_in_legacy) + len(only_in_candidate) + len(value_mismatches) + len(type_mismatches)
    return ComparisonResult(
        identical=differences == 0,
        discrepancy_rate=differences / total if total else 0.0,
        total=total,
        only_in_legacy=only_in_legacy,
        only_in_candidate=only_in_candidate,
        value_mismatches=value_mismatches,
        type_mismatches=type_mismatches,
        threshold=threshold,
    )


class DualRunValidator:
    def __init__(
        self,
        target: TargetSystem,
        legacy: Pipeline,
        candidate: Pipeline,
        flags: CutoverFlags | None = None,
    ):
        self.target = target
        self.legacy = legacy
        self.candidate = candidate
        self.flags = flags or CutoverFlags()

    async def validate(self, payload: Any) -> Result[ComparisonResult]:
        """Run both pipelines on `payload` and compare; the target ends where it started."""
        try:
            return Result.success(await self._validate(payload))
        except RollbackError as e:
            logger.error(f"Rollback failed: {e}")
            return Result.failure(str(e), context="rollback")
        except Exception as e:
            logger.error(f"Validation failed: {e}")
            return Result.failure(str(e), context="validate")

    async def _validate(self, payload: Any) -> ComparisonResult:
        initial = await self.target.capture()
        try:
            logger.info("Running legacy pipeline")
            await self.legacy(self.target, payload)
            legacy_state = await self.target.capture()

            await self.rollback(initial)

            logger.info("Running candidate pipeline")
            await self.candidate(self.target, payload)
            candidate_state = await self.target.capture()
        finally:
            await self.rollback(initial)

        comparison = compare_states(legacy_state, candidate_state, self.flags.discrepancy_threshold)
        log_comparison(comparison)
        if comparison.exceeds_threshold:
            logger.error(
                f"Discrepancy rate {comparison.discrepancy_rate:.2%} is not below threshold "
                f"{comparison.threshold:.2%}"
            )
        return comparison

    async def rollback(self, snapshot: list[StateRecord]) -> None:
        """Return the target to `snapshot`: drop extra records, rewrite changed ones, then verify."""
        wanted = {r.identity: r for r in snapshot}
        current = {r.identity: r for r in await self.target.capture()}

        for identity in current:
            if identity not in wanted:
                await self.target.remove(identity)
        for identity, record in wanted.items():
            if current.get(identity) != record:
                await self.target.upsert(record)

        after = {r.identity: r for r in await self.target.capture()}
        if after != wanted:
            drift = sorted(set(after) ^ set(wanted)) or [
                i for i in wanted if after.get(i) != wanted[i]
            ]
            raise RollbackError(f"Target differs from snapshot after rollback: {drift[:5]}")

    async def import_with_validation(self, payload: Any) -> Result[CutoverDecision]:
        """Production entry point: pick a pipeline according to the cutover flags and run it."""
        flags = self.flags
        try:
            if not flags.enable_dual_run:
                if flags.use_new_model:
                    stats = await self.candidate(self.target, payload)
                    return Result.success(CutoverDecision("candidate", stats, reason="dual-run disabled"))
                stats = await self.legacy(self.target, payload)
                return Result.success(CutoverDecision("legacy", stats, reason="dual-run disabled"))

            validated = await self.validate(payload)
            if not validated.ok or validated.value is None:
                return Result.failure(validated.error or "validation failed", context="import_with_validation")
            comparison = validated.value

            if flags.use_new_model and comparison.within_threshold:
                logger.info("Using candidate pipeline output")
                stats = await self.candidate(self.target, payload)
                return Result.success(
                    CutoverDecision("candidate", stats, comparison, reason="within threshold")
                )

            if not flags.use_new_model:
                reason = "new model not enabled"
            else:
                reason = "discrepancy at or above threshold"
                logger.warning(
                    f"Keeping legacy output: discrepancy {comparison.discrepancy_rate:.2%} "
                    f"not below threshold {comparison.threshold:.2%}"
                )
            stats = await self.legacy(self.target, payload)
            return Result.success(CutoverDecision("legacy", stats, comparison, reason=reason))
        except Exception as e:
            logger.error(f"Import failed: {e}")
            return Result.failure(str(e), context="import_with_validation")


def log_comparison(comparison: ComparisonResult) -> None:
    logger.info(
        f"Dual-run: {comparison.total} records, identical={comparison.identical}, "
        f"discrepancy={comparison.discrepancy_rate:.2%}"
    )
    if comparison.only_in_legacy:
        logger.info(f"Only in legacy ({len(comparison.only_in_legacy)}): {comparison.only_in_legacy}")
    if comparison.only_in_candidate:
        logger.info(f"Only in candidate ({len(comparison.only_in_candidate)}): {comparison.only_in_candidate}")
    for m in comparison.value_mismatches[:5]:
        logger.info(f"Value mismatch {m.identity}: {m.legacy_value!r} != {m.candidate_value!r}")
    for m in comparison.type_mismatches:
        logger.info(f"Type mismatch {m.identity}: {m.legacy_type} -> {m.candidate_type}")
