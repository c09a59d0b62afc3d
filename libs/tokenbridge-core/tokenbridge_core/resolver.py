"""Alias resolution over an ingested token set.

Ingestion only records `alias_to` structurally. This resolver follows those
links after the fact: chains are walked with a visited set and a revisit is
reported as a cycle (the tokens in it stay unresolved). Targets that are
missing or belong to another project are reported, not treated as errors.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from tokenbridge_core.models import Token

logger = logging.getLogger(__name__)

_UNRESOLVED = object()


@dataclass
class ResolutionReport:
    resolved: int = 0
    cycles: list[list[str]] = field(default_factory=list)
    dangling: list[str] = field(default_factory=list)  # token ids whose target is missing
    cross_project: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.cycles


class TokenResolver:
    def __init__(self, tokens: Iterable[Token]):
        self.by_id: dict[str, Token] = {}
        for t in tokens:
            # later ingestions of the same id supersede earlier ones
            self.by_id[t.id] = t

    def resolve_all(self, project_id: str | None = None) -> ResolutionReport:
        """Fill `resolved_value` on alias tokens of `project_id` (all projects if None)."""
        report = ResolutionReport()
        cache: dict[str, object] = {}
        in_cycle: set[str] = set()

        for token in self.by_id.values():
            if project_id is not None and token.project_id != project_id:
                continue
            if not token.is_alias:
                continue
            value = self._resolve(token, cache, report, in_cycle)
            if value is _UNRESOLVED:
                token.resolved_value = None
            else:
                token.resolved_value = copy.deepcopy(value)
                report.resolved += 1

        if report.cycles:
            logger.warning(f"Detected {len(report.cycles)} circular reference(s)")
        return report

    def detect_cycles(self) -> list[list[str]]:
        report = ResolutionReport()
        self._walk_all(report)
        return report.cycles

    def _walk_all(self, report: ResolutionReport) -> None:
        cache: dict[str, object] = {}
        in_cycle: set[str] = set()
        for token in self.by_id.values():
            if token.is_alias:
                self._resolve(token, cache, report, in_cycle)

    def _resolve(
        self,
        token: Token,
        cache: dict[str, object],
        report: ResolutionReport,
        in_cycle: set[str],
    ) -> object:
        if token.id in cache:
            return cache[token.id]

        chain: list[str] = []
        seen: set[str] = set()
        current = token
        result: object = _UNRESOLVED

        while True:
            if current.id in cache:
                result = cache[current.id]
                break
            if current.id in seen:
                start = chain.index(current.id)
                cycle = chain[start:]
                if not in_cycle.intersection(cycle):
                    report.cycles.append(cycle)
                    in_cycle.update(cycle)
                result = _UNRESOLVED
                break
            seen.add(current.id)
            chain.append(current.id)

            if not current.is_alias:
                result = current.value
                break
            target = self.by_id.get(current.alias_to or "")
            if target is None:
                if current.id not in report.dangling:
                    report.dangling.append(current.id)
                result = _UNRESOLVED
                break
            if target.project_id != current.project_id:
                if current.id not in report.cross_project:
                    report.cross_project.append(current.id)
                    logger.warning(
                        f"Cross-project reference: {current.qualified_name} -> {target.qualified_name}"
                    )
                result = _UNRESOLVED
                break
            current = target

        for tid in chain:
            cache[tid] = result
        return result
