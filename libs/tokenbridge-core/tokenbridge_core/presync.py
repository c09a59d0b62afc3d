"""Checks run on a token set before it is materialized in a target system."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tokenbridge_core.formats import REFERENCE_RE
from tokenbridge_core.models import Token, TokenType
from tokenbridge_core.values import validate_token_value

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class ValidationIssue:
    token_id: str
    token_path: list[str]
    severity: Severity
    code: str
    message: str
    fix: str | None = None


@dataclass
class ValidationReport:
    issues: list[ValidationIssue] = field(default_factory=list)

    def count(self, severity: Severity) -> int:
        return sum(1 for i in self.issues if i.severity == severity)

    @property
    def error_count(self) -> int:
        return self.count(Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return self.count(Severity.WARNING)

    @property
    def info_count(self) -> int:
        return self.count(Severity.INFO)

    @property
    def valid(self) -> bool:
        return self.error_count == 0


def find_references(value: Any) -> list[str]:
    """Every ``{path}`` reference string nested anywhere in `value`."""
    if isinstance(value, str):
        return [value] if REFERENCE_RE.match(value) else []
    if isinstance(value, dict):
        return [ref for v in value.values() for ref in find_references(v)]
    if isinstance(value, list):
        return [ref for v in value for ref in find_references(v)]
    return []


class PreSyncValidator:
    """Flags tokens a target system would reject or materialize wrongly.

    Errors block a sync: alias targets missing from the set, references left
    inside composite values, and values that do not fit their type.
    Warnings do not: tokens from another project, aliases whose value was
    never resolved, typography without a family or size.
    """

    def validate(self, tokens: list[Token], project_id: str) -> ValidationReport:
        report = ValidationReport()
        ids = {t.id for t in tokens}
        for token in tokens:
            report.issues.extend(self._check(token, project_id, ids))
        logger.info(
            f"Pre-sync check of {len(tokens)} tokens: {report.error_count} error(s), "
            f"{report.warning_count} warning(s)"
        )
        return report

    def _check(self, token: Token, project_id: str, ids: set[str]) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        name = token.qualified_name

        def issue(severity: Severity, code: str, message: str, fix: str | None = None) -> None:
            issues.append(ValidationIssue(token.id, list(token.path), severity, code, message, fix))

        if token.project_id != project_id:
            issue(
                Severity.WARNING,
                "PROJECT_MISMATCH",
                f"Token {name} belongs to project {token.project_id!r}, not {project_id!r}",
                "Ingest the token into the project being synced",
            )

        if token.is_alias:
            if token.alias_to not in ids:
                issue(
                    Severity.ERROR,
                    "UNRESOLVED_REFERENCE",
                    f"Token {name} references {token.raw_value}, which is not in the token set",
                    "Ingest the referenced token into the same project",
                )
            elif token.resolved_value is None:
                issue(
                    Severity.WARNING,
                    "ALIAS_NOT_RESOLVED",
                    f"Token {name} is an alias with no resolved value",
                    "Run `tokenbridge resolve --save` before syncing",
                )
            return issues

        value = token.resolved_value if token.resolved_value is not None else token.value
        nested = find_references(value)
        if nested:
            # a shadow without its color renders invisible
            color_missing = token.type == TokenType.SHADOW and any("color" in r.lower() for r in nested)
            severity = Severity.ERROR if token.type != TokenType.SHADOW or color_missing else Severity.WARNING
            issue(
                severity,
                "UNRESOLVED_NESTED_REFERENCE",
                f"Token {name} has unresolved nested references: {', '.join(nested)}",
                "Replace nested references with literal values",
            )
            return issues

        for problem in validate_token_value(value, token.type.value):
            issue(
                Severity.ERROR,
                "INVALID_VALUE",
                f"Token {name} has an invalid {token.type.value} value: {problem}",
            )

        if token.type == TokenType.TYPOGRAPHY and isinstance(value, dict):
            if "fontFamily" not in value:
                issue(Severity.WARNING, "MISSING_FONT_FAMILY", f"Typography token {name} has no fontFamily")
            if "fontSize" not in value:
                issue(
                    Severity.WARNING,
                    "MISSING_FONT_SIZE",
                    f"Typography token {name} has no fontSize",
                    "Targets fall back to 12px",
                )
        return issues
