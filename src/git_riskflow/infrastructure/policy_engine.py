"""Policy rules evaluated against a delta.

Every rule runs; all matches are collected. A "failed" violation gates the
change, a "warning" is advisory only. Functions carrying a suppression
comment are skipped by the per-function rules.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace

from git_riskflow.domain.models import (
    Delta,
    FunctionDelta,
    FunctionStatus,
    PolicyResult,
    Violation,
)

SEVERITY_FAILED = "failed"
SEVERITY_WARNING = "warning"
SEVERITIES = (SEVERITY_FAILED, SEVERITY_WARNING)

CRITICAL_INTRODUCTION = "critical-introduction"
EXCESSIVE_RISK_REGRESSION = "excessive-risk-regression"
NET_REPO_REGRESSION = "net-repo-regression"
WATCH_THRESHOLD = "watch-threshold"
ATTENTION_THRESHOLD = "attention-threshold"
SUPPRESSION_MISSING_REASON = "suppression-missing-reason"

# Complexity bands just below the regression and critical levels
DEFAULT_WATCH_BAND = (8, 10)
DEFAULT_ATTENTION_BAND = (12, 15)


def _function_violation(rule_id: str, d: FunctionDelta, message: str) -> Violation:
    return Violation(
        rule_id=rule_id,
        message=message,
        file_path=d.file_path,
        qualified_name=d.qualified_name,
    )


@dataclass(frozen=True)
class CriticalIntroductionRule:
    """A new function arrives at or above the critical threshold."""

    critical_threshold: int
    rule_id: str = CRITICAL_INTRODUCTION
    severity: str = SEVERITY_FAILED

    def check(self, delta: Delta) -> list[Violation]:
        found = []
        for d in delta.deltas:
            if d.status != FunctionStatus.ADDED or d.complexity_after is None or d.suppressed:
                continue
            if d.complexity_after >= self.critical_threshold:
                found.append(_function_violation(self.rule_id, d, (
                    f"Function {d.function_id} introduced with complexity "
                    f"{d.complexity_after} (critical threshold {self.critical_threshold})"
                )))
        return found


@dataclass(frozen=True)
class ExcessiveRiskRegressionRule:
    """An existing function grows by an absolute or relative margin.

    Either check may be left out; a rule needs at least one of them.
    """

    regression_threshold: int | None = None
    regression_ratio: float | None = None
    rule_id: str = EXCESSIVE_RISK_REGRESSION
    severity: str = SEVERITY_FAILED

    def __post_init__(self) -> None:
        if self.regression_threshold is None and self.regression_ratio is None:
            raise ValueError("regression_threshold or regression_ratio is required")

    def _exceeds(self, change: int, before: int) -> bool:
        if self.regression_threshold is not None and change >= self.regression_threshold:
            return True
        if self.regression_ratio is not None and before > 0:
            return change / before >= self.regression_ratio
        return False

    def check(self, delta: Delta) -> list[Violation]:
        found = []
        for d in delta.deltas:
            if d.status != FunctionStatus.MODIFIED or d.complexity_before is None or d.suppressed:
                continue
            if d.change <= 0 or not self._exceeds(d.change, d.complexity_before):
                continue
            found.append(_function_violation(self.rule_id, d, (
                f"Function {d.function_id} regressed by {d.change:+d} "
                f"({d.complexity_before} -> {d.complexity_after})"
            )))
        return found


@dataclass(frozen=True)
class ThresholdBandRule:
    """A new or modified function enters the band [band_min, band_max).

    Functions already at or above *band_min* before the change do not
    fire again.
    """

    band_min: int
    band_max: int
    rule_id: str = WATCH_THRESHOLD
    severity: str = SEVERITY_WARNING
    label: str = "watch"

    def __post_init__(self) -> None:
        if self.band_min >= self.band_max:
            raise ValueError(
                f"band_min ({self.band_min}) must be less than band_max ({self.band_max})"
            )

    def check(self, delta: Delta) -> list[Violation]:
        found = []
        for d in delta.deltas:
            if d.status not in (FunctionStatus.ADDED, FunctionStatus.MODIFIED) or d.suppressed:
                continue
            after = d.complexity_after
            if after is None or not self.band_min <= after < self.band_max:
                continue
            if d.complexity_before is not None and d.complexity_before >= self.band_min:
                continue
            found.append(_function_violation(self.rule_id, d, (
                f"Function {d.function_id} entered the {self.label} band with "
                f"complexity {after} ({self.band_min}-{self.band_max - 1})"
            )))
        return found


def watch_threshold_rule(
    band_min: int = DEFAULT_WATCH_BAND[0], band_max: int = DEFAULT_WATCH_BAND[1],
) -> ThresholdBandRule:
    return ThresholdBandRule(band_min, band_max, rule_id=WATCH_THRESHOLD, label="watch")


def attention_threshold_rule(
    band_min: int = DEFAULT_ATTENTION_BAND[0], band_max: int = DEFAULT_ATTENTION_BAND[1],
) -> ThresholdBandRule:
    return ThresholdBandRule(band_min, band_max, rule_id=ATTENTION_THRESHOLD, label="attention")


@dataclass(frozen=True)
class SuppressionMissingReasonRule:
    """A present function is suppressed without saying why."""

    rule_id: str = SUPPRESSION_MISSING_REASON
    severity: str = SEVERITY_WARNING

    def check(self, delta: Delta) -> list[Violation]:
        return [
            _function_violation(
                self.rule_id, d, f"Function {d.function_id} suppressed without reason",
            )
            for d in delta.deltas
            if d.status != FunctionStatus.REMOVED and d.suppression_reason == ""
        ]


@dataclass(frozen=True)
class NetRepoRegressionRule:
    """Total project complexity grows by more than *max_increase*."""

    max_increase: int = 0
    rule_id: str = NET_REPO_REGRESSION
    severity: str = SEVERITY_WARNING

    def check(self, delta: Delta) -> list[Violation]:
        total = sum(d.change for d in delta.deltas)
        if total <= self.max_increase:
            return []
        return [Violation(
            rule_id=self.rule_id,
            message=f"Repository total complexity increased by {total}",
        )]


Rule = (
    CriticalIntroductionRule
    | ExcessiveRiskRegressionRule
    | ThresholdBandRule
    | SuppressionMissingReasonRule
    | NetRepoRegressionRule
)


def default_rules() -> list[Rule]:
    return [
        CriticalIntroductionRule(critical_threshold=15),
        ExcessiveRiskRegressionRule(regression_threshold=5),
        watch_threshold_rule(),
        attention_threshold_rule(),
        SuppressionMissingReasonRule(),
    ]


def _sort_key(order: dict[str, int], v: Violation) -> tuple[int, int, str]:
    # function-level violations first, then repository-level ones
    function_id = v.function_id
    return (order.get(v.rule_id, len(order)), function_id is None, function_id or "")


def evaluate(delta: Delta, rules: Sequence[Rule]) -> PolicyResult:
    """Run every rule against *delta* and partition the violations by severity."""
    order = {rule.rule_id: i for i, rule in enumerate(rules)}
    failed: list[Violation] = []
    warnings: list[Violation] = []
    for rule in rules:
        target = failed if rule.severity == SEVERITY_FAILED else warnings
        target.extend(rule.check(delta))

    failed.sort(key=lambda v: _sort_key(order, v))
    warnings.sort(key=lambda v: _sort_key(order, v))
    return PolicyResult(failed=tuple(failed), warnings=tuple(warnings))


def apply_policy(delta: Delta, rules: Sequence[Rule]) -> Delta:
    """Return a copy of *delta* carrying the verdicts of *rules*."""
    return replace(delta, policy=evaluate(delta, rules))
