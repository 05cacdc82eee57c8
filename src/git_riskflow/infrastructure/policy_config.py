"""Load policy rules and analysis settings from a JSON configuration file."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from git_riskflow.domain.errors import ConfigurationError
from git_riskflow.infrastructure.policy_engine import (
    ATTENTION_THRESHOLD,
    CRITICAL_INTRODUCTION,
    DEFAULT_ATTENTION_BAND,
    DEFAULT_WATCH_BAND,
    EXCESSIVE_RISK_REGRESSION,
    NET_REPO_REGRESSION,
    SEVERITY_FAILED,
    SEVERITY_WARNING,
    SUPPRESSION_MISSING_REASON,
    WATCH_THRESHOLD,
    CriticalIntroductionRule,
    ExcessiveRiskRegressionRule,
    NetRepoRegressionRule,
    Rule,
    SuppressionMissingReasonRule,
    ThresholdBandRule,
    default_rules,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = ".riskflow.json"
DEFAULT_TOP_K = 10

Severity = Literal["failed", "warning"]


class _RuleModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str | None = None


class CriticalIntroductionModel(_RuleModel):
    kind: Literal["critical-introduction"]
    critical_threshold: int = Field(gt=0)
    severity: Severity = SEVERITY_FAILED

    def to_rule(self) -> CriticalIntroductionRule:
        return CriticalIntroductionRule(
            critical_threshold=self.critical_threshold,
            rule_id=self.id or CRITICAL_INTRODUCTION,
            severity=self.severity,
        )


class ExcessiveRiskRegressionModel(_RuleModel):
    kind: Literal["excessive-risk-regression"]
    regression_threshold: int | None = Field(default=None, gt=0)
    regression_ratio: float | None = Field(default=None, gt=0)
    severity: Severity = SEVERITY_FAILED

    @model_validator(mode="after")
    def _some_threshold(self) -> ExcessiveRiskRegressionModel:
        if self.regression_threshold is None and self.regression_ratio is None:
            raise ValueError("regression_threshold or regression_ratio is required")
        return self

    def to_rule(self) -> ExcessiveRiskRegressionRule:
        return ExcessiveRiskRegressionRule(
            regression_threshold=self.regression_threshold,
            regression_ratio=self.regression_ratio,
            rule_id=self.id or EXCESSIVE_RISK_REGRESSION,
            severity=self.severity,
        )


class _ThresholdBandModel(_RuleModel):
    band_min: int = Field(gt=0)
    band_max: int = Field(gt=0)
    severity: Severity = SEVERITY_WARNING

    @model_validator(mode="after")
    def _ordered_band(self) -> _ThresholdBandModel:
        if self.band_min >= self.band_max:
            raise ValueError(
                f"band_min ({self.band_min}) must be less than band_max ({self.band_max})"
            )
        return self


class WatchThresholdModel(_ThresholdBandModel):
    kind: Literal["watch-threshold"]
    band_min: int = Field(default=DEFAULT_WATCH_BAND[0], gt=0)
    band_max: int = Field(default=DEFAULT_WATCH_BAND[1], gt=0)

    def to_rule(self) -> ThresholdBandRule:
        return ThresholdBandRule(
            self.band_min, self.band_max,
            rule_id=self.id or WATCH_THRESHOLD, severity=self.severity, label="watch",
        )


class AttentionThresholdModel(_ThresholdBandModel):
    kind: Literal["attention-threshold"]
    band_min: int = Field(default=DEFAULT_ATTENTION_BAND[0], gt=0)
    band_max: int = Field(default=DEFAULT_ATTENTION_BAND[1], gt=0)

    def to_rule(self) -> ThresholdBandRule:
        return ThresholdBandRule(
            self.band_min, self.band_max,
            rule_id=self.id or ATTENTION_THRESHOLD, severity=self.severity, label="attention",
        )


class SuppressionMissingReasonModel(_RuleModel):
    kind: Literal["suppression-missing-reason"]
    severity: Severity = SEVERITY_WARNING

    def to_rule(self) -> SuppressionMissingReasonRule:
        return SuppressionMissingReasonRule(
            rule_id=self.id or SUPPRESSION_MISSING_REASON,
            severity=self.severity,
        )


class NetRepoRegressionModel(_RuleModel):
    kind: Literal["net-repo-regression"]
    max_increase: int = Field(default=0, ge=0)
    severity: Severity = SEVERITY_WARNING

    def to_rule(self) -> NetRepoRegressionRule:
        return NetRepoRegressionRule(
            max_increase=self.max_increase,
            rule_id=self.id or NET_REPO_REGRESSION,
            severity=self.severity,
        )


RuleModel = Annotated[
    Union[
        CriticalIntroductionModel,
        ExcessiveRiskRegressionModel,
        WatchThresholdModel,
        AttentionThresholdModel,
        SuppressionMissingReasonModel,
        NetRepoRegressionModel,
    ],
    Field(discriminator="kind"),
]


class ConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    exclude: list[str] = Field(default_factory=list)
    top_k: int = Field(default=DEFAULT_TOP_K, ge=1)
    rules: list[RuleModel] | None = None

    @model_validator(mode="after")
    def _unique_rule_ids(self) -> ConfigModel:
        if self.rules:
            ids = [r.id or r.kind for r in self.rules]
            duplicates = sorted({i for i in ids if ids.count(i) > 1})
            if duplicates:
                raise ValueError(f"duplicate rule ids: {', '.join(duplicates)}")
        return self


@dataclass(frozen=True)
class RiskflowConfig:
    rules: tuple[Rule, ...] = field(default_factory=lambda: tuple(default_rules()))
    exclude: tuple[str, ...] = ()
    top_k: int = DEFAULT_TOP_K


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"]) or "<root>"
        problems.append(f"{location}: {err['msg']}")
    return "; ".join(problems)


def parse_config(data: object, source: str = "<config>") -> RiskflowConfig:
    """Validate already-decoded JSON and build typed rules."""
    try:
        model = ConfigModel.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {_format_validation_error(e)}", {"source": source},
        ) from e
    rules = (
        tuple(r.to_rule() for r in model.rules)
        if model.rules is not None
        else tuple(default_rules())
    )
    return RiskflowConfig(rules=rules, exclude=tuple(model.exclude), top_k=model.top_k)


def load_config(config_path: str | None = None, repo_path: str | None = None) -> RiskflowConfig:
    """Read *config_path*, else ``.riskflow.json`` in *repo_path*, else defaults.

    An explicitly named file must exist; the implicit one is optional.
    """
    if config_path is not None:
        path = Path(config_path)
        if not path.is_file():
            raise ConfigurationError(f"Configuration file not found: {path}")
    else:
        if repo_path is None:
            return RiskflowConfig()
        path = Path(repo_path) / DEFAULT_CONFIG_NAME
        if not path.is_file():
            return RiskflowConfig()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read configuration: {e}", {"source": str(path)}) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Configuration is not valid JSON: {e.msg} at line {e.lineno}",
            {"source": str(path)},
        ) from e

    logger.debug("Loaded configuration from %s", path)
    return parse_config(data, source=str(path))
