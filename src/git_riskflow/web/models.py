from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class CachedSnapshot(BaseModel):
    revision_id: str
    schema_version: int
    created_at: datetime


class FunctionRow(BaseModel):
    function_id: str
    file_path: str
    qualified_name: str
    start_line: int
    end_line: int
    language: str
    complexity: int
    suppression_reason: str | None = None


class FileAggregateRow(BaseModel):
    path: str
    function_count: int
    sum_complexity: int
    avg_complexity: float
    max_complexity: int


class DirectoryAggregateRow(BaseModel):
    path: str
    file_count: int
    function_count: int
    sum_complexity: int
    avg_complexity: float
    max_complexity: int


class SnapshotAggregatesModel(BaseModel):
    files: list[FileAggregateRow]
    directories: list[DirectoryAggregateRow]


class DiagnosticRow(BaseModel):
    file_path: str
    message: str


class SnapshotDetail(BaseModel):
    schema_version: int
    revision_id: str
    functions: list[FunctionRow]
    aggregates: SnapshotAggregatesModel
    diagnostics: list[DiagnosticRow] = []


class FunctionDeltaRow(BaseModel):
    function_id: str
    file_path: str
    qualified_name: str
    status: str
    complexity_before: int | None
    complexity_after: int | None
    change: int
    suppression_reason: str | None = None


class FileDeltaRow(BaseModel):
    path: str
    sum_before: int
    sum_after: int
    change: int
    added_count: int
    removed_count: int
    modified_count: int


class DirectoryDeltaRow(BaseModel):
    path: str
    sum_before: int
    sum_after: int
    change: int


class DeltaAggregatesModel(BaseModel):
    files: list[FileDeltaRow]
    directories: list[DirectoryDeltaRow]


class ViolationRow(BaseModel):
    rule_id: str
    message: str
    key: str | None = None


class PolicyModel(BaseModel):
    failed: list[ViolationRow]
    warnings: list[ViolationRow]


class DeltaDetail(BaseModel):
    base_revision: str
    head_revision: str
    deltas: list[FunctionDeltaRow]
    aggregates: DeltaAggregatesModel
    policy: PolicyModel


class VelocityRow(BaseModel):
    key: str
    slope: float
    points: int
    first_complexity: int
    latest_complexity: int


class HotspotRow(BaseModel):
    key: str
    score: float
    latest_complexity: int
    slope: float


class RefactorRow(BaseModel):
    key: str
    score: float
    drop: int
    latest_complexity: int
    slope: float


class TrendsDetail(BaseModel):
    revisions: list[str]
    total_functions: int
    tracked_functions: int
    velocities: list[VelocityRow]
    hotspots: list[HotspotRow]
    refactors: list[RefactorRow]
