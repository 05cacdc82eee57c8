"""Read-only HTTP API over the snapshot cache."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query

from git_riskflow.application.use_cases import order_revisions
from git_riskflow.domain.errors import RevisionResolutionError
from git_riskflow.domain.models import Snapshot
from git_riskflow.domain.ports import RevisionSource
from git_riskflow.infrastructure import delta_engine, trend_engine
from git_riskflow.infrastructure.policy_engine import apply_policy, default_rules
from git_riskflow.infrastructure.serialization import (
    delta_to_dict,
    snapshot_to_dict,
    trend_window_to_dict,
)
from git_riskflow.infrastructure.snapshot_store import DuckDBSnapshotStore
from git_riskflow.web.models import (
    CachedSnapshot,
    DeltaDetail,
    SnapshotDetail,
    TrendsDetail,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db_path = getattr(app.state, "db_path", None)
    app.state.store = DuckDBSnapshotStore(db_path=db_path)
    yield
    app.state.store.close()


app = FastAPI(title="git-riskflow", lifespan=lifespan)


def _store() -> DuckDBSnapshotStore:
    return app.state.store


def _source() -> RevisionSource | None:
    return getattr(app.state, "source", None)


def _rules():
    rules = getattr(app.state, "rules", None)
    return default_rules() if rules is None else rules


def _cached(revision_id: str) -> Snapshot:
    snap = _store().read(revision_id)
    if snap is None:
        raise HTTPException(status_code=404, detail=f"Snapshot {revision_id} not cached")
    return snap


@app.get("/api/snapshots", response_model=list[CachedSnapshot])
def list_snapshots():
    return [CachedSnapshot(**r) for r in _store().list_revisions()]


@app.get("/api/snapshots/{revision_id}", response_model=SnapshotDetail)
def get_snapshot(revision_id: str):
    return SnapshotDetail(**snapshot_to_dict(_cached(revision_id)))


@app.get("/api/delta", response_model=DeltaDetail)
def get_delta(
    base: str = Query(..., description="Base revision id"),
    head: str = Query(..., description="Head revision id"),
):
    result = apply_policy(delta_engine.diff(_cached(base), _cached(head)), _rules())
    return DeltaDetail(**delta_to_dict(result))


@app.get("/api/trends", response_model=TrendsDetail)
def get_trends(
    revisions: list[str] = Query(..., description="Revision ids, in any order"),
    top_k: int = Query(10, ge=1),
):
    source = _source()
    if source is None:
        raise HTTPException(
            status_code=400,
            detail="Trends need a git repository to order revisions; serve with --repo",
        )
    try:
        ordered = order_revisions(source, revisions)
    except RevisionResolutionError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    window = [_cached(r) for r in ordered]
    return TrendsDetail(**trend_window_to_dict(trend_engine.analyze(window, top_k)))
