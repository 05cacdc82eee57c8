"""Launch the HTTP API with uvicorn."""
from __future__ import annotations

import uvicorn

from git_riskflow.domain.ports import RevisionSource
from git_riskflow.web.api import app


def launch(
    db_path: str | None = None,
    host: str = "127.0.0.1",
    port: int = 8000,
    source: RevisionSource | None = None,
) -> None:
    """Serve the snapshot cache at *db_path* until interrupted.

    *source* orders the revisions of trend requests; without it
    ``/api/trends`` is unavailable.
    """
    app.state.db_path = db_path
    app.state.source = source

    print(f"API server:  http://{host}:{port}")
    try:
        uvicorn.run(app, host=host, port=port, log_level="warning")
    except KeyboardInterrupt:
        print("\nShutting down.")
