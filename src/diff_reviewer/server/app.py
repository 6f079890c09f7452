"""FastAPI server exposing the review session to UI clients."""

import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from diff_reviewer import __version__
from diff_reviewer.exceptions import GitCommandError, PatchApplyError
from diff_reviewer.models import DiffFile, HunkStatus
from diff_reviewer.session import ReviewSession
from diff_reviewer.settings import Settings


logger = logging.getLogger(__name__)


# Global state
_session: Optional[ReviewSession] = None
_settings: Optional[Settings] = None


class ReviewJSONResponse(JSONResponse):
    """JSON with non-ASCII escaped.

    Diff lines of non-UTF-8 files carry lone surrogates, which only
    survive serialisation as \\u escapes.
    """

    def render(self, content) -> bytes:
        return json.dumps(content, ensure_ascii=True, allow_nan=False, separators=(",", ":")).encode("ascii")


def create_app(
    settings: Optional[Settings] = None,
    session: Optional[ReviewSession] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Server settings; read from the environment if omitted
        session: Pre-built session, mainly for tests
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Load the diff on startup."""
        global _session, _settings

        _settings = settings or Settings()
        _session = session or ReviewSession.from_settings(_settings)

        files = await _session.refresh()
        logger.info(f"Reviewing {len(files)} changed file(s) in {_settings.repo_path}")

        yield

        logger.info("Shutting down...")
        _session = None

    app = FastAPI(
        title="Diff Reviewer",
        description="Hunk-by-hunk review of uncommitted git changes",
        version=__version__,
        lifespan=lifespan,
        default_response_class=ReviewJSONResponse,
    )

    @app.exception_handler(PatchApplyError)
    async def patch_apply_error(request: Request, exc: PatchApplyError):
        logger.error(str(exc))
        return JSONResponse(
            status_code=409,
            content={"detail": str(exc), "file": exc.file_path, "operation": exc.operation},
        )

    @app.exception_handler(GitCommandError)
    async def git_command_error(request: Request, exc: GitCommandError):
        logger.error(str(exc))
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "files": len(_session.get_files()) if _session else 0,
        }

    @app.get("/files")
    async def list_files():
        """Changed files with review progress."""
        session = _require_session()
        return {"files": [s.model_dump() for s in session.summary()]}

    @app.post("/refresh")
    async def refresh():
        """Re-read the diff from git."""
        session = _require_session()
        await session.refresh()
        return {"files": [s.model_dump() for s in session.summary()]}

    @app.post("/undo")
    async def undo():
        """Undo the most recent approve or reject."""
        session = _require_session()
        result = await session.undo()
        if result is None:
            return {"undone": None}

        file = session.find_file(result.file_path)
        return {
            "undone": result.model_dump(),
            **_file_payload(session, result.file_path, file),
        }

    @app.post("/files/{file_path:path}/hunks/{index}/approve")
    async def approve_hunk(file_path: str, index: int):
        session = _require_session()
        _require_file(session, file_path)
        statuses = await session.approve(file_path, index)
        return _statuses_payload(file_path, statuses)

    @app.post("/files/{file_path:path}/hunks/{index}/unapprove")
    async def unapprove_hunk(file_path: str, index: int):
        session = _require_session()
        _require_file(session, file_path)
        statuses = await session.unapprove(file_path, index)
        return _statuses_payload(file_path, statuses)

    @app.post("/files/{file_path:path}/hunks/{index}/reject")
    async def reject_hunk(file_path: str, index: int):
        session = _require_session()
        _require_file(session, file_path)
        updated = await session.reject(file_path, index)
        return _file_payload(session, file_path, updated)

    @app.post("/files/{file_path:path}/approve-all")
    async def approve_all(file_path: str):
        session = _require_session()
        _require_file(session, file_path)
        statuses = await session.approve_all(file_path)
        return _statuses_payload(file_path, statuses)

    @app.post("/files/{file_path:path}/reject-all")
    async def reject_all(file_path: str):
        session = _require_session()
        _require_file(session, file_path)
        updated = await session.reject_all(file_path)
        return _file_payload(session, file_path, updated)

    @app.get("/files/{file_path:path}")
    async def get_file(file_path: str):
        """A file's hunks, statuses and current content."""
        session = _require_session()
        view = await session.open_file(file_path)
        if view is None:
            raise HTTPException(status_code=404, detail=f"File not in diff: {file_path}")
        return view.model_dump()

    return app


def _require_session() -> ReviewSession:
    if _session is None:
        raise HTTPException(status_code=503, detail="Review session not ready")
    return _session


def _require_file(session: ReviewSession, file_path: str) -> DiffFile:
    file = session.find_file(file_path)
    if file is None:
        raise HTTPException(status_code=404, detail=f"File not in diff: {file_path}")
    return file


def _statuses_payload(file_path: str, statuses: Optional[list[HunkStatus]]) -> dict:
    return {"file_path": file_path, "statuses": statuses}


def _file_payload(session: ReviewSession, file_path: str, file: Optional[DiffFile]) -> dict:
    """Updated file and statuses, or ``file: None`` once it has no changes left."""
    if file is None:
        return {"file_path": file_path, "file": None, "statuses": []}
    return {
        "file_path": file_path,
        "file": file.model_dump(),
        "statuses": session.state.get_status_array(file),
    }
