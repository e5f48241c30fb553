import logging
import sys
import time
from collections.abc import Awaitable, Callable
from typing import Any

from fastmcp import FastMCP
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .base_session_store import SessionStore
from .config import ServerConfig
from .diskcache_session_store import DiskCacheSessionStore
from .errors import InvalidInputError, PayloadTooLargeError, SessionNotFoundError
from .in_memory_session_store import InMemorySessionStore
from .storage_types import to_iso
from .sweeper import SessionSweeper
from .system_utils import log_system_status
from .utils.inspect_utils import summarize_session
from .utils.session_utils import validate_session_id
from .utils.upload_utils import (
    build_upload_info,
    public_upload_info,
    too_large_message,
    validate_upload,
)

logger = logging.getLogger(__name__)
# Ensure logs are visible when run as a standalone process
if not logger.handlers:
    _handler = logging.StreamHandler(sys.stdout)
    _handler.setLevel(logging.INFO)
    _formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    _handler.setFormatter(_formatter)
    logger.addHandler(_handler)
logger.setLevel(logging.INFO)

# Keep in sync with gridsync.SERVER_NAME
mcp = FastMCP("GridSync Session Server")

Handler = Callable[[Request], Awaitable[JSONResponse]]

# Room for multipart boundaries and part headers on top of the file itself
_MULTIPART_OVERHEAD = 64 * 1024


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status_code)


def build_session_store(config: ServerConfig) -> SessionStore:
    """Instantiate the store backend selected by configuration."""
    if config.store == "disk":
        return DiskCacheSessionStore(cache_dir=config.cache_dir)
    return InMemorySessionStore(max_sessions=config.max_sessions)


class SessionAPI:
    """HTTP handlers for the session endpoints, bound to an injected store."""

    def __init__(self, store: SessionStore, max_upload_bytes: int | None = None):
        self.store = store
        self.max_upload_bytes = (
            max_upload_bytes
            if max_upload_bytes is not None
            else ServerConfig().max_upload_bytes
        )

    def route_table(self) -> list[tuple[str, list[str], Handler]]:
        return [
            ("/api/session/init", ["POST"], self.init_session),
            ("/api/session/{session_id}", ["GET"], self.get_session),
            ("/api/session/{session_id}/state", ["PUT"], self.update_state),
            ("/api/session/{session_id}/reset", ["DELETE"], self.reset_session),
            ("/api/session/{session_id}/upload", ["POST"], self.upload_file),
            ("/api/health", ["GET"], self.health),
        ]

    @staticmethod
    def _declared_length(request: Request) -> int:
        try:
            return int(request.headers.get("content-length", "0"))
        except ValueError:
            return 0

    def inspect_session(self, session_id: str) -> str:
        """Read-only summary of a session; does not refresh lastActivity."""
        session_id = validate_session_id(session_id)
        try:
            record = self.store.peek(session_id)
        except SessionNotFoundError:
            record = None
        return summarize_session(record)

    async def init_session(self, request: Request) -> JSONResponse:
        try:
            record = await run_in_threadpool(self.store.create)
        except Exception as e:
            logger.error(f"Error creating session: {e}")
            return _error(500, "Internal server error")
        return JSONResponse(
            {
                "success": True,
                "sessionId": record.session_id,
                "message": "Session created successfully",
                "session": record.to_json(),
            },
            status_code=201,
        )

    async def get_session(self, request: Request) -> JSONResponse:
        session_id = request.path_params.get("session_id")
        try:
            record = await run_in_threadpool(self.store.get, session_id)
        except InvalidInputError:
            return _error(400, "Invalid session ID format")
        except SessionNotFoundError:
            return _error(404, "Session not found")
        except Exception as e:
            logger.error(f"Error retrieving session: {e}")
            return _error(500, "Internal server error")
        return JSONResponse({"success": True, "session": record.to_json()})

    async def update_state(self, request: Request) -> JSONResponse:
        session_id = request.path_params.get("session_id")
        try:
            validate_session_id(session_id)
        except InvalidInputError:
            return _error(400, "Invalid session ID format")

        try:
            body = await request.json()
        except ValueError:
            return _error(400, "Request body must be a JSON object")
        if not isinstance(body, dict):
            return _error(400, "Request body must be a JSON object")

        try:
            record = await run_in_threadpool(
                self.store.update_state,
                session_id,
                body.get("uiState"),
                body.get("workspaceData"),
            )
        except SessionNotFoundError:
            return _error(404, "Session not found")
        except InvalidInputError as e:
            return _error(400, str(e))
        except Exception as e:
            logger.error(f"Error updating session state: {e}")
            return _error(500, "Internal server error")
        return JSONResponse(
            {
                "success": True,
                "message": "Session state updated successfully",
                "session": record.to_json(),
            }
        )

    async def reset_session(self, request: Request) -> JSONResponse:
        session_id = request.path_params.get("session_id")
        try:
            record = await run_in_threadpool(self.store.reset, session_id)
        except InvalidInputError:
            return _error(400, "Invalid session ID format")
        except SessionNotFoundError:
            return _error(404, "Session not found")
        except Exception as e:
            logger.error(f"Error resetting session: {e}")
            return _error(500, "Internal server error")
        return JSONResponse(
            {
                "success": True,
                "message": "Session reset successfully",
                "session": record.to_json(),
            }
        )

    async def upload_file(self, request: Request) -> JSONResponse:
        session_id = request.path_params.get("session_id")
        try:
            validate_session_id(session_id)
        except InvalidInputError:
            return _error(400, "Invalid session ID format")
        if not self.store.has_session(session_id):
            return _error(404, "Session not found")
        if self._declared_length(request) > self.max_upload_bytes + _MULTIPART_OVERHEAD:
            # Refused before Starlette spools the body
            return _error(413, too_large_message(self.max_upload_bytes))

        try:
            form = await request.form()
        except Exception as e:
            logger.info(f"Unreadable upload body for {session_id}: {e}")
            return _error(400, "No file uploaded")
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            return _error(400, "No file uploaded")

        try:
            # One byte past the cap is enough to detect an oversized file
            content = await upload.read(self.max_upload_bytes + 1)
            validate_upload(upload.content_type, len(content), self.max_upload_bytes)
            info = build_upload_info(upload.filename, upload.content_type, content)
            await run_in_threadpool(self.store.add_upload, session_id, info)
        except PayloadTooLargeError as e:
            return _error(413, str(e))
        except InvalidInputError as e:
            return _error(400, str(e))
        except SessionNotFoundError:
            return _error(404, "Session not found")
        except Exception as e:
            logger.error(f"Error uploading file: {e}")
            return _error(500, "Internal server error")
        finally:
            await upload.close()

        return JSONResponse(
            {
                "success": True,
                "message": "File uploaded successfully",
                "uploadInfo": public_upload_info(info),
            }
        )

    async def health(self, request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "success": True,
                "message": "Server is running",
                "timestamp": to_iso(time.time()),
                "activeSessions": self.store.session_count(),
            }
        )


async def _not_found(request: Request, exc: HTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return _error(404, "API endpoint not found")
    return _error(exc.status_code, str(exc.detail))


def create_app(api: SessionAPI) -> Starlette:
    """Standalone Starlette application exposing the session endpoints."""
    routes = [
        Route(path, endpoint, methods=methods)
        for path, methods, endpoint in api.route_table()
    ]
    return Starlette(routes=routes, exception_handlers={HTTPException: _not_found})


def register_routes(server: FastMCP, api: SessionAPI) -> None:
    """Mount the session endpoints on a FastMCP server as custom HTTP routes."""
    for path, methods, endpoint in api.route_table():
        server.custom_route(path, methods=methods)(endpoint)


# Global session API instance
CONFIG = ServerConfig.from_env()
session_api = SessionAPI(build_session_store(CONFIG), CONFIG.max_upload_bytes)
register_routes(mcp, session_api)


# === TOOLS ===
@mcp.tool
def inspect_session(session_id: str) -> str:
    """Inspect the stored state of one editor session (read-only summary).

    Args:
        session_id: Session ID (version-4 UUID)

    Returns:
        Human-readable summary of the session's uiState and workspaceData
    """
    return session_api.inspect_session(session_id)


# === MAIN ENTRY POINT ===
def main():
    """Run the session server over HTTP with the eviction sweep enabled."""
    sweeper = SessionSweeper(
        session_api.store,
        max_age_seconds=CONFIG.session_max_age_seconds,
        interval_seconds=CONFIG.sweep_interval_seconds,
    )
    log_system_status(
        session_api.store.__class__.__name__, session_api.store.session_count()
    )
    sweeper.start()
    logger.info(
        f"Session server listening at http://{CONFIG.host}:{CONFIG.port} "
        f"(sessions expire after {CONFIG.session_max_age_seconds:.0f}s idle)"
    )
    try:
        mcp.run(transport="http", host=CONFIG.host, port=CONFIG.port)
    finally:
        sweeper.stop()
        session_api.store.close()


if __name__ == "__main__":
    main()
