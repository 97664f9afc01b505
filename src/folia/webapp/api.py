"""REST API exposing the library snapshot and operation handlers."""

import os
import secrets
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import __version__
from ..cache import SnapshotCache
from ..config import get_api_token
from ..errors import ErrorKind
from ..models import LibrarySnapshot, OperationResult, SearchResult
from ..operations import Authorizer, LibraryOperations, allow_all

# HTTP status per failure kind; successes are 200
STATUS_BY_ERROR = {
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.INVALID_NAME: 400,
    ErrorKind.INVALID_PATH: 400,
    ErrorKind.INVALID_QUERY: 400,
    ErrorKind.EXISTS: 409,
    ErrorKind.WRITE_FAILED: 500,
    ErrorKind.READ_FAILED: 500,
}


# Request models
class CreateRequest(BaseModel):
    """Create a folder or page under a parent ("" is the root)."""
    parent_path: str = ""
    name: str


class RenameRequest(BaseModel):
    path: str
    new_name: str


class TransferRequest(BaseModel):
    """Copy or move source to dest_parent/name."""
    source_path: str
    dest_parent: str = ""
    name: str


class SaveRequest(BaseModel):
    path: str
    content: str


def bearer_authorizer(request: Request) -> Authorizer:
    """Authorizer for this request: open when FOLIA_API_TOKEN is unset."""
    token = get_api_token()
    if token is None:
        return allow_all
    scheme, _, supplied = request.headers.get("authorization", "").partition(" ")
    allowed = scheme.lower() == "bearer" and secrets.compare_digest(supplied.strip(), token)
    return lambda: allowed


def get_operations(request: Request) -> LibraryOperations:
    """Handlers bound to the app's library and this request's caller."""
    operations: LibraryOperations = request.app.state.operations
    return operations.with_authorizer(bearer_authorizer(request))


def respond(result: OperationResult | SearchResult) -> JSONResponse:
    status = 200 if result.ok else STATUS_BY_ERROR.get(result.error, 500)
    return JSONResponse(status_code=status, content=result.model_dump(mode="json", exclude_none=True))


def create_app(root: str | os.PathLike | None = None) -> FastAPI:
    """Build the API for one library.

    The snapshot cache (and its filesystem watch) lives as long as the app and
    is closed on shutdown.

    Args:
        root: Library root. Uses config discovery when None.
    """
    cache = SnapshotCache(root=root)
    operations = LibraryOperations(root=root, cache=cache)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        cache.close()

    app = FastAPI(
        title="folia",
        description="Filesystem-backed markdown library",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.cache = cache
    app.state.operations = operations

    @app.get("/")
    async def index():
        return {"message": "folia API", "docs": "/docs"}

    @app.get("/api/snapshot", response_model=LibrarySnapshot)
    async def snapshot(request: Request):
        """Full tree, collections and recent pages."""
        if not await get_operations(request).is_authorized():
            return respond(OperationResult.failure(ErrorKind.UNAUTHORIZED))
        return await cache.get_snapshot()

    @app.post("/api/folders")
    async def create_folder(body: CreateRequest, ops: LibraryOperations = Depends(get_operations)):
        return respond(await ops.create_folder(body.parent_path, body.name))

    @app.post("/api/files")
    async def create_file(body: CreateRequest, ops: LibraryOperations = Depends(get_operations)):
        return respond(await ops.create_file(body.parent_path, body.name))

    @app.post("/api/folders/rename")
    async def rename_folder(body: RenameRequest, ops: LibraryOperations = Depends(get_operations)):
        return respond(await ops.rename_folder(body.path, body.new_name))

    @app.post("/api/files/rename")
    async def rename_file(body: RenameRequest, ops: LibraryOperations = Depends(get_operations)):
        return respond(await ops.rename_file(body.path, body.new_name))

    @app.delete("/api/folders")
    async def delete_folder(path: str = Query(...), ops: LibraryOperations = Depends(get_operations)):
        return respond(await ops.delete_folder(path))

    @app.delete("/api/files")
    async def delete_file(path: str = Query(...), ops: LibraryOperations = Depends(get_operations)):
        return respond(await ops.delete_file(path))

    @app.post("/api/folders/copy")
    async def copy_folder(body: TransferRequest, ops: LibraryOperations = Depends(get_operations)):
        return respond(await ops.copy_folder(body.source_path, body.dest_parent, body.name))

    @app.post("/api/folders/move")
    async def move_folder(body: TransferRequest, ops: LibraryOperations = Depends(get_operations)):
        return respond(await ops.move_folder(body.source_path, body.dest_parent, body.name))

    @app.post("/api/files/copy")
    async def copy_file(body: TransferRequest, ops: LibraryOperations = Depends(get_operations)):
        return respond(await ops.copy_file(body.source_path, body.dest_parent, body.name))

    @app.post("/api/files/move")
    async def move_file(body: TransferRequest, ops: LibraryOperations = Depends(get_operations)):
        return respond(await ops.move_file(body.source_path, body.dest_parent, body.name))

    @app.get("/api/files/content")
    async def load_file(path: str = Query(...), ops: LibraryOperations = Depends(get_operations)):
        return respond(await ops.load_file_content(path))

    @app.put("/api/files/content")
    async def save_file(body: SaveRequest, ops: LibraryOperations = Depends(get_operations)):
        return respond(await ops.save_file_content(body.path, body.content))

    @app.get("/api/search")
    async def search(q: str = Query(""), ops: LibraryOperations = Depends(get_operations)):
        """Pages whose content contains ``q`` (max 200)."""
        return respond(await ops.search(q))

    return app


def main():
    """Run the API server."""
    import uvicorn

    from .._logging import configure_logging

    configure_logging()
    host = os.environ.get("FOLIA_HOST", "127.0.0.1")
    port = int(os.environ.get("FOLIA_PORT", "8080"))

    uvicorn.run(create_app(), host=host, port=port)
