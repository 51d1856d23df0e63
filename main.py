import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError

from config import Settings, get_settings
from database import KeyValueStore, create_store
from errors import (
    CorruptedStateError,
    InvalidQueryError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
)
from repositories import Repository, build_repositories, dashboard_stats
from schemas import BulkDelete, LoginRequest, ReplyPayload, StatusChange, dump, utcnow
from seed import initialize_storage
from session import SessionGate

logger = logging.getLogger(__name__)


# Request bodies
class Document(BaseModel):
    data: Dict[str, Any]


class MarkRead(BaseModel):
    read: bool = True


# Dependencies
def get_repositories(request: Request) -> Dict[str, Repository]:
    return request.app.state.repositories


def get_gate(request: Request) -> SessionGate:
    return request.app.state.gate


def get_repository(collection: str, request: Request) -> Repository:
    repo = request.app.state.repositories.get(collection)
    if repo is None:
        raise HTTPException(status_code=400, detail="Unknown collection")
    return repo


def ensure_admin(gate: SessionGate = Depends(get_gate)) -> None:
    if not gate.is_authenticated():
        raise HTTPException(status_code=401, detail="Not logged in")


def require_confirmation(confirm: bool = Query(False)) -> None:
    if not confirm:
        raise HTTPException(status_code=400, detail="Deletion must be confirmed")


def _error(status_code: int, detail: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": jsonable_encoder(detail)})


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return _error(422, exc.errors(include_url=False, include_context=False, include_input=False))

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition(request: Request, exc: InvalidTransitionError):
        return _error(409, str(exc))

    @app.exception_handler(StorageError)
    @app.exception_handler(CorruptedStateError)
    async def storage_error(request: Request, exc):
        logger.error("Storage failure: %s", exc)
        return _error(500, {"message": str(exc), "key": exc.key})

    @app.exception_handler(InvalidQueryError)
    async def bad_query(request: Request, exc: InvalidQueryError):
        return _error(400, str(exc))


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    clock: Callable = utcnow,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))

    app = FastAPI(title=settings.APP_NAME)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)

    store = store if store is not None else create_store(settings)
    initialize_storage(store, settings)
    if settings.uses_default_credentials:
        logger.warning("Default admin credentials are in use; this profile is not secure")

    app.state.settings = settings
    app.state.store = store
    app.state.repositories = build_repositories(store, settings, clock=clock)
    app.state.gate = SessionGate(
        store,
        marker=settings.SESSION_MARKER,
        settings=settings,
        on_corrupt=settings.CORRUPT_STATE_POLICY,
    )

    @app.get("/")
    def read_root():
        return {"message": f"{settings.APP_NAME} is running"}

    @app.get("/test")
    def test_storage(request: Request):
        response = {
            "backend": "✅ Running",
            "storage": "❌ Not Available",
            "storage_backend": settings.STORAGE_BACKEND,
            "data_dir": settings.DATA_DIR if settings.STORAGE_BACKEND == "file" else None,
            "keys": [],
        }
        try:
            response["keys"] = request.app.state.store.keys()
            response["storage"] = "✅ Available"
        except (OSError, StorageError) as e:
            response["storage"] = f"❌ Error: {str(e)[:80]}"
        return response

    # Auth (single stored admin record, plain comparison)
    @app.post("/auth/login")
    def login(payload: LoginRequest, gate: SessionGate = Depends(get_gate)):
        if not gate.authenticate(payload.email, payload.password):
            raise HTTPException(status_code=401, detail="Invalid email or password")
        return {"email": payload.email, "authenticated": True}

    @app.post("/auth/logout")
    def logout(gate: SessionGate = Depends(get_gate)):
        gate.logout()
        return {"message": "logged out"}

    @app.get("/auth/session")
    def session_state(gate: SessionGate = Depends(get_gate)):
        return {"authenticated": gate.is_authenticated()}

    # Public contact form
    @app.post("/public/messages", status_code=201)
    def submit_message(payload: Document, repos=Depends(get_repositories)):
        return dump(repos["messages"].create(payload.data))

    # Resource-specific admin routes; registered before the generic ones
    @app.get("/admin/dashboard", dependencies=[Depends(ensure_admin)])
    def dashboard(repos=Depends(get_repositories)):
        return dashboard_stats(repos)

    @app.post("/admin/events/bulk-delete", dependencies=[Depends(ensure_admin), Depends(require_confirmation)])
    def bulk_delete_events(payload: BulkDelete, repos=Depends(get_repositories)):
        return {"deleted": repos["events"].delete_many(payload.ids)}

    @app.get("/admin/teachers/export", dependencies=[Depends(ensure_admin)])
    def export_teachers(repos=Depends(get_repositories)):
        return Response(
            content=repos["teachers"].export(),
            media_type="application/json",
            headers={"Content-Disposition": f"attachment; filename=teachers-export-{utcnow().date()}.json"},
        )

    @app.post("/admin/teachers/import", dependencies=[Depends(ensure_admin)])
    def import_teachers(payload: List[Dict[str, Any]] = Body(...), repos=Depends(get_repositories)):
        imported = repos["teachers"].import_records(payload)
        return {"imported": len(imported), "ids": [t.id for t in imported]}

    @app.get("/admin/teachers/statistics", dependencies=[Depends(ensure_admin)])
    def teacher_statistics(repos=Depends(get_repositories)):
        return repos["teachers"].statistics()

    @app.post("/admin/messages/read-all", dependencies=[Depends(ensure_admin)])
    def mark_all_messages_read(repos=Depends(get_repositories)):
        return {"updated": repos["messages"].mark_all_read()}

    @app.get("/admin/messages/counts", dependencies=[Depends(ensure_admin)])
    def message_counts(repos=Depends(get_repositories)):
        return repos["messages"].counts()

    @app.delete("/admin/messages", dependencies=[Depends(ensure_admin), Depends(require_confirmation)])
    def clear_messages(repos=Depends(get_repositories)):
        return {"deleted": repos["messages"].clear()}

    @app.post("/admin/messages/{item_id}/read", dependencies=[Depends(ensure_admin)])
    def mark_message_read(item_id: str, payload: Optional[MarkRead] = None, repos=Depends(get_repositories)):
        read = payload.read if payload is not None else True
        return dump(repos["messages"].mark_read(item_id, read))

    @app.post("/admin/messages/{item_id}/reply", dependencies=[Depends(ensure_admin)])
    def reply_to_message(item_id: str, payload: ReplyPayload, repos=Depends(get_repositories)):
        return dump(repos["messages"].reply(item_id, payload.content))

    @app.post("/admin/announcements/{item_id}/view", dependencies=[Depends(ensure_admin)])
    def record_announcement_view(item_id: str, repos=Depends(get_repositories)):
        return dump(repos["announcements"].record_view(item_id))

    # Generic CRUD
    @app.get("/admin/{collection}", dependencies=[Depends(ensure_admin)])
    def admin_list(request: Request, repo: Repository = Depends(get_repository)):
        criteria = dict(request.query_params)
        sort_by = criteria.pop("sort", None)
        items = repo.query(criteria, sort_by=sort_by)
        return [dump(it) for it in items]

    @app.get("/admin/{collection}/{item_id}", dependencies=[Depends(ensure_admin)])
    def admin_get(item_id: str, repo: Repository = Depends(get_repository)):
        return dump(repo.get(item_id))

    @app.post("/admin/{collection}", status_code=201, dependencies=[Depends(ensure_admin)])
    def admin_create(payload: Document, repo: Repository = Depends(get_repository)):
        return dump(repo.create(payload.data))

    @app.put("/admin/{collection}/{item_id}", dependencies=[Depends(ensure_admin)])
    def admin_update(item_id: str, payload: Document, repo: Repository = Depends(get_repository)):
        return dump(repo.update(item_id, payload.data))

    @app.delete("/admin/{collection}/{item_id}", dependencies=[Depends(ensure_admin), Depends(require_confirmation)])
    def admin_delete(item_id: str, repo: Repository = Depends(get_repository)):
        repo.delete(item_id)
        return {"message": "deleted"}

    @app.post("/admin/{collection}/{item_id}/status", dependencies=[Depends(ensure_admin)])
    def admin_transition(item_id: str, payload: StatusChange, repo: Repository = Depends(get_repository)):
        return dump(repo.transition(item_id, payload.status))

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.PORT)
