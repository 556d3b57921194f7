# backend/api/sessions.py
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response

from api.deps import get_session_store
from schemas.events import ExportFormat
from services.session_store import SessionStore, export_filename

router = APIRouter(prefix="/sessions", tags=["sessions"])

_MEDIA_TYPES = {"json": "application/json", "csv": "text/csv"}


@router.get("")
def list_sessions(
    limit: int = Query(10, ge=1, le=500),
    store: SessionStore = Depends(get_session_store),
):
    return [s.to_wire() for s in store.list(limit)]


# declared before /{session_id} so "export" is not taken for an id
@router.get("/export")
def export_sessions(
    format: ExportFormat = Query("json"),
    store: SessionStore = Depends(get_session_store),
):
    filename = export_filename(format)
    return Response(
        content=store.export(format),
        media_type=_MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{session_id}")
def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    session = store.get(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session.to_wire()


@router.delete("/{session_id}")
def delete_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    if not store.delete(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return {"ok": True, "deleted": session_id}


@router.delete("")
def clear_sessions(store: SessionStore = Depends(get_session_store)):
    store.clear()
    return {"ok": True}
