# backend/api/ops.py
from fastapi import APIRouter, Depends

from api.deps import get_registry, get_session_store, get_settings
from core.config import Settings
from services.connection_registry import ConnectionRegistry
from services.session_store import SessionStore

router = APIRouter(prefix="/ops", tags=["ops"])


@router.get("/status")
def ops_status(
    cfg: Settings = Depends(get_settings),
    registry: ConnectionRegistry = Depends(get_registry),
    store: SessionStore = Depends(get_session_store),
):
    return {
        "connections": len(registry),
        "sessions": len(store),
        "providers": cfg.configured_providers,
        "transcription": cfg.transcription_provider,
    }
