from fastapi import APIRouter, Request
from sqlalchemy import text


router = APIRouter()


@router.get("/health")
def health(request: Request):
    state = request.app.state
    database = "ok"
    try:
        with state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        database = "unavailable"
    cache = getattr(state, "cache", None)
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "cache": "ok" if cache is not None and cache.is_available() else "unavailable",
    }
