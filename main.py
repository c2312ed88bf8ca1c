# ================================================================
# MES Dashboard Backend
# Equipment / Process Stage / Line entities + Live Equipment Feed
# ================================================================
#
# Run:  python main.py
#       uvicorn main:app --port 3001
#
# Persisted state lives in data/ (override with MES_DATA_DIR):
#   equipments.json, processTitles.json, lineNames.json, users.json
# ================================================================

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import datetime
import logging

from app import config
from app.auth import register_auth_routes, init_user_directory, get_user_directory
from app.realtime import register_realtime_routes, get_broadcaster, reset_broadcaster, get_sse_manager, reset_sse_manager
from app.store import register_store_routes, init_stores, get_counts

logger = logging.getLogger("mes.main")

# ================================================================
# FASTAPI APP
# ================================================================

mes_app = FastAPI(title="MES Dashboard Backend")
app = mes_app

mes_app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def _mes_startup():
    # Collections are loaded once and held for the process lifetime.
    config.reload_config()
    data_dir = config.get_config("data_dir")
    stores = init_stores(data_dir)
    init_user_directory(config.document_path(config.USERS_DOCUMENT))
    reset_sse_manager()
    reset_broadcaster()
    logger.info(
        "[MES] Startup complete: "
        + ", ".join(f"{name}={store.count()}" for name, store in stores.items())
        + f" (data dir {data_dir})"
    )


# ================================================================
# ROUTES
# ================================================================

register_store_routes(app)
register_realtime_routes(app)
register_auth_routes(app)


@app.get("/api/health")
async def api_health():
    return {
        "ok": True,
        "ts": datetime.datetime.now().isoformat(),
        "counts": get_counts(),
        "users": get_user_directory().count(),
        "subscribers": get_broadcaster().count_connections(),
        "sse_subscribers": get_sse_manager().count_subscribers(),
    }


if __name__ == "__main__":
    import uvicorn

    log_level = config.get_config("log_level", "info")
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"[MES] Backend starting on http://localhost:{config.get_config('port')}")
    uvicorn.run(
        app,
        host=config.get_config("host"),
        port=config.get_config("port"),
        log_level=log_level,
    )
