import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.app import config
from backend.app.api.routes.accounts import router as accounts_router
from backend.app.api.routes.investments import router as investments_router
from backend.app.api.routes.notifications import router as notifications_router
from backend.app.finance.errors import StorageUnavailable


logger = logging.getLogger(__name__)

LOCAL_DEV_ORIGINS = ("http://localhost:5173", "http://127.0.0.1:5173")


def _cors_origins() -> list[str]:
    raw = config.cors_origins_raw()
    if raw is None:
        origins = list(LOCAL_DEV_ORIGINS)
    else:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must not be empty.")
    if not any(origin in origins for origin in LOCAL_DEV_ORIGINS):
        logger.warning("CORS allowlist does not include local dev origins: %s", origins)
    return origins


app = FastAPI(title="FinHub API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StorageUnavailable)
def _storage_unavailable(request: Request, exc: StorageUnavailable) -> JSONResponse:
    logger.error("storage unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "storage unavailable", "operation": exc.operation})


app.include_router(investments_router)
app.include_router(accounts_router)
app.include_router(notifications_router)
