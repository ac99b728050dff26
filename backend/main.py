from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse, RedirectResponse
import logging
import os
from typing import Optional

from .config import settings, check_startup_settings
from .routers import auth, data, pricing
from .auth import get_session_user
from .storage import AutoBackupTask, shared_rotator

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("printcost")

app = FastAPI(
    title="3D Print Cost Tracker",
    description="Track 3D-print jobs and estimate their cost and selling price",
    version="1.0.0"
)

# API routes
app.include_router(data.router, prefix="/api")
app.include_router(pricing.router, prefix="/api")
app.include_router(auth.router, prefix="/api")

frontend_path = os.path.join(os.path.dirname(__file__), "..", "frontend")

# Reachable without a session cookie
PUBLIC_PATHS = {"/login", "/api/auth/login", "/health"}


@app.middleware("http")
async def require_session(request: Request, call_next):
    """Auth gate: anything but the public paths needs a valid session, else redirect."""
    path = request.url.path
    if path in PUBLIC_PATHS:
        return await call_next(request)
    if get_session_user(request) is None:
        return RedirectResponse("/login", status_code=303)
    return await call_next(request)


# Serve frontend static files
if os.path.exists(frontend_path):
    @app.get("/login")
    def serve_login():
        return FileResponse(os.path.join(frontend_path, "login.html"))

    index_path = os.path.join(frontend_path, "index.html")
    if os.path.exists(index_path):
        @app.get("/")
        def serve_frontend():
            return FileResponse(index_path)

    for asset_dir in ("css", "js"):
        asset_path = os.path.join(frontend_path, asset_dir)
        if os.path.exists(asset_path):
            app.mount(f"/{asset_dir}", StaticFiles(directory=asset_path), name=asset_dir)


@app.get("/health")
def health():
    return {"status": "ok", "app": "printcost"}


# Built on startup so it shares the rotator the data endpoints use
auto_backup: Optional[AutoBackupTask] = None


@app.on_event("startup")
def check_configuration():
    """Refuse to start with an empty password or unexamined default credentials."""
    check_startup_settings(settings)
    if settings.using_default_credentials:
        logger.warning("Running with default credentials (ALLOW_DEFAULT_CREDENTIALS=true)")


@app.on_event("startup")
async def start_auto_backup():
    global auto_backup
    if settings.AUTO_BACKUP_ENABLED:
        auto_backup = AutoBackupTask(
            shared_rotator(settings.DATA_FILE, settings.BACKUP_DIR),
            interval_seconds=settings.AUTO_BACKUP_INTERVAL_MINUTES * 60,
            keep=settings.AUTO_BACKUP_KEEP,
        )
        auto_backup.start()


@app.on_event("shutdown")
async def stop_auto_backup():
    global auto_backup
    if auto_backup is not None:
        await auto_backup.stop()
        auto_backup = None
