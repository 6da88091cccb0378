"""
Main FastAPI application entry point.
TDMS - Tourism Data Management System
"""
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tdms import config
from tdms.database import init_database
from tdms.logger import setup_logger
from tdms.reminders import start_scheduler, stop_scheduler
from tdms.routes import admin_routes, auth_routes, provincial_routes
from tdms.scope import ScopeError

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="TDMS",
    description="Tourism Data Management System - accommodation occupancy reporting",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.CLIENT_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    setup_logger()
    init_database()
    if config.ENABLE_SCHEDULER:
        start_scheduler()
    logger.info(f"TDMS API started ({config.APP_ENV})")


@app.on_event("shutdown")
async def shutdown_event():
    stop_scheduler()


@app.get("/")
async def root():
    return {"status": "ok", "service": "tdms"}


# Include route modules
app.include_router(auth_routes.router, prefix="/auth", tags=["Authentication"])
app.include_router(admin_routes.router, prefix="/admin", tags=["Admin"])
app.include_router(provincial_routes.router, prefix="/provincial-admin", tags=["Provincial / Regional Admin"])


# Error handlers
@app.exception_handler(ScopeError)
async def scope_error_handler(request: Request, exc: ScopeError):
    logger.warning(f"Scope rejected on {request.url.path}: {exc.message}")
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"success": False, "message": exc.detail}, status_code=exc.status_code)


@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception):
    status_code = getattr(exc, "status_code", None)
    if not isinstance(status_code, int):
        status_code = 500
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")

    body = {"success": False, "message": str(exc) or "Internal Server Error"}
    if config.IS_DEVELOPMENT:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(body, status_code=status_code)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("tdms.main:app", host="0.0.0.0", port=config.PORT, reload=config.IS_DEVELOPMENT)
