"""
Cohort Backend API
FastAPI application for bulk member import and invitations.
"""

import logging
import os
import socket
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cohort.routers import members
from cohort.db import supabase_admin

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


def get_local_ip() -> Optional[str]:
    """
    Detect the host machine's local network IP address.

    ``HOST_IP`` wins when set (Docker cannot see the host's LAN address);
    otherwise the UDP connect trick lets the OS pick the outbound interface.
    Returns None if detection fails so callers can degrade gracefully.
    """
    host_ip = os.getenv("HOST_IP", "").strip()
    if host_ip:
        return host_ip

    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("8.8.8.8", 80))
            ip = s.getsockname()[0]
            if not ip.startswith("127."):
                return ip
    except OSError:
        pass

    return None


app = FastAPI(
    title="Cohort API",
    description="Bulk member import and invitation pipeline",
    version="0.1.0",
)


def get_cors_origins() -> List[str]:
    """
    Build the list of allowed CORS origins.

    Read from the CORS_ORIGINS environment variable as a comma-separated list,
    e.g. CORS_ORIGINS=https://app.example.com,https://preview.example.com.
    Defaults to ["*"] so pre-flight requests are always answered.
    Duplicates are removed while preserving order.
    """
    cors_env = os.getenv("CORS_ORIGINS", "").strip()
    if not cors_env:
        return ["*"]

    seen: set = set()
    origins: List[str] = []
    for origin in (o.strip() for o in cors_env.split(",")):
        if origin and origin not in seen:
            seen.add(origin)
            origins.append(origin)

    return origins or ["*"]


# CORS origins are resolved at startup from environment.
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(members.router, prefix="/api/members", tags=["members"])


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Render every HTTPException as {"error": message}.

    Structured details ({"detail": ..., "error_code": ...}) keep their
    error_code alongside the message.
    """
    if isinstance(exc.detail, dict):
        body = {
            "error": exc.detail.get("detail"),
            "error_code": exc.detail.get("error_code"),
        }
    else:
        body = {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


@app.on_event("startup")
async def log_startup_urls() -> None:
    """Log the URLs the API is reachable at (port from ``HOST_PORT``, default 8000)."""
    host_port = os.getenv("HOST_PORT", "8000")
    local_ip = get_local_ip()
    network_line = (
        f"  Network: http://{local_ip}:{host_port}"
        if local_ip
        else "  Network: (unavailable)"
    )
    logger.info(
        "Cohort API running at:\n"
        "  Local:   http://localhost:%s\n"
        "%s",
        host_port,
        network_line,
    )


@app.get("/")
async def root():
    return {"message": "Cohort API", "version": "0.1.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/db")
async def health_db():
    """
    Test the Supabase database connection.

    Executes a lightweight query (SELECT 1 row from profiles) to verify that
    the Supabase admin client can reach the database.  Returns 503 on failure.
    """
    if supabase_admin is None:
        raise HTTPException(
            status_code=503,
            detail="Database client unavailable: SUPABASE_SERVICE_KEY is not configured",
        )

    try:
        supabase_admin.table("profiles").select("id").limit(1).execute()
        return {"status": "ok", "database": "reachable"}
    except Exception as exc:
        logger.error(f"Database health check failed: {exc}")
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {str(exc)}",
        )
