"""FastAPI application — Hours Registry API."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hours_tool.config import Settings
from hours_tool.logging_config import setup_logging

from api.routes import router

settings = Settings.from_env()
setup_logging("hours-api", settings.log_level, settings.log_dir)

app = FastAPI(
    title="Hours Registry API",
    description="Worker hours calendar, day summaries, registration drafts and spreadsheet export.",
    version="1.0.0",
)

# CORS: ALLOWED_ORIGINS="*" allows any origin
_allow_all = "*" in settings.allowed_origins

if _allow_all:
    ALLOWED_ORIGINS: list[str] = ["*"]
elif settings.allowed_origins:
    ALLOWED_ORIGINS = settings.allowed_origins
else:
    ALLOWED_ORIGINS = [
        "http://localhost:8080",
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:8080",
    ]

app.state.settings = settings

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=not _allow_all,  # credentials not allowed with wildcard
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

app.include_router(router)


@app.get("/")
async def root():
    return {
        "name": "Hours Registry API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
