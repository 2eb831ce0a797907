"""
CORS for the browser front end.

Development accepts any origin (without credentials); other environments
only accept the origins listed in CORS_ALLOWED_ORIGINS.
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


@dataclass(frozen=True)
class CORSConfig:
    origins: List[str] = field(default_factory=list)
    allow_any_origin: bool = False
    methods: List[str] = field(default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "OPTIONS"])
    headers: List[str] = field(default_factory=lambda: ["Content-Type", "Authorization", "X-Request-ID"])
    max_age: int = 600


CORS_CONFIGS = {
    "development": CORSConfig(
        origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_any_origin=True,
    ),
    "production": CORSConfig(max_age=3600),
}


def get_cors_config(environment: str = "development", extra_origins: Optional[List[str]] = None) -> CORSConfig:
    """Profile for STOCKTRAIL_ENV, extended with configured origins. Unknown names use development."""
    base = CORS_CONFIGS.get(environment, CORS_CONFIGS["development"])
    return replace(base, origins=[*base.origins, *(extra_origins or [])])


def setup_cors(app: FastAPI, config: Optional[CORSConfig] = None) -> None:
    config = config or get_cors_config()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if config.allow_any_origin else config.origins,
        # Browsers refuse credentials with a wildcard origin
        allow_credentials=not config.allow_any_origin,
        allow_methods=config.methods,
        allow_headers=config.headers,
        expose_headers=["X-Request-ID"],
        max_age=config.max_age,
    )
