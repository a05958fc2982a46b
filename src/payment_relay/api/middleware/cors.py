"""CORS middleware configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fastapi import FastAPI


def setup_cors(app: FastAPI, origins: Sequence[str] = ("*",)) -> None:
    """Add CORS middleware for browser checkout pages.

    Credentials are only allowed for an explicit origin list; browsers
    reject ``*`` combined with credentials.
    """
    allow_origins = list(origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials="*" not in allow_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
