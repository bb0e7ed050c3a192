"""CORS for the platform frontend calling the gamification API directly."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from techrec.config import Settings
from techrec.middleware.request_id import REQUEST_ID_HEADER


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Bearer-token API: only the auth, JSON and request-id headers are needed."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
        max_age=settings.cors_max_age_seconds,
    )
