"""Application factory and context for the input bookmarking API.

This module provides a factory for creating the FastAPI app without
import-time side effects. All runtime state lives in an AppContext.

Usage:
------
    # For production (uses default settings from environment)
    app = create_app()

    # For testing (custom configuration)
    app = create_app(store_mode="server", bookmark_dir=tmp_path)
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend import __version__
from backend.config import (
    DEFAULT_BOOKMARK_DIR,
    DEFAULT_POLICY,
    DEFAULT_STORE_MODE,
    STORE_MODES,
    load_input_defaults,
    parse_exclude,
)
from backend.logging_config import configure_logging
from backend.session_manager import SessionManager
from bookmarking import BookmarkPolicy, BookmarkStore, FileBookmarkStore


@dataclass
class AppContext:
    """Runtime context holding all application state.

    Dependencies are explicit so each test can build a fresh context.
    """

    # Configuration
    store_mode: str = field(
        default_factory=lambda: os.getenv("BOOKMARK_STORE", DEFAULT_STORE_MODE).strip().lower()
    )
    policy: str = field(
        default_factory=lambda: os.getenv("BOOKMARK_POLICY", DEFAULT_POLICY).strip().lower()
    )
    bookmark_dir: str = field(
        default_factory=lambda: os.getenv("BOOKMARK_DIR", DEFAULT_BOOKMARK_DIR)
    )
    exclude: List[str] = field(
        default_factory=lambda: parse_exclude(os.getenv("BOOKMARK_EXCLUDE"))
    )
    input_defaults: Dict[str, Any] = field(
        default_factory=lambda: load_input_defaults(os.getenv("BOOKMARK_INPUTS_FILE"))
    )
    production_mode: bool = field(
        default_factory=lambda: os.getenv("PRODUCTION", "false").lower() == "true"
    )
    allowed_origins: list = field(
        default_factory=lambda: os.getenv("ALLOWED_ORIGINS", "*").split(",")
    )
    server_version: str = __version__

    # Runtime state
    store: Optional[BookmarkStore] = None
    session_manager: Optional[SessionManager] = None

    # Timing
    server_start_time: float = field(default_factory=time.time)

    # Logging
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("backend"))

    def validate(self) -> None:
        """Reject unknown store modes and policies before anything is built.

        Raises:
            ValueError: On an unknown BOOKMARK_STORE or BOOKMARK_POLICY value
        """
        if self.store_mode not in STORE_MODES:
            raise ValueError(
                f"Unknown bookmark store {self.store_mode!r} (expected one of {', '.join(STORE_MODES)})"
            )
        try:
            BookmarkPolicy(self.policy)
        except ValueError as e:
            raise ValueError(
                f"Unknown bookmark policy {self.policy!r} (expected explicit or automatic)"
            ) from e

    def build(self) -> None:
        """Create the store and session manager if not injected."""
        if self.store is None and self.store_mode == "server":
            self.store = FileBookmarkStore(self.bookmark_dir)
        if self.session_manager is None:
            self.session_manager = SessionManager(
                self.input_defaults,
                store_mode=self.store_mode,
                policy=self.policy,
                store=self.store,
                exclude=self.exclude,
            )

    def get_server_info(self) -> Dict[str, Any]:
        return {
            "status": "online",
            "version": self.server_version,
            "uptime_seconds": time.time() - self.server_start_time,
            "store": self.store_mode,
            "policy": self.policy,
            "inputs": list(self.input_defaults),
            "exclude": list(self.exclude),
            "sessions": self.session_manager.session_count if self.session_manager else 0,
        }


def create_app(
    *,
    store_mode: Optional[str] = None,
    policy: Optional[str] = None,
    bookmark_dir: Optional[Union[str, Path]] = None,
    exclude: Optional[Iterable[str]] = None,
    input_defaults: Optional[Dict[str, Any]] = None,
    production_mode: Optional[bool] = None,
    context: Optional[AppContext] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store_mode: Override BOOKMARK_STORE ("url", "server", "disable")
        policy: Override BOOKMARK_POLICY ("explicit", "automatic")
        bookmark_dir: Override BOOKMARK_DIR
        exclude: Override BOOKMARK_EXCLUDE
        input_defaults: Override the declared inputs
        production_mode: Override production mode (default: from PRODUCTION env var)
        context: Pre-configured AppContext (for testing). If None, creates a new one.

    Returns:
        Configured FastAPI application with context attached as app.state.context

    Raises:
        ValueError: If the store mode or policy is unknown
    """
    logger = configure_logging()

    if context is None:
        context = AppContext()

    if store_mode is not None:
        context.store_mode = store_mode
    if policy is not None:
        context.policy = policy
    if bookmark_dir is not None:
        context.bookmark_dir = str(bookmark_dir)
    if exclude is not None:
        context.exclude = list(exclude)
    if input_defaults is not None:
        context.input_defaults = dict(input_defaults)
    if production_mode is not None:
        context.production_mode = production_mode

    context.logger = logger
    context.validate()
    context.build()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown."""
        ctx = app.state.context
        ctx.logger.info(
            f"LIFESPAN: Serving {len(ctx.input_defaults)} inputs "
            f"(store={ctx.store_mode}, policy={ctx.policy}, exclude={ctx.exclude})"
        )
        yield
        closed = ctx.session_manager.close_all()
        ctx.logger.info(f"LIFESPAN: Shutdown complete, closed {closed} sessions")

    app = FastAPI(
        title="Input Bookmarks API",
        version=context.server_version,
        lifespan=lifespan,
        docs_url=None if context.production_mode else "/docs",
        redoc_url=None if context.production_mode else "/redoc",
    )

    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=context.allowed_origins if context.production_mode else ["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    _setup_routers(app, context)
    return app


def _setup_routers(app: FastAPI, ctx: AppContext) -> None:
    """Setup and include all API routers."""
    from backend.routers import websocket
    from backend.routers.bookmarks import setup_bookmarks_router
    from backend.routers.sessions import setup_sessions_router

    app.include_router(setup_sessions_router(ctx.session_manager))
    app.include_router(setup_bookmarks_router(ctx.store))
    app.include_router(websocket.setup_router(ctx.session_manager))

    @app.get("/health")
    async def health():
        return ctx.get_server_info()

    ctx.logger.info("API routers configured successfully")
