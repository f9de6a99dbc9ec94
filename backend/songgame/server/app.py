from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.logging import setup_logging
from songgame.logic.exceptions import InvalidRoomCodeError
from songgame.logic.models import generate_room_code, normalize_room_code
from songgame.lyrics.cache import LyricsCache
from songgame.lyrics.provider import LyricsOvhProvider
from songgame.lyrics.verifier import LyricsVerifier
from songgame.messaging.router import MessageRouter
from songgame.server.settings import GameServerSettings
from songgame.server.websocket import websocket_endpoint
from songgame.session.manager import RoomManager

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request
    from starlette.websockets import WebSocket

_MAX_ROOM_CODE_ATTEMPTS = 20


async def health(request: Request) -> JSONResponse:
    room_manager: RoomManager = request.app.state.room_manager
    return JSONResponse(
        {"status": "ok", "rooms": room_manager.room_count, "version": APP_VERSION, "commit": GIT_COMMIT},
    )


async def create_room(request: Request) -> JSONResponse:
    """Reserve a fresh, currently unused room code."""
    room_manager: RoomManager = request.app.state.room_manager
    for _ in range(_MAX_ROOM_CODE_ATTEMPTS):
        room_id = generate_room_code()
        if room_manager.get_room(room_id) is None:
            room_manager.create_room(room_id)
            return JSONResponse({"roomId": room_id}, status_code=201)
    logger.error("could not generate an unused room code", attempts=_MAX_ROOM_CODE_ATTEMPTS)
    return JSONResponse({"error": "Could not allocate a room code"}, status_code=503)


async def get_room_state(request: Request) -> JSONResponse:
    """Polling fallback: the same state the WebSocket broadcasts."""
    room_manager: RoomManager = request.app.state.room_manager
    try:
        room_id = normalize_room_code(request.path_params["room_id"])
    except InvalidRoomCodeError:
        return JSONResponse({"error": "Invalid room code"}, status_code=400)

    state = room_manager.get_state(room_id)
    if state is None:
        return JSONResponse({"error": "Room not found"}, status_code=404)
    return JSONResponse(state.to_wire())


def _build_verifier(settings: GameServerSettings) -> LyricsVerifier:
    return LyricsVerifier(
        LyricsOvhProvider(settings.lyrics_api_url, timeout=settings.lyrics_timeout_seconds),
        LyricsCache(ttl_seconds=settings.lyrics_cache_ttl_seconds, max_entries=settings.lyrics_cache_max_entries),
        lookup_timeout=settings.lyrics_timeout_seconds,
        max_variants=settings.lyrics_max_variants,
    )


def create_app(
    settings: GameServerSettings | None = None,
    *,
    room_manager: RoomManager | None = None,
    verifier: LyricsVerifier | None = None,
    message_router: MessageRouter | None = None,
) -> Starlette:
    if settings is None:
        settings = GameServerSettings()

    if room_manager is None:
        room_manager = RoomManager(
            room_ttl_seconds=settings.room_ttl_seconds,
            reaper_interval_seconds=settings.reaper_interval_seconds,
            default_round_duration=settings.default_round_duration,
        )

    if verifier is None and settings.verify_submissions:
        verifier = _build_verifier(settings)

    if message_router is None:
        message_router = MessageRouter(room_manager, verifier, verify_submissions=settings.verify_submissions)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, message_router)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/rooms", create_room, methods=["POST"]),
        Route("/rooms/{room_id}", get_room_state, methods=["GET"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        room_manager.start_reaper()
        logger.info("game server ready")
        try:
            yield
        finally:
            await room_manager.stop_reaper()
            if verifier is not None:
                await verifier.aclose()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.room_manager = room_manager
    app.state.verifier = verifier
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (uvicorn songgame.server.app:get_app --factory)."""
    settings = GameServerSettings()
    setup_logging(settings.log_dir)
    return create_app(settings=settings)
