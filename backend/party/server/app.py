from __future__ import annotations

import contextlib
import random
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from party.judging.guarded import GuardedJudge
from party.judging.llm import LLMJudge
from party.judging.offline import OfflineJudge
from party.judging.topics import load_topics
from party.logic.room import ROOM_ID_LENGTH
from party.messaging.router import MessageRouter
from party.repository.memory import InMemoryRoomRepository
from party.server.settings import PartyServerSettings
from party.server.websocket import websocket_endpoint
from party.session.broadcast import RoomBroadcaster
from party.session.manager import RoomManager
from party.session.registry import SessionRegistry
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request
    from starlette.websockets import WebSocket

    from party.judging.gateway import JudgingGateway
    from party.repository.base import RoomRepository


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


async def status(request: Request) -> JSONResponse:
    manager: RoomManager = request.app.state.room_manager
    registry: SessionRegistry = request.app.state.session_registry
    settings: PartyServerSettings = request.app.state.settings
    return JSONResponse(
        {
            "status": "ok",
            "version": APP_VERSION,
            "commit": GIT_COMMIT,
            "rooms": await manager.room_count(),
            "max_rooms": settings.max_rooms,
            "connections": registry.connection_count,
        },
    )


async def room_info(request: Request) -> JSONResponse:
    """Let a client check a room code before joining."""
    manager: RoomManager = request.app.state.room_manager
    room_id = request.path_params["room_id"].strip().upper()
    if len(room_id) != ROOM_ID_LENGTH or not room_id.isalpha():
        return JSONResponse({"error": "Invalid room code"}, status_code=400)
    room = await manager.get_room(room_id)
    if room is None:
        return JSONResponse({"error": "Room not found"}, status_code=404)
    return JSONResponse(
        {
            "room_id": room.id,
            "game_type": room.game_type.value,
            "player_count": len(room.players),
            "in_game": room.game is not None,
        },
    )


def build_judge(settings: PartyServerSettings) -> JudgingGateway:
    """Wrap the configured judge in the fail-open guard."""
    topics = load_topics(settings.topics_file)
    inner: JudgingGateway
    if settings.judge_api_key:
        inner = LLMJudge(
            settings.judge_api_url,
            settings.judge_api_key,
            settings.judge_model,
            timeout=settings.judge_timeout_seconds,
        )
    else:
        logger.info("no judge API key configured, using offline judge")
        inner = OfflineJudge(topics)
    return GuardedJudge(inner, timeout_seconds=settings.judge_timeout_seconds, topics=topics)


def create_app(
    settings: PartyServerSettings | None = None,
    room_manager: RoomManager | None = None,
    judge: JudgingGateway | None = None,
    repository: RoomRepository | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = PartyServerSettings()

    if room_manager is None:
        if judge is None:
            judge = build_judge(settings)
        room_manager = RoomManager(
            repository or InMemoryRoomRepository(),
            judge,
            max_rooms=settings.max_rooms,
            default_total_rounds=settings.default_total_rounds,
            room_id_attempts=settings.room_id_attempts,
            empty_room_ttl=settings.empty_room_ttl_seconds,
            rng=random.Random(),  # noqa: S311
        )

    registry = SessionRegistry()
    broadcaster = RoomBroadcaster(registry)
    room_manager.subscribe(broadcaster.on_room_changed)
    message_router = MessageRouter(room_manager, registry, broadcaster)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, message_router)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        Route("/rooms/{room_id}", room_info, methods=["GET"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        room_manager.start_room_reaper()
        yield
        await room_manager.stop_room_reaper()
        if judge is not None:
            await judge.aclose()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.room_manager = room_manager
    app.state.session_registry = registry

    logger.info("party server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    settings = PartyServerSettings()
    setup_logging(settings.log_dir)
    return create_app(settings=settings)
