"""
Room command orchestrator.

Every state-mutating command for a room runs under that room's asyncio.Lock,
so commands for one room are serialized while different rooms proceed
concurrently. Judge calls are slow, so they are never awaited while the lock
is held. A command that needs the judge runs in two locked steps:

1. load the room, check preconditions, capture what the judge needs
2. (unlocked) await the judge
3. reload the room, re-check that the phase, round and topic it captured
   still hold, then apply the pure transition and persist

If step 3 finds the room has moved on, the command fails with
StaleStateError and nothing is persisted. RoomChanged events are delivered
after the lock is released.

A room whose players have all disconnected is kept so they can reconnect.
The room reaper deletes it once it has stayed empty for the configured TTL.
"""

from __future__ import annotations

import asyncio
import contextlib
import random
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

import structlog

from party.logic.enums import GamePhase, GameType
from party.logic.exceptions import (
    GameAlreadyStartedError,
    HintContainsTopicError,
    HintNotSingleWordError,
    InvalidPhaseError,
    NotEnoughPlayersError,
    RoomCapacityError,
    RoomFullError,
    RoomNotFoundError,
    StaleStateError,
)
from party.logic.just_one import Hint, JustOneGame, has_submitted, topics_to_avoid
from party.logic.room import (
    Room,
    add_player_to_room,
    connected_players,
    create_player,
    create_room,
    generate_room_id,
    get_player,
    update_player_connection,
)
from party.logic.rotation import next_answerer, pick_first_answerer
from party.logic.variants import get_config, get_machine
from party.session.events import RoomChanged
from party.session.guards import (
    require_answerer,
    require_game,
    require_host,
    require_member,
    require_phase,
)

if TYPE_CHECKING:
    from party.judging.gateway import JudgingGateway
    from party.repository.base import RoomRepository
    from party.session.events import RoomListener

logger = structlog.get_logger()

DEFAULT_TOTAL_ROUNDS = 5
DEFAULT_EMPTY_ROOM_TTL = 600.0  # seconds a room with nobody connected is kept
_ROOM_REAPER_INTERVAL = 30  # seconds between reaper checks


class RoomManager:
    def __init__(
        self,
        repository: RoomRepository,
        judge: JudgingGateway,
        *,
        max_rooms: int = 500,
        default_total_rounds: int = DEFAULT_TOTAL_ROUNDS,
        room_id_attempts: int = 100,
        empty_room_ttl: float = DEFAULT_EMPTY_ROOM_TTL,
        rng: random.Random | None = None,
        room_id_factory: Callable[[], str] = generate_room_id,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._repository = repository
        self._judge = judge
        self._max_rooms = max_rooms
        self._default_total_rounds = default_total_rounds
        self._room_id_attempts = room_id_attempts
        self._rng = rng or random.Random()  # noqa: S311
        self._room_id_factory = room_id_factory
        self._empty_room_ttl = empty_room_ttl
        self._clock = clock
        self._room_locks: dict[str, asyncio.Lock] = {}  # room_id -> Lock, only for stored rooms
        self._empty_since: dict[str, float] = {}  # room_id -> clock() when the last player left
        self._room_reaper_task: asyncio.Task[None] | None = None
        self._create_lock = asyncio.Lock()
        self._listeners: list[RoomListener] = []

    def subscribe(self, listener: RoomListener) -> None:
        self._listeners.append(listener)

    async def _room_lock(self, room_id: str) -> asyncio.Lock:
        """Return the room's lock, creating it only for a room that exists."""
        lock = self._room_locks.get(room_id)
        if lock is None:
            if not await self._repository.exists(room_id):
                raise RoomNotFoundError(f"Room {room_id} not found")
            lock = self._room_locks.setdefault(room_id, asyncio.Lock())
        return lock

    async def get_room(self, room_id: str) -> Room | None:
        return await self._repository.get(room_id.strip().upper())

    async def room_count(self) -> int:
        return await self._repository.count()

    async def _load(self, room_id: str) -> Room:
        room = await self._repository.get(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room {room_id} not found")
        return room

    async def _persist(self, room: Room) -> Room:
        """Write the room with the next revision. Call only under the room lock."""
        stored = room.model_copy(update={"revision": room.revision + 1})
        await self._repository.set(stored)
        return stored

    async def _publish(self, event: RoomChanged) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception:
                logger.exception("room listener failed", room_id=event.room_id)

    # -- room lifecycle ----------------------------------------------------

    async def _allocate_room_id(self) -> str:
        for _ in range(self._room_id_attempts):
            room_id = self._room_id_factory()
            if not await self._repository.exists(room_id):
                return room_id
        raise RoomCapacityError("Could not allocate a room code, try again")

    async def create_room(
        self,
        player_id: str,
        player_name: str,
        game_type: GameType | str = GameType.JUST_ONE,
    ) -> Room:
        machine = get_machine(game_type)
        with structlog.contextvars.bound_contextvars(player_id=player_id):
            async with self._create_lock:
                if await self._repository.count() >= self._max_rooms:
                    raise RoomCapacityError
                room_id = await self._allocate_room_id()
                host = create_player(player_id, player_name, is_host=True)
                room = await self._persist(create_room(room_id, host, machine.game_type))
            logger.info("room created", room_id=room.id, game_type=room.game_type)
        await self._publish(RoomChanged(room.id, room))
        return room

    async def join_room(self, room_id: str, player_id: str, player_name: str) -> Room:
        """Add a player, or reconnect them if their id is already a member."""
        room_id = room_id.strip().upper()
        with structlog.contextvars.bound_contextvars(room_id=room_id, player_id=player_id):
            async with await self._room_lock(room_id):
                room = await self._load(room_id)
                if get_player(room, player_id) is None:
                    config = get_config(room.game_type)
                    if len(room.players) >= config.max_players:
                        raise RoomFullError
                    room = add_player_to_room(room, create_player(player_id, player_name))
                    logger.info("player joined")
                else:
                    room = update_player_connection(room, player_id, is_connected=True)
                    logger.info("player rejoined")
                room = await self._persist(room)
                self._empty_since.pop(room_id, None)
        await self._publish(RoomChanged(room.id, room))
        return room

    async def set_connection(self, room_id: str, player_id: str, *, is_connected: bool) -> Room | None:
        """Toggle a member's connection flag.

        The player stays a member either way. Returns None when the room no
        longer exists.
        """
        hints_to_judge: tuple[Hint, ...] | None = None
        with structlog.contextvars.bound_contextvars(room_id=room_id, player_id=player_id):
            try:
                lock = await self._room_lock(room_id)
            except RoomNotFoundError:
                return None
            async with lock:
                room = await self._repository.get(room_id)
                if room is None or get_player(room, player_id) is None:
                    return room
                room = await self._persist(update_player_connection(room, player_id, is_connected=is_connected))
                if connected_players(room):
                    self._empty_since.pop(room_id, None)
                    hints_to_judge = self._hints_ready_for_judging(room)
                else:
                    self._empty_since.setdefault(room_id, self._clock())
                    logger.info("room empty, kept for reconnect", ttl_seconds=self._empty_room_ttl)

            logger.info("player connection changed", is_connected=is_connected)
            await self._publish(RoomChanged(room.id, room))
            if hints_to_judge is not None:
                room = await self._complete_hinting(room, hints_to_judge)
        return room

    def _hints_ready_for_judging(self, room: Room) -> tuple[Hint, ...] | None:
        """Return the round's hints if every connected non-answerer has submitted.

        The answerer's slot counts whether or not they are connected. Hints
        from hinters who left after submitting stay in the round.
        """
        game = room.game
        if game is None or game.phase != GamePhase.HINTING or not game.hints:
            return None
        hinter_ids = [p.id for p in room.players if p.is_connected and p.id != game.answerer_id]
        machine = get_machine(room.game_type)
        if not machine.all_hints_submitted(game, len(hinter_ids) + 1):
            return None
        if not all(has_submitted(game, pid) for pid in hinter_ids):
            return None
        return game.hints

    # -- room reaper -------------------------------------------------------

    def start_room_reaper(self) -> None:
        """Start the periodic empty-room reaper. Idempotent."""
        if self._empty_room_ttl <= 0:
            return
        if self._room_reaper_task is not None and not self._room_reaper_task.done():
            return
        self._room_reaper_task = asyncio.create_task(self._room_reaper_loop())

    async def stop_room_reaper(self) -> None:
        if self._room_reaper_task is not None:
            self._room_reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._room_reaper_task
            self._room_reaper_task = None

    async def _room_reaper_loop(self) -> None:  # pragma: no cover
        while True:
            await asyncio.sleep(_ROOM_REAPER_INTERVAL)
            try:
                await self.reap_empty_rooms()
            except Exception:
                logger.exception("room reaper encountered an error")

    async def reap_empty_rooms(self) -> list[str]:
        """Delete rooms that have had nobody connected for longer than the TTL.

        Each candidate is re-checked under its room lock, so a player who
        reconnected in the meantime keeps the room.
        """
        now = self._clock()
        expired = [
            room_id for room_id, since in list(self._empty_since.items()) if now - since >= self._empty_room_ttl
        ]
        reaped: list[str] = []
        for room_id in expired:
            lock = self._room_locks.get(room_id)
            if lock is None:
                self._empty_since.pop(room_id, None)
                continue
            async with lock:
                if self._empty_since.get(room_id) is None:
                    continue
                room = await self._repository.get(room_id)
                if room is not None and connected_players(room):
                    self._empty_since.pop(room_id, None)
                    continue
                await self._repository.delete(room_id)
                self._empty_since.pop(room_id, None)
                self._room_locks.pop(room_id, None)
            logger.info("empty room reaped", room_id=room_id)
            reaped.append(room_id)
            await self._publish(RoomChanged(room_id, None))
        return reaped

    # -- game commands -----------------------------------------------------

    async def start_game(
        self,
        room_id: str,
        player_id: str,
        total_rounds: int | None = None,
        exclude_topics: Sequence[str] = (),
    ) -> Room:
        rounds = total_rounds if total_rounds is not None else self._default_total_rounds
        excluded = tuple(dict.fromkeys(t for t in exclude_topics if t))
        with structlog.contextvars.bound_contextvars(room_id=room_id, player_id=player_id):
            async with await self._room_lock(room_id):
                room = await self._load(room_id)
                self._check_can_start(room, player_id)

            topic = await self._judge.generate_topic(excluded)

            async with await self._room_lock(room_id):
                room = await self._load(room_id)
                if room.game is not None:
                    raise StaleStateError
                self._check_can_start(room, player_id)
                answerer_id = pick_first_answerer(room, self._rng)
                if answerer_id is None:
                    raise NotEnoughPlayersError
                machine = get_machine(room.game_type)
                game = machine.create(answerer_id, topic, rounds, excluded)
                room = await self._persist(room.model_copy(update={"game": game}))
            logger.info("game started", total_rounds=rounds, answerer_id=answerer_id)
        await self._publish(RoomChanged(room.id, room))
        return room

    def _check_can_start(self, room: Room, player_id: str) -> None:
        require_host(room, player_id)
        if room.game is not None:
            raise GameAlreadyStartedError
        config = get_config(room.game_type)
        connected = len(connected_players(room))
        if connected < config.min_players:
            raise NotEnoughPlayersError(f"Need at least {config.min_players} players, {connected} connected")

    async def submit_hint(self, room_id: str, player_id: str, hint: str) -> Room:
        """Validate and record a hint. The last expected hint triggers duplicate judging."""
        text = hint.strip()
        with structlog.contextvars.bound_contextvars(room_id=room_id, player_id=player_id):
            async with await self._room_lock(room_id):
                room = await self._load(room_id)
                machine = get_machine(room.game_type)
                game = require_game(room, machine)
                require_member(room, player_id)
                require_phase(game, GamePhase.HINTING)
                if player_id == game.answerer_id or has_submitted(game, player_id):
                    return room
                expected_round, topic = game.round, game.topic

            format_check = await self._judge.validate_hint_format(text)
            if not format_check.is_valid:
                raise HintNotSingleWordError(format_check.error)
            topic_check = await self._judge.validate_hint_against_topic(topic, text)
            if not topic_check.is_valid:
                raise HintContainsTopicError(topic_check.error)

            async with await self._room_lock(room_id):
                room = await self._load(room_id)
                game = require_game(room, machine)
                player = require_member(room, player_id)
                if game.phase != GamePhase.HINTING or game.round != expected_round or game.topic != topic:
                    raise StaleStateError
                if has_submitted(game, player_id):
                    return room
                game = machine.submit_hint(game, player_id, player.name, text)
                room = await self._persist(room.model_copy(update={"game": game}))
                hints_to_judge = self._hints_ready_for_judging(room)
            logger.info("hint submitted", hints=len(game.hints))
            await self._publish(RoomChanged(room.id, room))

            if hints_to_judge is not None:
                room = await self._complete_hinting(room, hints_to_judge)
        return room

    async def _complete_hinting(self, room: Room, hints: tuple[Hint, ...]) -> Room:
        """Judge duplicates for a full set of hints and move the round to GUESSING.

        The verdicts are folded in only if the round still holds exactly the
        judged hints; otherwise a later submission or disconnect owns the
        transition and the current room is returned unchanged.
        """
        if room.game is None:
            return room
        expected_round, topic = room.game.round, room.game.topic
        verdicts = await self._judge.judge_hints(topic, hints)
        validity = {v.player_id: v.is_valid for v in verdicts}

        try:
            lock = await self._room_lock(room.id)
        except RoomNotFoundError:
            return room
        async with lock:
            current = await self._repository.get(room.id)
            if current is None:
                return room
            game = current.game
            if (
                game is None
                or game.phase != GamePhase.HINTING
                or game.round != expected_round
                or game.topic != topic
                or game.hints != hints
            ):
                logger.info("hint judgement superseded", room_id=room.id)
                return current
            machine = get_machine(current.game_type)
            game = machine.transition_to_guessing(machine.set_hint_validity(game, validity))
            current = await self._persist(current.model_copy(update={"game": game}))
        invalid = sum(1 for h in game.hints if not h.is_valid)
        logger.info("hints judged, guessing", room_id=room.id, invalid_hints=invalid)
        await self._publish(RoomChanged(current.id, current))
        return current

    async def submit_answer(self, room_id: str, player_id: str, answer: str) -> Room:
        text = answer.strip()
        with structlog.contextvars.bound_contextvars(room_id=room_id, player_id=player_id):
            async with await self._room_lock(room_id):
                room = await self._load(room_id)
                machine = get_machine(room.game_type)
                game = require_game(room, machine)
                require_phase(game, GamePhase.GUESSING)
                require_answerer(game, player_id)
                expected_round, topic = game.round, game.topic

            verdict = await self._judge.judge_answer(topic, text)

            async with await self._room_lock(room_id):
                room = await self._load(room_id)
                game = require_game(room, machine)
                if game.phase != GamePhase.GUESSING or game.round != expected_round or game.topic != topic:
                    raise StaleStateError
                answerer = get_player(room, player_id)
                answerer_name = answerer.name if answerer is not None else "???"
                game = machine.submit_answer(game, text, answerer_name, is_correct=verdict.is_correct)
                room = await self._persist(room.model_copy(update={"game": game}))
            logger.info("answer judged", is_correct=verdict.is_correct, round=game.round)
        await self._publish(RoomChanged(room.id, room))
        return room

    async def next_round(self, room_id: str, player_id: str) -> Room:
        """Finish the game after the last round, otherwise rotate the answerer and pick a new topic."""
        with structlog.contextvars.bound_contextvars(room_id=room_id, player_id=player_id):
            async with await self._room_lock(room_id):
                room = await self._load(room_id)
                machine = get_machine(room.game_type)
                game = require_game(room, machine)
                require_host(room, player_id)
                require_phase(game, GamePhase.RESULT)
                finished = machine.is_last_round(game)
                if finished:
                    game = machine.finish_game(game)
                    room = await self._persist(room.model_copy(update={"game": game}))
                expected_round, avoid = game.round, topics_to_avoid(game)

            if finished:
                logger.info("game finished", rounds=game.round)
                await self._publish(RoomChanged(room.id, room))
                return room

            topic = await self._judge.generate_topic(avoid)

            async with await self._room_lock(room_id):
                room = await self._load(room_id)
                game = require_game(room, machine)
                if game.phase != GamePhase.RESULT or game.round != expected_round:
                    raise StaleStateError
                answerer_id = next_answerer(room, game.answerer_id) or game.answerer_id
                game = machine.reset_for_next_round(game, answerer_id, topic)
                room = await self._persist(room.model_copy(update={"game": game}))
            logger.info("round started", round=game.round, answerer_id=answerer_id)
        await self._publish(RoomChanged(room.id, room))
        return room

    async def regenerate_topic(self, room_id: str, player_id: str) -> Room:
        """Replace the current topic. Only allowed before anyone has hinted."""
        with structlog.contextvars.bound_contextvars(room_id=room_id, player_id=player_id):
            async with await self._room_lock(room_id):
                room = await self._load(room_id)
                machine = get_machine(room.game_type)
                game = require_game(room, machine)
                require_host(room, player_id)
                self._check_can_regenerate(game)
                expected_round, old_topic, avoid = game.round, game.topic, topics_to_avoid(game)

            topic = await self._judge.generate_topic(avoid)

            async with await self._room_lock(room_id):
                room = await self._load(room_id)
                game = require_game(room, machine)
                if game.round != expected_round or game.topic != old_topic:
                    raise StaleStateError
                try:
                    self._check_can_regenerate(game)
                except InvalidPhaseError as e:
                    raise StaleStateError from e
                game = machine.regenerate_topic(game, topic)
                room = await self._persist(room.model_copy(update={"game": game}))
            logger.info("topic regenerated", round=game.round)
        await self._publish(RoomChanged(room.id, room))
        return room

    @staticmethod
    def _check_can_regenerate(game: JustOneGame) -> None:
        require_phase(game, GamePhase.HINTING)
        if game.hints:
            raise InvalidPhaseError("Topic can only be changed before hints are submitted")

    async def return_to_lobby(self, room_id: str, player_id: str) -> Room:
        with structlog.contextvars.bound_contextvars(room_id=room_id, player_id=player_id):
            async with await self._room_lock(room_id):
                room = await self._load(room_id)
                machine = get_machine(room.game_type)
                game = require_game(room, machine)
                require_host(room, player_id)
                require_phase(game, GamePhase.FINISHED)
                room = await self._persist(room.model_copy(update={"game": None}))
            logger.info("returned to lobby")
        await self._publish(RoomChanged(room.id, room))
        return room
