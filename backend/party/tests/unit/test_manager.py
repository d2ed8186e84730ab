"""
Tests for the room command orchestrator.
"""

import asyncio
import random

import pytest

from party.judging.guarded import GuardedJudge
from party.logic.enums import GamePhase
from party.logic.exceptions import (
    GameAlreadyStartedError,
    GameNotStartedError,
    HintContainsTopicError,
    HintNotSingleWordError,
    InvalidPhaseError,
    JudgeError,
    NotAnswererError,
    NotEnoughPlayersError,
    NotHostError,
    PlayerNotInRoomError,
    RoomCapacityError,
    RoomFullError,
    RoomNotFoundError,
    StaleStateError,
)
from party.logic.room import connected_players, get_player
from party.repository.memory import InMemoryRoomRepository
from party.session.manager import RoomManager
from party.tests.helpers import (
    create_lobby,
    hinters,
    play_to_guessing,
    play_to_result,
    start_game,
)


@pytest.fixture
def events(manager):
    received = []

    async def listener(event):
        received.append(event)

    manager.subscribe(listener)
    return received


class TestCreateRoom:
    async def test_host_is_first_player(self, manager):
        room = await manager.create_room("p1", "Player1")

        assert len(room.id) == 4
        assert room.id.isupper()
        assert [(p.id, p.is_host, p.is_connected) for p in room.players] == [("p1", True, True)]
        assert room.game is None
        assert room.revision == 1

    async def test_publishes_room_changed(self, manager, events):
        room = await manager.create_room("p1", "Player1")

        assert len(events) == 1
        assert events[0].room_id == room.id
        assert events[0].room == room

    async def test_server_capacity(self, scripted_judge):
        manager = RoomManager(InMemoryRoomRepository(), GuardedJudge(scripted_judge), max_rooms=1)
        await manager.create_room("p1", "Player1")

        with pytest.raises(RoomCapacityError):
            await manager.create_room("p2", "Player2")

    async def test_room_id_collisions_exhaust_attempts(self, scripted_judge):
        manager = RoomManager(
            InMemoryRoomRepository(),
            GuardedJudge(scripted_judge),
            room_id_attempts=3,
            room_id_factory=lambda: "AAAA",
        )
        await manager.create_room("p1", "Player1")

        with pytest.raises(RoomCapacityError):
            await manager.create_room("p2", "Player2")
        assert await manager.room_count() == 1


class TestJoinRoom:
    async def test_appends_in_join_order(self, manager):
        room = await create_lobby(manager, 3)

        assert [p.id for p in room.players] == ["p1", "p2", "p3"]
        assert not get_player(room, "p2").is_host

    async def test_room_code_is_case_insensitive(self, manager):
        room = await manager.create_room("p1", "Player1")

        joined = await manager.join_room(room.id.lower(), "p2", "Player2")

        assert joined.id == room.id
        assert await manager.get_room(room.id.lower()) == joined

    async def test_unknown_room(self, manager):
        with pytest.raises(RoomNotFoundError):
            await manager.join_room("ZZZZ", "p2", "Player2")

    async def test_rejoin_reconnects_existing_player(self, manager):
        room = await create_lobby(manager, 3)
        await manager.set_connection(room.id, "p2", is_connected=False)

        room = await manager.join_room(room.id, "p2", "Player2")

        assert len(room.players) == 3
        assert get_player(room, "p2").is_connected

    async def test_room_full(self, manager):
        room = await create_lobby(manager, 10)

        with pytest.raises(RoomFullError):
            await manager.join_room(room.id, "p11", "Player11")

    async def test_rejoin_allowed_when_full(self, manager):
        room = await create_lobby(manager, 10)
        room = await manager.join_room(room.id, "p10", "Player10")
        assert len(room.players) == 10


class TestStartGame:
    async def test_starts_first_round(self, manager):
        room = await start_game(manager, 3, total_rounds=3)

        game = room.game
        assert game.phase == GamePhase.HINTING
        assert game.round == 1
        assert game.total_rounds == 3
        assert game.topic == "りんご"
        assert game.used_topics == ("りんご",)
        assert get_player(room, game.answerer_id) is not None

    async def test_default_total_rounds(self, manager):
        room = await create_lobby(manager, 3)
        room = await manager.start_game(room.id, "p1")
        assert room.game.total_rounds == 5

    async def test_excluded_topics_are_skipped_and_kept_apart(self, manager):
        room = await create_lobby(manager, 3)

        room = await manager.start_game(room.id, "p1", exclude_topics=["りんご", "", "りんご"])

        assert room.game.topic == "電車"
        assert room.game.used_topics == ("電車",)
        assert room.game.excluded_topics == ("りんご",)

    async def test_excluded_topics_stay_excluded_in_later_rounds(self, manager):
        room = await create_lobby(manager, 3)
        room = await manager.start_game(room.id, "p1", total_rounds=2, exclude_topics=["電車"])
        room = await play_to_result(manager, room)

        room = await manager.next_round(room.id, "p1")

        assert room.game.topic == "太陽"
        assert room.game.used_topics == ("りんご", "太陽")

    async def test_host_only(self, manager):
        room = await create_lobby(manager, 3)
        with pytest.raises(NotHostError):
            await manager.start_game(room.id, "p2")

    async def test_not_enough_players(self, manager, scripted_judge):
        room = await create_lobby(manager, 2)

        with pytest.raises(NotEnoughPlayersError):
            await manager.start_game(room.id, "p1")
        assert scripted_judge.call_count("generate_topic") == 0

    async def test_disconnected_players_do_not_count(self, manager):
        room = await create_lobby(manager, 3)
        await manager.set_connection(room.id, "p3", is_connected=False)

        with pytest.raises(NotEnoughPlayersError):
            await manager.start_game(room.id, "p1")

    async def test_already_started(self, manager):
        room = await start_game(manager, 3)
        with pytest.raises(GameAlreadyStartedError):
            await manager.start_game(room.id, "p1")

    async def test_answerer_is_connected_member(self, manager):
        room = await create_lobby(manager, 4)
        await manager.set_connection(room.id, "p2", is_connected=False)

        room = await manager.start_game(room.id, "p1")

        assert room.game.answerer_id in {"p1", "p3", "p4"}


class TestSubmitHint:
    async def test_records_hint(self, manager):
        room = await start_game(manager, 3)
        player_id = hinters(room)[0]

        room = await manager.submit_hint(room.id, player_id, " 赤い ")

        assert [(h.player_id, h.text, h.is_valid) for h in room.game.hints] == [(player_id, "赤い", True)]
        assert room.game.phase == GamePhase.HINTING

    async def test_answerer_hint_is_ignored(self, manager, events):
        room = await start_game(manager, 3)
        published = len(events)

        after = await manager.submit_hint(room.id, room.game.answerer_id, "赤い")

        assert after == room
        assert after.game.hints == ()
        assert len(events) == published

    async def test_second_hint_is_ignored(self, manager):
        room = await start_game(manager, 4)
        player_id = hinters(room)[0]
        room = await manager.submit_hint(room.id, player_id, "赤い")

        again = await manager.submit_hint(room.id, player_id, "果物")

        assert again == room
        assert [h.text for h in again.game.hints] == ["赤い"]

    async def test_format_rejection(self, manager, scripted_judge, repository):
        room = await start_game(manager, 3)
        scripted_judge.format_errors["赤い 果物"] = "Two words"

        with pytest.raises(HintNotSingleWordError, match="Two words"):
            await manager.submit_hint(room.id, hinters(room)[0], "赤い 果物")
        assert await repository.get(room.id) == room

    async def test_topic_rejection(self, manager, repository):
        room = await start_game(manager, 3)

        with pytest.raises(HintContainsTopicError):
            await manager.submit_hint(room.id, hinters(room)[0], "りんご")
        assert await repository.get(room.id) == room

    async def test_outside_hinting(self, manager):
        room = await play_to_guessing(manager, await start_game(manager, 3))

        with pytest.raises(InvalidPhaseError):
            await manager.submit_hint(room.id, hinters(room)[0], "赤い")

    async def test_before_game(self, manager):
        room = await create_lobby(manager, 3)
        with pytest.raises(GameNotStartedError):
            await manager.submit_hint(room.id, "p2", "赤い")

    async def test_non_member(self, manager):
        room = await start_game(manager, 3)
        with pytest.raises(PlayerNotInRoomError):
            await manager.submit_hint(room.id, "ghost", "赤い")


class TestHintJudging:
    async def test_last_hint_moves_to_guessing(self, manager, scripted_judge):
        room = await start_game(manager, 4)

        room = await play_to_guessing(manager, room, ("赤い", "果物", "丸い"))

        assert room.game.phase == GamePhase.GUESSING
        assert all(h.is_valid for h in room.game.hints)
        assert scripted_judge.call_count("judge_hints") == 1

    async def test_verdicts_mark_duplicates_invalid(self, manager, scripted_judge):
        room = await start_game(manager, 4)
        first, second, third = hinters(room)
        scripted_judge.hint_verdicts = {first: False, second: False, third: True}

        room = await play_to_guessing(manager, room, ("赤い", "あかい", "丸い"))

        validity = {h.player_id: h.is_valid for h in room.game.hints}
        assert validity == {first: False, second: False, third: True}

    async def test_judge_failure_fails_open(self, manager, scripted_judge):
        room = await start_game(manager, 3)
        scripted_judge.errors["judge_hints"] = JudgeError("judge_hints", "HTTP 500")

        room = await play_to_guessing(manager, room, ("赤い", "赤い"))

        assert room.game.phase == GamePhase.GUESSING
        assert [h.is_valid for h in room.game.hints] == [True, True]

    async def test_late_hint_supersedes_pending_judgement(self, manager, scripted_judge):
        room = await start_game(manager, 3)
        gate = scripted_judge.gate("judge_hints")
        first, second = hinters(room)
        await manager.submit_hint(room.id, first, "赤い")
        pending = asyncio.create_task(manager.submit_hint(room.id, second, "果物"))
        await scripted_judge.wait_for_calls("judge_hints", 1)

        await manager.join_room(room.id, "p4", "Player4")
        late = asyncio.create_task(manager.submit_hint(room.id, "p4", "丸い"))
        await scripted_judge.wait_for_calls("judge_hints", 2)
        gate.set()
        await asyncio.gather(pending, late)

        stored = await manager.get_room(room.id)
        assert stored.game.phase == GamePhase.GUESSING
        assert [h.text for h in stored.game.hints] == ["赤い", "果物", "丸い"]


class TestSubmitAnswer:
    async def test_correct_answer(self, manager):
        room = await play_to_guessing(manager, await start_game(manager, 3))

        room = await manager.submit_answer(room.id, room.game.answerer_id, "りんご")

        game = room.game
        assert game.phase == GamePhase.RESULT
        assert game.answer == "りんご"
        assert game.is_correct is True
        assert len(game.round_results) == 1
        assert game.round_results[0].answerer_id == game.answerer_id

    async def test_wrong_answer(self, manager):
        room = await play_to_result(manager, await start_game(manager, 3), answer="みかん")
        assert room.game.is_correct is False

    async def test_judge_failure_uses_exact_match(self, manager, scripted_judge):
        room = await play_to_guessing(manager, await start_game(manager, 3))
        scripted_judge.errors["judge_answer"] = JudgeError("judge_answer", "timeout")

        room = await manager.submit_answer(room.id, room.game.answerer_id, " りんご ")

        assert room.game.is_correct is True

    async def test_rejected_while_hinting_leaves_room_unchanged(self, manager, repository, events):
        room = await start_game(manager, 3)
        before = await repository.get(room.id)
        published = len(events)

        with pytest.raises(InvalidPhaseError):
            await manager.submit_answer(room.id, room.game.answerer_id, "りんご")

        assert await repository.get(room.id) == before
        assert len(events) == published

    async def test_only_answerer(self, manager):
        room = await play_to_guessing(manager, await start_game(manager, 3))
        with pytest.raises(NotAnswererError):
            await manager.submit_answer(room.id, hinters(room)[0], "りんご")


class TestNextRound:
    async def test_rotates_answerer_and_topic(self, manager):
        room = await play_to_result(manager, await start_game(manager, 3, total_rounds=3))
        previous = room.game.answerer_id

        room = await manager.next_round(room.id, "p1")

        ids = [p.id for p in room.players]
        expected = ids[(ids.index(previous) + 1) % len(ids)]
        game = room.game
        assert game.phase == GamePhase.HINTING
        assert game.round == 2
        assert game.answerer_id == expected
        assert game.topic == "電車"
        assert game.hints == ()
        assert game.answer is None
        assert game.is_correct is None

    async def test_topics_never_repeat(self, manager):
        room = await start_game(manager, 3, total_rounds=4)
        for _ in range(3):
            room = await play_to_result(manager, room)
            room = await manager.next_round(room.id, "p1")

        assert room.game.used_topics == ("りんご", "電車", "太陽", "学校")

    async def test_last_round_finishes_game(self, manager, scripted_judge):
        room = await play_to_result(manager, await start_game(manager, 3, total_rounds=2))
        room = await manager.next_round(room.id, "p1")
        room = await play_to_result(manager, room)
        topics_generated = scripted_judge.call_count("generate_topic")

        room = await manager.next_round(room.id, "p1")

        assert room.game.phase == GamePhase.FINISHED
        assert room.game.round == 2
        assert len(room.game.round_results) == 2
        assert scripted_judge.call_count("generate_topic") == topics_generated

    async def test_host_only(self, manager):
        room = await play_to_result(manager, await start_game(manager, 3))
        with pytest.raises(NotHostError):
            await manager.next_round(room.id, "p2")

    async def test_requires_result_phase(self, manager):
        room = await start_game(manager, 3)
        with pytest.raises(InvalidPhaseError):
            await manager.next_round(room.id, "p1")

    async def test_concurrent_next_round_advances_once(self, manager, scripted_judge):
        room = await play_to_result(manager, await start_game(manager, 3))
        calls = scripted_judge.call_count("generate_topic")
        gate = scripted_judge.gate("generate_topic")

        results = asyncio.gather(
            manager.next_round(room.id, "p1"),
            manager.next_round(room.id, "p1"),
            return_exceptions=True,
        )
        await scripted_judge.wait_for_calls("generate_topic", calls + 2)
        gate.set()
        outcomes = await results

        assert sum(isinstance(o, StaleStateError) for o in outcomes) == 1
        stored = await manager.get_room(room.id)
        assert stored.game.round == 2


class TestRegenerateTopic:
    async def test_replaces_topic_before_hints(self, manager):
        room = await start_game(manager, 3)

        room = await manager.regenerate_topic(room.id, "p1")

        assert room.game.topic == "電車"
        assert room.game.used_topics == ("りんご", "電車")
        assert room.game.round == 1

    async def test_rejected_once_hints_exist(self, manager):
        room = await start_game(manager, 4)
        await manager.submit_hint(room.id, hinters(room)[0], "赤い")

        with pytest.raises(InvalidPhaseError):
            await manager.regenerate_topic(room.id, "p1")

    async def test_hint_during_regeneration_makes_it_stale(self, manager, scripted_judge):
        room = await start_game(manager, 4)
        calls = scripted_judge.call_count("generate_topic")
        gate = scripted_judge.gate("generate_topic")

        pending = asyncio.create_task(manager.regenerate_topic(room.id, "p1"))
        await scripted_judge.wait_for_calls("generate_topic", calls + 1)
        await manager.submit_hint(room.id, hinters(room)[0], "赤い")
        gate.set()

        with pytest.raises(StaleStateError):
            await pending
        stored = await manager.get_room(room.id)
        assert stored.game.topic == "りんご"
        assert len(stored.game.hints) == 1

    async def test_host_only(self, manager):
        room = await start_game(manager, 3)
        with pytest.raises(NotHostError):
            await manager.regenerate_topic(room.id, "p2")


class TestReturnToLobby:
    async def test_clears_game(self, manager):
        room = await play_to_result(manager, await start_game(manager, 3, total_rounds=1))
        room = await manager.next_round(room.id, "p1")

        room = await manager.return_to_lobby(room.id, "p1")

        assert room.game is None
        assert [p.id for p in room.players] == ["p1", "p2", "p3"]

    async def test_requires_finished(self, manager):
        room = await start_game(manager, 3)
        with pytest.raises(InvalidPhaseError):
            await manager.return_to_lobby(room.id, "p1")

    async def test_can_start_again(self, manager):
        room = await play_to_result(manager, await start_game(manager, 3, total_rounds=1))
        await manager.next_round(room.id, "p1")
        await manager.return_to_lobby(room.id, "p1")

        room = await manager.start_game(room.id, "p1", total_rounds=1)

        assert room.game.round == 1
        assert room.game.round_results == ()


class TestConnection:
    async def test_disconnect_marks_player(self, manager):
        room = await create_lobby(manager, 3)

        room = await manager.set_connection(room.id, "p2", is_connected=False)

        assert not get_player(room, "p2").is_connected
        assert len(room.players) == 3

    async def test_unknown_room_or_player(self, manager):
        assert await manager.set_connection("ZZZZ", "p1", is_connected=False) is None
        room = await create_lobby(manager, 2)
        assert await manager.set_connection(room.id, "ghost", is_connected=False) == room

    async def test_last_disconnect_keeps_room_for_reconnect(self, manager):
        room = await create_lobby(manager, 1)

        room = await manager.set_connection(room.id, "p1", is_connected=False)

        assert [(p.id, p.is_connected) for p in room.players] == [("p1", False)]
        room = await manager.join_room(room.id, "p1", "Player1")
        assert get_player(room, "p1").is_connected

    async def test_everyone_dropping_keeps_the_game(self, manager):
        room = await start_game(manager, 3)
        for player in room.players:
            await manager.set_connection(room.id, player.id, is_connected=False)

        stored = await manager.get_room(room.id)
        assert stored.game == room.game
        assert connected_players(stored) == []

    async def test_missing_hinter_disconnect_completes_round(self, manager):
        room = await start_game(manager, 4)
        first, second, third = hinters(room)
        await manager.submit_hint(room.id, first, "赤い")
        await manager.submit_hint(room.id, second, "果物")

        room = await manager.set_connection(room.id, third, is_connected=False)

        assert room.game.phase == GamePhase.GUESSING
        assert len(room.game.hints) == 2

    async def test_offline_answerer_does_not_shorten_hinting(self, manager):
        room = await start_game(manager, 3)
        first, second = hinters(room)
        await manager.set_connection(room.id, room.game.answerer_id, is_connected=False)

        room = await manager.submit_hint(room.id, first, "赤い")

        assert room.game.phase == GamePhase.HINTING
        room = await manager.submit_hint(room.id, second, "果物")
        assert room.game.phase == GamePhase.GUESSING
        assert [h.player_id for h in room.game.hints] == [first, second]

    async def test_hinter_who_left_does_not_fill_a_pending_slot(self, manager):
        room = await start_game(manager, 4)
        first, second, third = hinters(room)
        await manager.submit_hint(room.id, first, "赤い")
        await manager.set_connection(room.id, first, is_connected=False)

        room = await manager.submit_hint(room.id, second, "果物")

        assert room.game.phase == GamePhase.HINTING
        room = await manager.submit_hint(room.id, third, "丸い")
        assert room.game.phase == GamePhase.GUESSING
        assert len(room.game.hints) == 3

    async def test_disconnect_without_hints_keeps_hinting(self, manager):
        room = await start_game(manager, 3)

        room = await manager.set_connection(room.id, hinters(room)[0], is_connected=False)

        assert room.game.phase == GamePhase.HINTING

    async def test_hint_judgement_does_not_hold_room_lock(self, manager, scripted_judge):
        room = await start_game(manager, 4)
        gate = scripted_judge.gate("validate_hint_format")
        pending = asyncio.create_task(manager.submit_hint(room.id, hinters(room)[0], "赤い"))
        await scripted_judge.wait_for_calls("validate_hint_format", 1)

        joined = await asyncio.wait_for(manager.join_room(room.id, "p5", "Player5"), timeout=0.5)

        assert len(joined.players) == 5
        gate.set()
        await pending


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def reaping_manager(repository, scripted_judge, clock):
    judge = GuardedJudge(scripted_judge, timeout_seconds=1.0, rng=random.Random(7))
    return RoomManager(repository, judge, rng=random.Random(42), empty_room_ttl=60, clock=clock)


class TestRoomReaper:
    async def test_reaps_room_empty_past_ttl(self, reaping_manager, clock):
        manager = reaping_manager
        events = []

        async def listener(event):
            events.append(event)

        manager.subscribe(listener)
        room = await create_lobby(manager, 2)
        await manager.set_connection(room.id, "p1", is_connected=False)
        await manager.set_connection(room.id, "p2", is_connected=False)

        clock.now += 59
        assert await manager.reap_empty_rooms() == []
        clock.now += 1
        assert await manager.reap_empty_rooms() == [room.id]

        assert await manager.get_room(room.id) is None
        assert room.id not in manager._room_locks
        assert events[-1].room_id == room.id
        assert events[-1].room is None
        with pytest.raises(RoomNotFoundError):
            await manager.join_room(room.id, "p1", "Player1")

    async def test_reconnect_keeps_room(self, reaping_manager, clock):
        manager = reaping_manager
        room = await create_lobby(manager, 1)
        await manager.set_connection(room.id, "p1", is_connected=False)
        clock.now += 30

        await manager.join_room(room.id, "p1", "Player1")
        clock.now += 600

        assert await manager.reap_empty_rooms() == []
        assert await manager.get_room(room.id) is not None

    async def test_empty_clock_restarts_after_reconnect(self, reaping_manager, clock):
        manager = reaping_manager
        room = await create_lobby(manager, 1)
        await manager.set_connection(room.id, "p1", is_connected=False)
        clock.now += 50
        await manager.set_connection(room.id, "p1", is_connected=True)
        await manager.set_connection(room.id, "p1", is_connected=False)

        clock.now += 50
        assert await manager.reap_empty_rooms() == []
        clock.now += 10
        assert await manager.reap_empty_rooms() == [room.id]

    async def test_rooms_with_a_connected_player_are_kept(self, reaping_manager, clock):
        manager = reaping_manager
        room = await create_lobby(manager, 2)
        await manager.set_connection(room.id, "p2", is_connected=False)
        clock.now += 10_000

        assert await manager.reap_empty_rooms() == []

    async def test_start_and_stop(self, reaping_manager):
        reaping_manager.start_room_reaper()
        task = reaping_manager._room_reaper_task
        reaping_manager.start_room_reaper()

        assert task is not None
        assert reaping_manager._room_reaper_task is task
        await reaping_manager.stop_room_reaper()
        assert reaping_manager._room_reaper_task is None
        assert task.cancelled()

    async def test_zero_ttl_disables_reaper(self, repository, scripted_judge):
        manager = RoomManager(repository, GuardedJudge(scripted_judge), empty_room_ttl=0)

        manager.start_room_reaper()

        assert manager._room_reaper_task is None


class TestRoomLocks:
    async def test_unknown_room_codes_do_not_allocate_locks(self, manager):
        for i in range(200):
            with pytest.raises(RoomNotFoundError):
                await manager.join_room(f"Z{i:03d}", "p1", "Player1")
        with pytest.raises(RoomNotFoundError):
            await manager.submit_hint("ZZZZ", "p1", "赤い")
        assert await manager.set_connection("ZZZZ", "p1", is_connected=False) is None

        assert manager._room_locks == {}

    async def test_lock_is_created_for_existing_room(self, manager):
        room = await create_lobby(manager, 2)
        assert list(manager._room_locks) == [room.id]


class TestSerialization:
    async def test_concurrent_hints_are_both_recorded(self, manager, scripted_judge):
        room = await start_game(manager, 4)
        first, second, _ = hinters(room)
        gate = scripted_judge.gate("validate_hint_format")

        submissions = asyncio.gather(
            manager.submit_hint(room.id, first, "赤い"),
            manager.submit_hint(room.id, second, "果物"),
        )
        await scripted_judge.wait_for_calls("validate_hint_format", 2)
        gate.set()
        await submissions

        stored = await manager.get_room(room.id)
        assert len(stored.game.hints) == 2
        assert {h.text for h in stored.game.hints} == {"赤い", "果物"}

    async def test_revision_increases_on_every_change(self, manager):
        room = await create_lobby(manager, 3)
        lobby_revision = room.revision

        room = await manager.start_game(room.id, "p1")
        room = await manager.submit_hint(room.id, hinters(room)[0], "赤い")

        assert room.revision == lobby_revision + 2

    async def test_rooms_are_independent(self, manager, scripted_judge):
        first = await start_game(manager, 3)
        second = await create_lobby(manager, 3)
        gate = scripted_judge.gate("validate_hint_format")
        pending = asyncio.create_task(manager.submit_hint(first.id, hinters(first)[0], "赤い"))
        await scripted_judge.wait_for_calls("validate_hint_format", 1)

        room = await asyncio.wait_for(manager.start_game(second.id, "p1"), timeout=0.5)

        assert room.game is not None
        gate.set()
        await pending


class TestListeners:
    async def test_failing_listener_does_not_break_command(self, manager, events):
        async def broken(_event):
            raise RuntimeError("listener down")

        manager.subscribe(broken)

        room = await manager.create_room("p1", "Player1")

        assert await manager.get_room(room.id) == room
        assert len(events) == 1

    async def test_rejected_command_publishes_nothing(self, manager, events):
        room = await create_lobby(manager, 3)
        published = len(events)

        with pytest.raises(NotHostError):
            await manager.start_game(room.id, "p2")

        assert len(events) == published


@pytest.mark.parametrize("seed", [1, 2, 3])
async def test_full_game_keeps_answerer_in_room(scripted_judge, seed):
    manager = RoomManager(InMemoryRoomRepository(), GuardedJudge(scripted_judge), rng=random.Random(seed))
    room = await start_game(manager, 5, total_rounds=5)
    answerers = []
    for _ in range(5):
        answerers.append(room.game.answerer_id)
        assert get_player(room, room.game.answerer_id) is not None
        room = await play_to_result(manager, room)
        room = await manager.next_round(room.id, "p1")

    assert room.game.phase == GamePhase.FINISHED
    assert len(set(answerers)) == 5
