import random

import pytest

from party.judging.guarded import GuardedJudge
from party.messaging.router import MessageRouter
from party.repository.memory import InMemoryRoomRepository
from party.session.broadcast import RoomBroadcaster
from party.session.manager import RoomManager
from party.session.registry import SessionRegistry
from party.tests.mocks import ScriptedJudge


@pytest.fixture
def scripted_judge():
    return ScriptedJudge()


@pytest.fixture
def repository():
    return InMemoryRoomRepository()


@pytest.fixture
def manager(repository, scripted_judge):
    """Room manager over the fail-open guard, as wired in production."""
    judge = GuardedJudge(scripted_judge, timeout_seconds=1.0, rng=random.Random(7))
    return RoomManager(repository, judge, rng=random.Random(42))


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def broadcaster(registry, manager):
    broadcaster = RoomBroadcaster(registry)
    manager.subscribe(broadcaster.on_room_changed)
    return broadcaster


@pytest.fixture
def router(manager, registry, broadcaster):
    return MessageRouter(manager, registry, broadcaster)
