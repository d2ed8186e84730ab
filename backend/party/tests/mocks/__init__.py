from party.tests.mocks.connection import MockConnection
from party.tests.mocks.judge import DEFAULT_SCRIPTED_TOPICS, ScriptedJudge

__all__ = ["DEFAULT_SCRIPTED_TOPICS", "MockConnection", "ScriptedJudge"]
