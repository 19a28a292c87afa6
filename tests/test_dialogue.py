"""Tests for per-session dialogue state and the session manager."""
import pytest

from clarisql.models import ClarificationContext, Speaker
from clarisql.orchestrator import AwaitingClarification, ClarificationDialogue, Idle, SessionManager


def _context(**overrides):
    fields = {"pending_question": "Which period?", "original_query": "show me sales"}
    fields.update(overrides)
    return ClarificationContext(**fields)


class TestDialogueState:

    def test_starts_idle(self):
        dialogue = ClarificationDialogue("s1")
        assert isinstance(dialogue.state, Idle)
        assert not dialogue.is_awaiting
        assert dialogue.context is None

    def test_await_then_take(self):
        dialogue = ClarificationDialogue("s1")
        context = _context(join_type="left join")
        dialogue.await_answer(context)

        assert isinstance(dialogue.state, AwaitingClarification)
        assert dialogue.context is context

        assert dialogue.take_context() is context
        assert isinstance(dialogue.state, Idle)
        assert dialogue.context is None

    def test_take_without_pending_question_raises(self):
        with pytest.raises(RuntimeError, match="no pending clarification"):
            ClarificationDialogue("s1").take_context()

    def test_reset(self):
        dialogue = ClarificationDialogue("s1")
        dialogue.await_answer(_context())
        dialogue.reset()
        assert not dialogue.is_awaiting

    def test_context_is_immutable(self):
        with pytest.raises(Exception):
            _context().original_query = "something else"


class TestConversation:

    def test_turns_in_order(self):
        dialogue = ClarificationDialogue("s1")
        dialogue.add_user_turn("show me sales")
        dialogue.add_system_turn("Which period?")

        turns = dialogue.export()
        assert [(t.speaker, t.text) for t in turns] == [
            (Speaker.USER, "show me sales"),
            (Speaker.SYSTEM, "Which period?"),
        ]

    def test_update_replaces_trailing_system_turn(self):
        dialogue = ClarificationDialogue("s1")
        dialogue.add_user_turn("list all orders")
        dialogue.add_system_turn("Processing your query...")
        dialogue.update_last_system_turn("Query processed successfully! 4 rows returned.")

        assert len(dialogue) == 2
        assert dialogue.export()[-1].text == "Query processed successfully! 4 rows returned."

    def test_update_appends_after_user_turn(self):
        dialogue = ClarificationDialogue("s1")
        dialogue.add_user_turn("list all orders")
        dialogue.update_last_system_turn("Database query failed. Please try again.")

        assert len(dialogue) == 2
        assert dialogue.export()[-1].speaker == Speaker.SYSTEM

    def test_export_is_a_copy(self):
        dialogue = ClarificationDialogue("s1")
        dialogue.add_user_turn("list all orders")
        dialogue.export().clear()
        assert len(dialogue) == 1


class TestSessionManager:

    def test_get_or_create_returns_same_dialogue(self):
        sessions = SessionManager()
        assert sessions.get_or_create("a") is sessions.get_or_create("a")
        assert len(sessions) == 1

    def test_sessions_are_independent(self):
        sessions = SessionManager()
        sessions.get_or_create("a").await_answer(_context())
        assert not sessions.get_or_create("b").is_awaiting

    def test_remove(self):
        sessions = SessionManager()
        sessions.get_or_create("a")

        assert sessions.remove("a") is True
        assert sessions.remove("a") is False
        assert sessions.get("a") is None
        assert sessions.list_sessions() == []
