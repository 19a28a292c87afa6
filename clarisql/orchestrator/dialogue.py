"""
Per-session dialogue state.

A session is either Idle or AwaitingClarification(context). The context only
exists inside the awaiting state, so "a pending question without its context"
cannot be represented.

Sessions also own their conversation: an append-only list of turns whose only
mutation is replacing the last system turn (a "Processing..." placeholder
becomes the outcome once it is known).
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from clarisql.models import ClarificationContext, ConversationTurn, Speaker

logger = logging.getLogger("clarisql.dialogue")


@dataclass(frozen=True)
class Idle:
    """No question pending; the next input is a new request."""


@dataclass(frozen=True)
class AwaitingClarification:
    """A question is pending; the next input is its answer."""
    context: ClarificationContext


DialogueState = Union[Idle, AwaitingClarification]

IDLE = Idle()


class ClarificationDialogue:
    """State and conversation of one session."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.state: DialogueState = IDLE
        self.created_at = datetime.now(timezone.utc)
        self.last_active = self.created_at
        # Serialises overlapping requests for this session
        self.lock = threading.Lock()
        self._turns: List[ConversationTurn] = []

    @property
    def is_awaiting(self) -> bool:
        return isinstance(self.state, AwaitingClarification)

    @property
    def context(self) -> Optional[ClarificationContext]:
        return self.state.context if isinstance(self.state, AwaitingClarification) else None

    def await_answer(self, context: ClarificationContext) -> None:
        self.state = AwaitingClarification(context)
        logger.debug("Session %s awaiting clarification", self.session_id)

    def take_context(self) -> ClarificationContext:
        """Return the pending context and go back to Idle."""
        if not isinstance(self.state, AwaitingClarification):
            raise RuntimeError(f"Session {self.session_id} has no pending clarification")
        context = self.state.context
        self.state = IDLE
        return context

    def reset(self) -> None:
        self.state = IDLE

    # --------------------------------------------------------
    # Conversation
    # --------------------------------------------------------

    def _append(self, speaker: Speaker, text: str) -> ConversationTurn:
        turn = ConversationTurn(speaker=speaker, text=text)
        self._turns.append(turn)
        self.last_active = turn.timestamp
        return turn

    def add_user_turn(self, text: str) -> ConversationTurn:
        return self._append(Speaker.USER, text)

    def add_system_turn(self, text: str) -> ConversationTurn:
        return self._append(Speaker.SYSTEM, text)

    def update_last_system_turn(self, text: str) -> ConversationTurn:
        """Replace the trailing system turn, or append one if the last turn is the user's."""
        if not self._turns or self._turns[-1].speaker != Speaker.SYSTEM:
            return self.add_system_turn(text)
        turn = ConversationTurn(speaker=Speaker.SYSTEM, text=text)
        self._turns[-1] = turn
        self.last_active = turn.timestamp
        return turn

    def export(self) -> List[ConversationTurn]:
        return [turn.model_copy() for turn in self._turns]

    def __len__(self) -> int:
        return len(self._turns)


class SessionManager:
    """Creates and looks up sessions by id."""

    def __init__(self):
        self._sessions: Dict[str, ClarificationDialogue] = {}
        self._lock = threading.Lock()

    def get_or_create(self, session_id: str) -> ClarificationDialogue:
        with self._lock:
            dialogue = self._sessions.get(session_id)
            if dialogue is None:
                dialogue = ClarificationDialogue(session_id)
                self._sessions[session_id] = dialogue
                logger.info("Created session %s", session_id)
            return dialogue

    def get(self, session_id: str) -> Optional[ClarificationDialogue]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        """Drop a session; a pending question simply goes unanswered."""
        with self._lock:
            removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info("Removed session %s", session_id)
        return removed

    def list_sessions(self) -> List[str]:
        with self._lock:
            return list(self._sessions.keys())

    def __len__(self) -> int:
        return len(self._sessions)
