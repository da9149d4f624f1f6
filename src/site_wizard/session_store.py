from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Protocol

from .errors import SessionNotFoundError
from .models.wizard import WizardStage, WizardState


class SessionStore(Protocol):
    def create_session(self, state: WizardState | None = None) -> WizardState:
        ...

    def get_session(self, session_id: str) -> WizardState | None:
        ...

    def save_session(self, state: WizardState) -> WizardState:
        ...

    def update_session(self, session_id: str, mutate: Callable[[WizardState], WizardState]) -> WizardState:
        ...

    def delete_session(self, session_id: str) -> bool:
        ...

    def list_sessions(self, *, stage: WizardStage | None = None, limit: int = 100) -> list[WizardState]:
        ...


class InMemorySessionStore:
    def __init__(self) -> None:
        self._sessions: Dict[str, WizardState] = {}
        self._lock = threading.Lock()

    def create_session(self, state: WizardState | None = None) -> WizardState:
        with self._lock:
            session_id = self._generate_id()
            base = state or WizardState()
            created = base.model_copy(
                update={"session_id": session_id, "updated_at": datetime.now(timezone.utc)},
                deep=True,
            )
            self._sessions[session_id] = created
            return created.model_copy(deep=True)

    def get_session(self, session_id: str) -> WizardState | None:
        with self._lock:
            state = self._sessions.get(session_id)
            return state.model_copy(deep=True) if state else None

    def save_session(self, state: WizardState) -> WizardState:
        if not state.session_id:
            raise ValueError("Cannot save a wizard state without a session_id")
        with self._lock:
            if state.session_id not in self._sessions:
                raise SessionNotFoundError(state.session_id)
            return self._store(state)

    def update_session(self, session_id: str, mutate: Callable[[WizardState], WizardState]) -> WizardState:
        """Apply ``mutate`` to the latest stored state and save the result atomically."""
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None:
                raise SessionNotFoundError(session_id)
            return self._store(mutate(current.model_copy(deep=True)))

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def list_sessions(self, *, stage: WizardStage | None = None, limit: int = 100) -> list[WizardState]:
        with self._lock:
            states = [s for s in self._sessions.values() if stage is None or s.stage == stage]
        states.sort(key=lambda s: s.updated_at, reverse=True)
        return [state.model_copy(deep=True) for state in states[:limit]]

    def _store(self, state: WizardState) -> WizardState:
        saved = state.model_copy(update={"updated_at": datetime.now(timezone.utc)}, deep=True)
        self._sessions[saved.session_id] = saved
        return saved.model_copy(deep=True)

    def _generate_id(self) -> str:
        ts = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        suffix = uuid.uuid4().hex[:8]
        return f"wiz_{ts}_{suffix}"


__all__ = ["InMemorySessionStore", "SessionStore"]
