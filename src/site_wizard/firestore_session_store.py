from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .errors import SessionNotFoundError
from .models.wizard import WizardStage, WizardState

logger = logging.getLogger(__name__)


class FirestoreSessionStore:
    """Firestore-backed wizard session store for production use."""

    COLLECTION_NAME = "wizard_sessions"

    def __init__(self, project_id: str | None = None) -> None:
        self._db = firestore.Client(project=project_id)
        self._collection = self._db.collection(self.COLLECTION_NAME)

    def create_session(self, state: WizardState | None = None) -> WizardState:
        """Create a new session document, seeded from ``state`` when given."""
        doc_ref = self._collection.document()
        base = state or WizardState()
        created = base.model_copy(
            update={"session_id": doc_ref.id, "updated_at": datetime.now(timezone.utc)},
            deep=True,
        )
        doc_ref.set(self._to_firestore_dict(created))

        logger.info(
            "Created wizard session",
            extra={"session_id": created.session_id, "stage": created.stage.value},
        )
        return created

    def get_session(self, session_id: str) -> WizardState | None:
        doc = self._collection.document(session_id).get()
        if not doc.exists:
            return None
        return self._from_firestore_dict(doc.id, doc.to_dict())

    def save_session(self, state: WizardState) -> WizardState:
        """Overwrite the stored document with ``state``."""
        if not state.session_id:
            raise ValueError("Cannot save a wizard state without a session_id")
        doc_ref = self._collection.document(state.session_id)
        if not doc_ref.get().exists:
            raise SessionNotFoundError(state.session_id)

        saved = state.model_copy(update={"updated_at": datetime.now(timezone.utc)}, deep=True)
        doc_ref.set(self._to_firestore_dict(saved))

        logger.info(
            "Saved wizard session",
            extra={
                "session_id": saved.session_id,
                "stage": saved.stage.value,
                "generation_status": saved.generation.status.value,
            },
        )
        return saved

    def update_session(self, session_id: str, mutate: Callable[[WizardState], WizardState]) -> WizardState:
        """Read, mutate and write one session inside a transaction.

        Firestore retries the transaction when the document changed underneath
        it, so ``mutate`` must be a pure function of the state it is given.
        """
        doc_ref = self._collection.document(session_id)

        @firestore.transactional
        def apply(transaction: firestore.Transaction) -> WizardState:
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise SessionNotFoundError(session_id)
            current = self._from_firestore_dict(snapshot.id, snapshot.to_dict())
            updated = mutate(current).model_copy(update={"updated_at": datetime.now(timezone.utc)}, deep=True)
            transaction.set(doc_ref, self._to_firestore_dict(updated))
            return updated

        saved = apply(self._db.transaction())
        logger.info(
            "Updated wizard session",
            extra={
                "session_id": session_id,
                "stage": saved.stage.value,
                "generation_status": saved.generation.status.value,
            },
        )
        return saved

    def delete_session(self, session_id: str) -> bool:
        doc_ref = self._collection.document(session_id)
        if not doc_ref.get().exists:
            return False
        doc_ref.delete()
        logger.info("Deleted wizard session", extra={"session_id": session_id})
        return True

    def list_sessions(
        self,
        *,
        stage: WizardStage | None = None,
        limit: int = 100,
    ) -> list[WizardState]:
        """List sessions, most recently updated first."""
        query = self._collection

        if stage is not None:
            query = query.where(filter=FieldFilter("stage", "==", stage.value))

        query = query.order_by("updatedAt", direction=firestore.Query.DESCENDING).limit(limit)

        return [self._from_firestore_dict(doc.id, doc.to_dict()) for doc in query.stream()]

    def _to_firestore_dict(self, state: WizardState) -> dict[str, Any]:
        data = state.model_dump(by_alias=True, mode="json")
        # Native timestamp so the collection can be ordered by it
        data["updatedAt"] = state.updated_at
        return data

    def _from_firestore_dict(self, session_id: str, data: dict[str, Any]) -> WizardState:
        payload = dict(data)
        payload["sessionId"] = session_id
        return WizardState.model_validate(payload)


__all__ = ["FirestoreSessionStore"]
