from __future__ import annotations

import json
import logging
from typing import Any

from google.cloud import pubsub_v1

logger = logging.getLogger(__name__)

GENERATION_REQUESTS_TOPIC = "generation-requests"
GENERATION_COMPLETED_TOPIC = "generation-completed"


class PubSubClient:
    """Wrapper for Google Cloud Pub/Sub operations."""

    def __init__(
        self,
        project_id: str,
        *,
        requests_topic: str = GENERATION_REQUESTS_TOPIC,
        completed_topic: str = GENERATION_COMPLETED_TOPIC,
    ) -> None:
        self.project_id = project_id
        self.requests_topic = requests_topic
        self.completed_topic = completed_topic
        self.publisher = pubsub_v1.PublisherClient()

    def publish(
        self,
        topic_id: str,
        message: dict[str, Any],
        *,
        attributes: dict[str, str] | None = None,
    ) -> str:
        """Publish a JSON message to a Pub/Sub topic and return its message ID."""
        topic_path = self.publisher.topic_path(self.project_id, topic_id)
        data = json.dumps(message).encode("utf-8")

        future = self.publisher.publish(topic_path, data, **(attributes or {}))
        message_id = future.result()

        logger.info(
            "Published message to Pub/Sub",
            extra={
                "topic_id": topic_id,
                "message_id": message_id,
                "attributes": attributes,
            },
        )

        return message_id

    def publish_generation_request(
        self,
        *,
        session_id: str,
        redesign_count: int = 0,
        trace_id: str | None = None,
    ) -> str:
        """Ask the worker to run a generation for a wizard session.

        Args:
            session_id: Wizard session to generate for
            redesign_count: Redesign number this generation belongs to (0 = first build)
            trace_id: Optional trace ID carried over from the API request
        """
        message = {
            "session_id": session_id,
            "redesign_count": redesign_count,
            "trace_id": trace_id,
        }
        attributes = {
            "session_id": session_id,
            "event_type": "redo_requested" if redesign_count else "generation_requested",
        }
        return self.publish(self.requests_topic, message, attributes=attributes)

    def publish_generation_completed(
        self,
        *,
        session_id: str,
        status: str,
        page_slugs: list[str],
        errors: list[str] | None = None,
    ) -> str:
        """Announce the outcome of a generation."""
        message = {
            "session_id": session_id,
            "status": status,
            "pages": page_slugs,
            "errors": errors or [],
        }
        attributes = {
            "session_id": session_id,
            "event_type": "generation_completed",
            "status": status,
        }
        return self.publish(self.completed_topic, message, attributes=attributes)


__all__ = ["PubSubClient", "GENERATION_COMPLETED_TOPIC", "GENERATION_REQUESTS_TOPIC"]
