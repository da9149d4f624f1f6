from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class GenerationStatus(str, Enum):
    idle = "IDLE"
    queued = "QUEUED"
    in_progress = "IN_PROGRESS"
    completed = "COMPLETED"
    failed = "FAILED"
    cancelled = "CANCELLED"


class BlockStatus(str, Enum):
    pending = "pending"
    building = "building"
    complete = "complete"
    error = "error"


class GenerationModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BuildBlock(GenerationModel):
    name: str
    status: BlockStatus = BlockStatus.pending


class ProgressEvent(GenerationModel):
    phase: int = 0
    total_phases: int = 0
    phase_name: str | None = None
    message: str | None = None
    progress: float = 0.0


class BuildingProgress(GenerationModel):
    blocks: list[BuildBlock] = Field(default_factory=list)

    @classmethod
    def from_names(cls, names: Sequence[str]) -> "BuildingProgress":
        return cls(blocks=[BuildBlock(name=name) for name in names])

    def apply(self, event: ProgressEvent) -> "BuildingProgress":
        """Return a copy with blocks advanced to the phase reported by ``event``."""
        if not self.blocks:
            return self.model_copy(deep=True)
        current = self._block_index(event)
        blocks = []
        for index, block in enumerate(self.blocks):
            if index < current:
                status = BlockStatus.complete
            elif index == current:
                status = BlockStatus.building
            else:
                status = BlockStatus.pending
            blocks.append(BuildBlock(name=block.name, status=status))
        return BuildingProgress(blocks=blocks)

    def completed(self) -> "BuildingProgress":
        return BuildingProgress(
            blocks=[BuildBlock(name=block.name, status=BlockStatus.complete) for block in self.blocks]
        )

    def failed(self) -> "BuildingProgress":
        blocks = []
        for block in self.blocks:
            status = BlockStatus.error if block.status == BlockStatus.building else block.status
            blocks.append(BuildBlock(name=block.name, status=status))
        return BuildingProgress(blocks=blocks)

    def _block_index(self, event: ProgressEvent) -> int:
        if event.phase_name:
            for index, block in enumerate(self.blocks):
                if block.name.lower() == event.phase_name.lower():
                    return index
        if event.total_phases > 0 and event.phase > 0:
            ratio = min(event.phase, event.total_phases) / event.total_phases
            return max(0, min(len(self.blocks) - 1, round(ratio * len(self.blocks)) - 1))
        ratio = max(0.0, min(event.progress, 100.0)) / 100.0
        return min(len(self.blocks) - 1, int(ratio * len(self.blocks)))


class GenerationRecord(GenerationModel):
    status: GenerationStatus = GenerationStatus.idle
    progress: float = 0.0
    building: BuildingProgress = Field(default_factory=BuildingProgress)
    message: str | None = None
    cancel_requested: bool = False
    errors: list[str] = Field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None


class GenerationRequest(GenerationModel):
    session_id: str
    package_id: str | None = None
    requirements: Mapping[str, Any] = Field(default_factory=dict)
    business_info: Mapping[str, Any] | None = None
    template_ids: Sequence[str] = Field(default_factory=list)
    page_keywords: Sequence[Mapping[str, Any]] = Field(default_factory=list)
    redo: Mapping[str, Any] | None = None


__all__ = [
    "BlockStatus",
    "BuildBlock",
    "BuildingProgress",
    "GenerationRecord",
    "GenerationRequest",
    "GenerationStatus",
    "ProgressEvent",
]
