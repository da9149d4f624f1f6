from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Iterable, Protocol

from .models.template import DesignTemplate

TEMPLATE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


class TemplateRepository(Protocol):
    def get(self, template_id: str) -> DesignTemplate:
        ...


class LocalTemplateRepository:
    def __init__(self, *, base_path: Path) -> None:
        self._base_path = base_path

    def get(self, template_id: str) -> DesignTemplate:
        if not TEMPLATE_ID_PATTERN.match(template_id):
            raise FileNotFoundError(f"Invalid template id: {template_id!r}")
        file_path = self._base_path / f"{template_id}.json"
        if not file_path.exists():
            raise FileNotFoundError(f"Design template not found: {file_path}")
        with file_path.open("r", encoding="utf-8") as fp:
            data = json.load(fp)
        return DesignTemplate.model_validate(data)

    def get_many(self, template_ids: Iterable[str]) -> list[DesignTemplate]:
        return [self.get(template_id) for template_id in template_ids]

    def list_all(self) -> list[DesignTemplate]:
        if not self._base_path.is_dir():
            return []
        return [self.get(path.stem) for path in sorted(self._base_path.glob("*.json"))]


__all__ = ["TemplateRepository", "LocalTemplateRepository"]
