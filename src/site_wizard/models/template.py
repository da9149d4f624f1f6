from __future__ import annotations

from typing import Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DesignTemplate(BaseModel):
    id: str
    name: str
    category: str | None = None
    industry: str | None = None
    description: str | None = None
    thumbnail_url: str | None = None
    pages: Sequence[str] = Field(default_factory=list, description="Page names the template ships with")
    keywords: Sequence[str] = Field(default_factory=list, description="SEO keywords the template was written for")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "tpl-coffee-roastery",
                "name": "Roastery Warm",
                "category": "restaurant",
                "industry": "Food & Dining",
                "description": "Warm editorial layout for cafes and roasteries",
                "thumbnailUrl": "https://cdn.example.com/templates/roastery.png",
                "pages": ["Home", "About", "Menu", "Contact"],
                "keywords": ["specialty coffee", "coffee roastery"],
            }
        },
    )


__all__ = ["DesignTemplate"]
