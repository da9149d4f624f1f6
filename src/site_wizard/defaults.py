from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from .models.website import (
    ColorPalette,
    DesignSystem,
    FontSizes,
    NavigationConfig,
    NavigationItem,
    Spacing,
    Typography,
)
from .models.wizard import PackageConstraints, PackageId

DEFAULT_SITE_NAME = "Website"
DEFAULT_PAGE_SLUG = "home"
DEFAULT_PAGE_TITLE = "Home"
DEFAULT_PAGE_PATH = "pages/home.html"
MANIFEST_VERSION = "1.0"

DEFAULT_DESIGN_SYSTEM = DesignSystem(
    colors=ColorPalette(
        primary="#3b82f6",
        accent="#10b981",
        background="#ffffff",
        text="#1f2937",
    ),
    typography=Typography(
        heading_font="Inter, sans-serif",
        body_font="Inter, sans-serif",
        sizes=FontSizes(h1="60px", h2="40px", body="16px"),
    ),
    spacing=Spacing(section="80px", element="20px"),
    border_radius="8px",
)

DEFAULT_NAVIGATION = NavigationConfig(
    type="header",
    sticky=True,
    pages=[NavigationItem(slug=DEFAULT_PAGE_SLUG, label=DEFAULT_PAGE_TITLE, order=1)],
)

MAX_REDESIGNS = 5

PACKAGE_CONSTRAINTS: Mapping[PackageId, PackageConstraints] = {
    PackageId.basic: PackageConstraints(
        max_pages=1,
        max_services=3,
        includes_competitor_research=False,
        includes_advanced_seo=False,
        includes_custom_design=False,
        includes_automated_maintenance=False,
    ),
    PackageId.advanced: PackageConstraints(
        max_pages=5,
        max_services=8,
        includes_competitor_research=True,
        includes_advanced_seo=False,
        includes_custom_design=True,
        includes_automated_maintenance=False,
    ),
    PackageId.seo: PackageConstraints(
        max_pages=10,
        max_services=15,
        includes_competitor_research=True,
        includes_advanced_seo=True,
        includes_custom_design=True,
        includes_automated_maintenance=False,
    ),
    PackageId.deluxe: PackageConstraints(
        max_pages=20,
        max_services=25,
        includes_competitor_research=True,
        includes_advanced_seo=True,
        includes_custom_design=True,
        includes_automated_maintenance=True,
    ),
    PackageId.ultra: PackageConstraints(
        max_pages=50,
        max_services=50,
        includes_competitor_research=True,
        includes_advanced_seo=True,
        includes_custom_design=True,
        includes_automated_maintenance=True,
    ),
    PackageId.custom: PackageConstraints(
        max_pages=100,
        max_services=100,
        includes_competitor_research=True,
        includes_advanced_seo=True,
        includes_custom_design=True,
        includes_automated_maintenance=True,
    ),
}

DEFAULT_GENERATION_BLOCKS: Sequence[str] = (
    "Layout Structure",
    "Design System",
    "Content Generation",
    "Image Selection",
    "SEO Optimization",
    "Final Assembly",
)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    retryable_status_codes: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (0-indexed)."""
        return min(self.base_delay * self.backoff_multiplier**attempt, self.max_delay)

    def is_retryable(self, status_code: int) -> bool:
        return status_code in self.retryable_status_codes


DEFAULT_RETRY_POLICY = RetryPolicy()

GENERATION_TIMEOUT_SECONDS = 300.0


__all__ = [
    "DEFAULT_DESIGN_SYSTEM",
    "DEFAULT_GENERATION_BLOCKS",
    "DEFAULT_NAVIGATION",
    "DEFAULT_PAGE_PATH",
    "DEFAULT_PAGE_SLUG",
    "DEFAULT_PAGE_TITLE",
    "DEFAULT_RETRY_POLICY",
    "DEFAULT_SITE_NAME",
    "GENERATION_TIMEOUT_SECONDS",
    "MANIFEST_VERSION",
    "MAX_REDESIGNS",
    "PACKAGE_CONSTRAINTS",
    "RetryPolicy",
]
