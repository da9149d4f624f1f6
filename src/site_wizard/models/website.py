from __future__ import annotations

from typing import Annotated, Any, Literal, Mapping, Sequence, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag
from pydantic.alias_generators import to_camel

SectionType = Literal[
    "hero",
    "features",
    "testimonials",
    "pricing",
    "contact",
    "cta",
    "gallery",
    "team",
    "stats",
    "faq",
]
# Generators also emit types outside the known set ("services", "content"); those pass through.
FileType = Literal["html", "css", "js", "json"]


class WebsiteModel(BaseModel):
    """Base for generator boundary shapes: camelCase on the wire, immutable in memory."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class SectionSpec(WebsiteModel):
    id: str
    type: SectionType | str
    title: str = ""
    content: str = ""
    order: int


class PageSEO(WebsiteModel):
    title: str = ""
    description: str = ""
    keywords: Sequence[str] = Field(default_factory=list)
    og_image: str | None = None


class PageSpec(WebsiteModel):
    slug: str
    title: str
    description: str = ""
    sections: Sequence[SectionSpec] = Field(default_factory=list)
    seo: PageSEO = Field(default_factory=PageSEO)
    order: int


class NavigationItem(WebsiteModel):
    slug: str
    label: str
    order: int


class NavigationConfig(WebsiteModel):
    type: Literal["header", "sidebar", "both"] = "header"
    sticky: bool = True
    pages: Sequence[NavigationItem] = Field(default_factory=list)


class SharedComponents(WebsiteModel):
    header: str = ""
    footer: str = ""
    navigation: str = ""


class SEOStrategy(WebsiteModel):
    primary_keywords: Sequence[str] = Field(default_factory=list)
    secondary_keywords: Sequence[str] = Field(default_factory=list)
    content_gaps: Sequence[str] = Field(default_factory=list)


class ColorPalette(WebsiteModel):
    primary: str
    accent: str
    background: str
    text: str


class FontSizes(WebsiteModel):
    h1: str
    h2: str
    body: str


class Typography(WebsiteModel):
    heading_font: str
    body_font: str
    sizes: FontSizes


class Spacing(WebsiteModel):
    section: str
    element: str


class DesignSystem(WebsiteModel):
    colors: ColorPalette
    typography: Typography
    spacing: Spacing
    border_radius: str


class WebsiteManifest(WebsiteModel):
    site_name: str
    description: str = ""
    pages: Sequence[PageSpec]
    navigation: NavigationConfig = Field(default_factory=NavigationConfig)
    shared_components: SharedComponents = Field(default_factory=SharedComponents)
    seo_strategy: SEOStrategy = Field(default_factory=SEOStrategy)
    design_system: DesignSystem
    version: str = "1.0"


class WebsiteFile(WebsiteModel):
    path: str
    type: FileType
    content: str
    checksum: str = ""


class SiteAssets(WebsiteModel):
    css: str = ""
    js: str = ""


class MultiPageWebsite(WebsiteModel):
    manifest: WebsiteManifest
    files: Mapping[str, WebsiteFile]
    assets: SiteAssets = Field(default_factory=SiteAssets)


class LegacyMeta(WebsiteModel):
    title: str = ""
    description: str = ""
    keywords: Sequence[str] = Field(default_factory=list)


class LegacyWebsiteContent(WebsiteModel):
    html: str
    css: str = ""
    js: str = ""
    meta: LegacyMeta | None = None


class GeneratedWebsitePackage(WebsiteModel):
    manifest: WebsiteManifest
    files: Mapping[str, WebsiteFile]
    active_page_id: str
    pages: Sequence[PageSpec]
    shared_assets: SiteAssets = Field(default_factory=SiteAssets)

    def page(self, slug: str) -> PageSpec | None:
        for page in self.pages:
            if page.slug == slug:
                return page
        return None

    @property
    def page_slugs(self) -> list[str]:
        return [page.slug for page in self.pages]

    def to_multi_page(self) -> MultiPageWebsite:
        """Rebuild the multi-page generator shape this package is equivalent to."""
        return MultiPageWebsite(manifest=self.manifest, files=self.files, assets=self.shared_assets)


def detect_format(value: Any) -> str | None:
    """Structural detection of a generator result.

    ``manifest`` and ``files`` both present means the multi-page format,
    otherwise an ``html`` key means the legacy single-page format. Anything
    else has no tag and fails validation.
    """
    if isinstance(value, MultiPageWebsite):
        return "multi-page"
    if isinstance(value, LegacyWebsiteContent):
        return "legacy"
    if isinstance(value, Mapping):
        if "manifest" in value and "files" in value:
            return "multi-page"
        if "html" in value:
            return "legacy"
    return None


GenerationOutput = Annotated[
    Union[
        Annotated[MultiPageWebsite, Tag("multi-page")],
        Annotated[LegacyWebsiteContent, Tag("legacy")],
    ],
    Discriminator(
        detect_format,
        custom_error_type="unrecognized_generation_result",
        custom_error_message="Expected a multi-page website or legacy website content",
    ),
]


__all__ = [
    "ColorPalette",
    "DesignSystem",
    "FontSizes",
    "GeneratedWebsitePackage",
    "GenerationOutput",
    "LegacyMeta",
    "LegacyWebsiteContent",
    "MultiPageWebsite",
    "NavigationConfig",
    "NavigationItem",
    "PageSEO",
    "PageSpec",
    "SEOStrategy",
    "SectionSpec",
    "SharedComponents",
    "SiteAssets",
    "Spacing",
    "Typography",
    "WebsiteFile",
    "WebsiteManifest",
    "detect_format",
]
