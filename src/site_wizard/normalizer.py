from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import Any, Union

from pydantic import TypeAdapter, ValidationError

from .defaults import (
    DEFAULT_DESIGN_SYSTEM,
    DEFAULT_NAVIGATION,
    DEFAULT_PAGE_PATH,
    DEFAULT_PAGE_SLUG,
    DEFAULT_PAGE_TITLE,
    DEFAULT_SITE_NAME,
    MANIFEST_VERSION,
)
from .errors import EmptyManifestError, MalformedGenerationResultError
from .models.website import (
    GeneratedWebsitePackage,
    GenerationOutput,
    LegacyMeta,
    LegacyWebsiteContent,
    MultiPageWebsite,
    PageSEO,
    PageSpec,
    SEOStrategy,
    SharedComponents,
    SiteAssets,
    WebsiteFile,
    WebsiteManifest,
)

SLUG_PATTERN = re.compile(r"^[A-Za-z0-9._~-]+$")

_output_adapter: TypeAdapter[Any] = TypeAdapter(GenerationOutput)


@dataclass(frozen=True)
class Normalized:
    package: GeneratedWebsitePackage


@dataclass(frozen=True)
class MalformedInput:
    reason: str


NormalizationResult = Union[Normalized, MalformedInput]


def content_checksum(content: str) -> str:
    return hashlib.md5(content.encode("utf-8")).hexdigest()


def parse_generation_output(raw: Any) -> MultiPageWebsite | LegacyWebsiteContent:
    """Validate ``raw`` against the two known generator shapes."""
    try:
        return _output_adapter.validate_python(raw)
    except ValidationError as exc:
        raise MalformedGenerationResultError(_describe(exc)) from exc


def normalize(raw: Any) -> GeneratedWebsitePackage:
    """Convert either generator result shape into the canonical package.

    Raises ``MalformedGenerationResultError`` for input matching neither
    shape and ``EmptyManifestError`` for a multi-page manifest without pages.
    """
    output = parse_generation_output(raw)
    if isinstance(output, MultiPageWebsite):
        return _normalize_multi_page(output)
    if isinstance(output, LegacyWebsiteContent):
        return _normalize_legacy(output)
    raise MalformedGenerationResultError(f"Unsupported generation result type: {type(output).__name__}")


def try_normalize(raw: Any) -> NormalizationResult:
    try:
        return Normalized(package=normalize(raw))
    except MalformedGenerationResultError as exc:
        return MalformedInput(reason=exc.reason)


def _normalize_multi_page(website: MultiPageWebsite) -> GeneratedWebsitePackage:
    manifest = website.manifest
    if not manifest.pages:
        raise EmptyManifestError()
    _check_pages(manifest)
    _check_files(website)
    return GeneratedWebsitePackage(
        manifest=manifest,
        files=website.files,
        active_page_id=manifest.pages[0].slug,
        pages=list(manifest.pages),
        shared_assets=website.assets,
    )


def _normalize_legacy(legacy: LegacyWebsiteContent) -> GeneratedWebsitePackage:
    meta = legacy.meta or LegacyMeta()
    keywords = list(meta.keywords)
    page = PageSpec(
        slug=DEFAULT_PAGE_SLUG,
        title=meta.title or DEFAULT_PAGE_TITLE,
        description=meta.description,
        sections=[],
        seo=PageSEO(
            title=meta.title or DEFAULT_PAGE_TITLE,
            description=meta.description,
            keywords=keywords,
        ),
        order=1,
    )
    manifest = WebsiteManifest(
        site_name=meta.title or DEFAULT_SITE_NAME,
        description=meta.description,
        pages=[page],
        navigation=DEFAULT_NAVIGATION,
        shared_components=SharedComponents(),
        seo_strategy=SEOStrategy(primary_keywords=keywords),
        design_system=DEFAULT_DESIGN_SYSTEM,
        version=MANIFEST_VERSION,
    )
    files = {
        DEFAULT_PAGE_PATH: WebsiteFile(
            path=DEFAULT_PAGE_PATH,
            type="html",
            content=legacy.html,
            checksum=content_checksum(legacy.html),
        )
    }
    return GeneratedWebsitePackage(
        manifest=manifest,
        files=files,
        active_page_id=DEFAULT_PAGE_SLUG,
        pages=list(manifest.pages),
        shared_assets=SiteAssets(css=legacy.css, js=legacy.js),
    )


def _check_pages(manifest: WebsiteManifest) -> None:
    slugs: set[str] = set()
    orders: set[int] = set()
    for page in manifest.pages:
        if not SLUG_PATTERN.match(page.slug):
            raise MalformedGenerationResultError(f"Page slug is not URL-safe: {page.slug!r}")
        if page.slug in slugs:
            raise MalformedGenerationResultError(f"Duplicate page slug: {page.slug!r}")
        if page.order in orders:
            raise MalformedGenerationResultError(f"Duplicate page order {page.order} on {page.slug!r}")
        slugs.add(page.slug)
        orders.add(page.order)


def _check_files(website: MultiPageWebsite) -> None:
    for key, file in website.files.items():
        if key != file.path:
            raise MalformedGenerationResultError(f"File key {key!r} does not match its path {file.path!r}")


def _describe(exc: ValidationError) -> str:
    errors = exc.errors()
    if any(error["type"] == "unrecognized_generation_result" for error in errors):
        return "Generation result is neither a multi-page website nor legacy website content"
    first = errors[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"Invalid generation result at {location or '<root>'}: {first['msg']}"


__all__ = [
    "MalformedInput",
    "Normalized",
    "NormalizationResult",
    "content_checksum",
    "normalize",
    "parse_generation_output",
    "try_normalize",
]
