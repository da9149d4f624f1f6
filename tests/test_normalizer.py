import json
from pathlib import Path

import pytest

from site_wizard.errors import EmptyManifestError, MalformedGenerationResultError
from site_wizard.models.website import LegacyWebsiteContent, MultiPageWebsite
from site_wizard.normalizer import (
    MalformedInput,
    Normalized,
    content_checksum,
    normalize,
    parse_generation_output,
    try_normalize,
)

FIXTURES = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> dict:
    return json.loads((FIXTURES / f"{name}.json").read_text(encoding="utf-8"))


def test_bean_and_brew_legacy_content_becomes_single_home_page():
    package = normalize(load_fixture("legacy_bean_and_brew"))

    assert package.manifest.site_name == "Bean & Brew"
    assert list(package.manifest.seo_strategy.primary_keywords) == ["coffee", "capetown"]
    assert package.page_slugs == ["home"]
    assert package.active_page_id == "home"
    assert package.shared_assets.css == "body{color:red}"
    assert package.shared_assets.js == ""
    assert package.files["pages/home.html"].content == "<h1>Hi</h1>"
    assert package.files["pages/home.html"].type == "html"


def test_legacy_without_meta_uses_defaults():
    package = normalize({"html": "<p>plain</p>"})

    assert list(package.manifest.seo_strategy.primary_keywords) == []
    assert package.manifest.site_name == "Website"
    page = package.pages[0]
    assert page.title == "Home"
    assert page.order == 1
    assert page.seo.title == "Home"
    assert package.manifest.design_system.colors.primary == "#3b82f6"
    assert package.manifest.design_system.typography.sizes.h1 == "60px"
    assert package.manifest.design_system.spacing.section == "80px"
    assert package.manifest.design_system.border_radius == "8px"
    assert [item.slug for item in package.manifest.navigation.pages] == ["home"]


def test_legacy_file_checksum_tracks_content():
    first = normalize({"html": "<h1>One</h1>"})
    second = normalize({"html": "<h1>Two</h1>"})

    checksum = first.files["pages/home.html"].checksum
    assert checksum == content_checksum("<h1>One</h1>")
    assert len(checksum) == 32
    assert checksum != second.files["pages/home.html"].checksum


def test_multi_page_passes_manifest_and_files_through():
    raw = load_fixture("multi_page_studio")
    package = normalize(raw)

    assert package.page_slugs == ["home", "our-work", "contact"]
    assert list(package.pages) == list(package.manifest.pages)
    assert package.active_page_id == "home"
    assert set(package.files) == set(raw["files"])
    # checksums are the generator's, not recomputed
    assert package.files["pages/home.html"].checksum == "abc123"
    assert package.files["pages/our-work.html"].checksum == ""
    assert package.shared_assets.css == ":root{--accent:#f59e0b}"
    assert package.manifest.design_system.typography.heading_font == "Playfair Display, serif"
    assert package.page("our-work").seo.og_image == "https://cdn.example.com/og/work.png"
    assert package.page("missing") is None


def test_multi_page_without_assets_gets_empty_shared_assets():
    raw = load_fixture("multi_page_studio")
    del raw["assets"]

    package = normalize(raw)

    assert package.shared_assets.css == ""
    assert package.shared_assets.js == ""


def test_renormalizing_multi_page_form_is_stable():
    for name in ("legacy_bean_and_brew", "multi_page_studio"):
        first = normalize(load_fixture(name))
        second = normalize(first.to_multi_page())
        third = normalize(second.to_multi_page().model_dump(by_alias=True))

        assert second == first
        assert third == first


def test_structural_detection_prefers_manifest_and_files():
    raw = load_fixture("multi_page_studio")
    raw["html"] = "<p>stray</p>"

    assert isinstance(parse_generation_output(raw), MultiPageWebsite)
    assert isinstance(parse_generation_output({"html": "", "css": "a{}"}), LegacyWebsiteContent)


@pytest.mark.parametrize(
    "raw",
    [
        {},
        {"css": "body{}", "js": ""},
        {"manifest": {"siteName": "x"}},
        "<h1>Hi</h1>",
        None,
        [],
    ],
)
def test_unrecognized_shapes_are_rejected(raw):
    with pytest.raises(MalformedGenerationResultError) as exc_info:
        normalize(raw)

    assert "neither" in exc_info.value.reason


def test_invalid_fields_report_location():
    with pytest.raises(MalformedGenerationResultError) as exc_info:
        normalize({"html": 42})

    assert "html" in exc_info.value.reason


def test_empty_manifest_fails_closed():
    raw = load_fixture("multi_page_studio")
    raw["manifest"]["pages"] = []

    with pytest.raises(EmptyManifestError):
        normalize(raw)


def test_duplicate_slugs_are_rejected():
    raw = load_fixture("multi_page_studio")
    raw["manifest"]["pages"][1]["slug"] = "home"

    with pytest.raises(MalformedGenerationResultError, match="Duplicate page slug"):
        normalize(raw)


def test_duplicate_orders_are_rejected():
    raw = load_fixture("multi_page_studio")
    raw["manifest"]["pages"][2]["order"] = 1

    with pytest.raises(MalformedGenerationResultError, match="Duplicate page order"):
        normalize(raw)


def test_unsafe_slug_is_rejected():
    raw = load_fixture("multi_page_studio")
    raw["manifest"]["pages"][1]["slug"] = "Our Work"

    with pytest.raises(MalformedGenerationResultError, match="URL-safe"):
        normalize(raw)


def test_file_key_must_match_path():
    raw = load_fixture("multi_page_studio")
    raw["files"]["pages/home.html"]["path"] = "pages/index.html"

    with pytest.raises(MalformedGenerationResultError, match="does not match"):
        normalize(raw)


def test_try_normalize_returns_result_variants():
    ok = try_normalize(load_fixture("legacy_bean_and_brew"))
    bad = try_normalize({"nothing": True})

    assert isinstance(ok, Normalized)
    assert ok.package.active_page_id == "home"
    assert isinstance(bad, MalformedInput)
    assert bad.reason


def test_package_is_immutable():
    package = normalize(load_fixture("legacy_bean_and_brew"))

    with pytest.raises(Exception):
        package.active_page_id = "about"


def test_unknown_section_types_pass_through():
    raw = load_fixture("multi_page_studio")
    raw["manifest"]["pages"][0]["sections"].extend(
        [
            {"id": "services-1", "type": "services", "title": "What we do", "content": "", "order": 3},
            {"id": "content-1", "type": "content", "title": "Our story", "content": "", "order": 4},
        ]
    )

    package = normalize(raw)

    assert [section.type for section in package.pages[0].sections] == ["hero", "cta", "services", "content"]


@pytest.mark.parametrize("slug", ["about---us", "v2.0", "About", "team_~members"])
def test_unreserved_url_characters_are_accepted_in_slugs(slug):
    raw = load_fixture("multi_page_studio")
    raw["manifest"]["pages"][1]["slug"] = slug

    package = normalize(raw)

    assert package.page_slugs[1] == slug


def test_legacy_checksum_is_md5_hex():
    package = normalize({"html": "<h1>Hi</h1>"})

    assert package.files["pages/home.html"].checksum == "733f0ef1d2b4f4a55b2b79f0907bab59"
    assert content_checksum("") == "d41d8cd98f00b204e9800998ecf8427e"
