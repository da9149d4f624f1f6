from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from .generation import GenerationRecord
from .template import DesignTemplate
from .website import GeneratedWebsitePackage


class WizardStage(str, Enum):
    # Legacy stages
    mode_select = "mode-select"
    discover = "discover"
    define = "define"
    ecommerce = "ecommerce"
    confirm = "confirm"
    research = "research"
    commit = "commit"
    # 4-phase workflow
    package_select = "package-select"
    template_select = "template-select"
    quick_form = "quick-form"
    final_website = "final-website"
    # Deprecated phases
    keywords_collection = "keywords-collection"
    content_rewriting = "content-rewriting"
    image_generation = "image-generation"
    seo_assessment = "seo-assessment"
    review_redo = "review-redo"
    final_approval = "final-approval"
    empty_preview = "empty-preview"
    content_select = "content-select"
    client_info = "client-info"
    merge_preview = "merge-preview"
    ai_generation = "ai-generation"
    review_redesign = "review-redesign"
    seo_evaluation = "seo-evaluation"
    # Legacy investigation stages
    requirements = "requirements"
    content_quality = "content-quality"
    keywords_semantic_seo = "keywords-semantic-seo"
    technical_seo = "technical-seo"
    core_web_vitals = "core-web-vitals"
    structure_navigation = "structure-navigation"
    mobile_optimization = "mobile-optimization"
    visual_quality = "visual-quality"
    image_media_quality = "image-media-quality"
    local_seo = "local-seo"
    trust_signals = "trust-signals"
    schema_structured_data = "schema-structured-data"
    on_page_seo_structure = "on-page-seo-structure"
    security = "security"
    build = "build"
    review = "review"
    # Only ever seen in saved sessions
    user_experience = "user-experience"
    authority_trust = "authority-trust"
    competitor_analysis = "competitor-analysis"


class PackageId(str, Enum):
    basic = "basic"
    advanced = "advanced"
    seo = "seo"
    deluxe = "deluxe"
    ultra = "ultra"
    custom = "custom"


class PageType(str, Enum):
    home = "home"
    about = "about"
    services = "services"
    contact = "contact"
    blog = "blog"
    portfolio = "portfolio"
    pricing = "pricing"
    faq = "faq"
    team = "team"
    testimonials = "testimonials"
    gallery = "gallery"
    custom = "custom"


class WizardModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PackageConstraints(WizardModel):
    max_pages: int
    max_services: int
    includes_competitor_research: bool
    includes_advanced_seo: bool = Field(alias="includesAdvancedSEO")
    includes_custom_design: bool
    includes_automated_maintenance: bool


class PageKeywords(WizardModel):
    name: str
    type: PageType = PageType.custom
    keywords: list[str] = Field(default_factory=list)


class RedoRequest(WizardModel):
    type: Literal["content", "images"]
    pages: list[str] = Field(default_factory=list, description="Pages to redo; empty means all")
    sections: list[str] | None = None
    feedback: str | None = None


class GeneratedImage(WizardModel):
    original_url: str
    new_url: str
    alt: str = ""
    section: str = ""
    prompt: str = ""


class CategoryScore(WizardModel):
    score: float
    issues: list[str] = Field(default_factory=list)


class SEOAssessmentResult(WizardModel):
    overall_score: float
    categories: dict[str, CategoryScore] = Field(default_factory=dict)
    recommendations: list[str] = Field(default_factory=list)
    passed_checks: list[str] = Field(default_factory=list)
    failed_checks: list[str] = Field(default_factory=list)


class BusinessInfo(WizardModel):
    business_name: str
    industry: str = ""
    location: str = ""
    email: EmailStr
    has_own_photos: bool = False


class WizardMessage(WizardModel):
    id: str
    role: Literal["assistant", "user"]
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class WebsiteRequirements(WizardModel):
    """Questionnaire answers. Known fields are typed; anything else is kept as-is."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    build_mode: Literal["auto", "manual"] | None = None
    project_overview: str | None = None
    business_name: str | None = None
    business_email: str | None = None
    business_phone: str | None = None
    business_address: str | None = None
    domain_status: Literal["have_domain", "need_domain", "undecided"] | None = None
    domain_name: str | None = None
    industry: str | None = None
    business_type: str | None = None
    target_audience: str | None = None
    services: list[dict[str, Any]] | None = None
    pages: list[str] | None = None
    features: list[str] | None = None
    primary_color: str | None = None
    accent_color: str | None = None
    design_style: str | None = None
    logo_url: str | None = None
    primary_cta: str | None = Field(default=None, alias="primaryCTA")
    content_tone: str | None = None
    seo_keywords: str | None = None
    country: str | None = None
    region: str | None = None
    content_mode: Literal["ai_generated", "user_provided"] | None = None
    theme_mode: Literal["light", "dark"] | None = None


class MergedTemplateImage(WizardModel):
    src: str
    alt: str = ""
    section: str = ""
    prompt: str | None = None


class MergedTemplate(WizardModel):
    html: str
    css: str = ""
    images: list[MergedTemplateImage] | None = None


class GeneratedPageDraft(WizardModel):
    slug: str
    html: str


class GeneratedWebsiteDraft(WizardModel):
    html: str
    css: str = ""
    js: str | None = None
    pages: list[GeneratedPageDraft] | None = None


class WizardState(WizardModel):
    stage: WizardStage = WizardStage.package_select
    stage_history: list[WizardStage] = Field(default_factory=list)
    current_page: str = "project-overview"
    current_question: int = 0
    requirements: WebsiteRequirements = Field(default_factory=WebsiteRequirements)
    messages: list[WizardMessage] = Field(default_factory=list)

    selected_package: PackageId | None = None
    package_constraints: PackageConstraints | None = None

    selected_design_templates: list[DesignTemplate] = Field(default_factory=list)
    page_keywords: list[PageKeywords] = Field(default_factory=list)
    image_source: Literal["own", "leonardo"] = "own"
    business_info: BusinessInfo | None = None

    redesign_count: int = 0
    redo_requests: list[RedoRequest] = Field(default_factory=list)

    merged_template: MergedTemplate | None = None
    generated_website: GeneratedWebsiteDraft | None = None
    generated_package: GeneratedWebsitePackage | None = None
    generated_images: list[GeneratedImage] = Field(default_factory=list)
    seo_assessment: SEOAssessmentResult | None = None
    seo_score: float | None = None
    seo_recommendations: list[str] | None = None
    generation: GenerationRecord = Field(default_factory=GenerationRecord)
    auto_build_pending: bool = False

    session_id: str | None = None
    draft_id: str | None = None
    project_id: str | None = None
    project_name: str | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Deprecated, read-only: migrated into page_keywords
    selected_template: DesignTemplate | None = None
    selected_content_templates: list[DesignTemplate] = Field(default_factory=list)
    selected_content_template: DesignTemplate | None = None

    @property
    def has_generated_result(self) -> bool:
        return (
            self.generated_package is not None
            or self.generated_website is not None
            or self.merged_template is not None
        )


__all__ = [
    "BusinessInfo",
    "CategoryScore",
    "GeneratedImage",
    "GeneratedPageDraft",
    "GeneratedWebsiteDraft",
    "MergedTemplate",
    "MergedTemplateImage",
    "PackageConstraints",
    "PackageId",
    "PageKeywords",
    "PageType",
    "RedoRequest",
    "SEOAssessmentResult",
    "WebsiteRequirements",
    "WizardMessage",
    "WizardModel",
    "WizardStage",
    "WizardState",
]
