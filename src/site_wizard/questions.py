from __future__ import annotations

import re
from typing import Any, Literal, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models.wizard import WebsiteRequirements

QuestionType = Literal[
    "text",
    "select",
    "multiselect",
    "textarea",
    "color",
    "email",
    "phone",
    "url",
    "file",
    "radio",
    "service-list",
    "url-list",
    "social-links",
]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_PATTERN = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"^[+]?[\d\s\-().]{7,20}$")

REQUIRED_MESSAGE = "This field is required."
INVALID_EMAIL_MESSAGE = "Please enter a valid email address."
INVALID_URL_MESSAGE = "Please enter a valid URL (e.g., https://example.com)."
INVALID_PHONE_MESSAGE = "Please enter a valid phone number."
INVALID_OPTION_MESSAGE = "Please choose one of the listed options."

PAGE_ORDER: Sequence[str] = (
    "project-overview",
    "business-details",
    "services",
    "branding",
    "content",
    "competitors",
    "visual-assets",
    "location-social",
    "preferences",
)


class QuestionCondition(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    depends_on: str
    show_when: str | Sequence[str]


class Question(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    question: str
    key: str
    type: QuestionType
    page: str
    options: Sequence[str] | None = None
    placeholder: str | None = None
    optional: bool = False
    conditional: QuestionCondition | None = None


def _q(id: str, question: str, key: str, type: QuestionType, page: str, **extra: Any) -> Question:
    return Question(id=id, question=question, key=key, type=type, page=page, **extra)


DISCOVERY_QUESTIONS: Sequence[Question] = (
    _q("project-overview", "Describe your website project in a few sentences", "projectOverview", "textarea", "project-overview"),
    _q("business-name", "What's the name of your business or project?", "businessName", "text", "business-details"),
    _q("business-email", "Business email address", "businessEmail", "email", "business-details"),
    _q("business-phone", "Business phone number", "businessPhone", "phone", "business-details", optional=True),
    _q("business-address", "Physical business address", "businessAddress", "textarea", "business-details", optional=True),
    _q(
        "domain-status",
        "Do you have a domain name?",
        "domainStatus",
        "select",
        "business-details",
        options=["have_domain", "need_domain", "undecided"],
    ),
    _q(
        "domain-name",
        "What is your domain name?",
        "domainName",
        "text",
        "business-details",
        conditional=QuestionCondition(depends_on="domainStatus", show_when="have_domain"),
    ),
    _q(
        "industry",
        "What industry are you in?",
        "industry",
        "select",
        "business-details",
        options=[
            "Food & Dining",
            "Retail & E-commerce",
            "Professional Services",
            "Health & Wellness",
            "Technology & Software",
            "Creative & Arts",
            "Education & Training",
            "Real Estate",
            "Finance & Consulting",
            "Travel & Hospitality",
            "Non-Profit",
            "Other",
        ],
    ),
    _q("target-audience", "Who is your target audience?", "targetAudience", "textarea", "business-details"),
    _q("services", "What services or products do you offer? (Rank by importance)", "services", "service-list", "services"),
    _q("primary-color", "Primary brand color:", "primaryColor", "color", "branding"),
    _q("accent-color", "Accent color:", "accentColor", "color", "branding"),
    _q("logo-url", "Do you have a logo URL? (Optional)", "logoUrl", "url", "branding", optional=True),
    _q(
        "primary-cta",
        "What's the main action you want visitors to take?",
        "primaryCTA",
        "select",
        "content",
        options=[
            "Contact Us",
            "Buy Now / Shop",
            "Book Appointment",
            "Sign Up / Register",
            "Download",
            "Learn More",
            "Get Quote",
            "Call Now",
        ],
    ),
    _q(
        "pages",
        "Which pages do you need on your website?",
        "pages",
        "multiselect",
        "content",
        options=[
            "Home",
            "About",
            "Services/Products",
            "Portfolio/Gallery",
            "Pricing",
            "Blog",
            "Contact",
            "FAQ",
            "Testimonials",
            "Team",
        ],
    ),
    _q("competitors", "Competitor websites to analyze (3-5 URLs)", "competitors", "url-list", "competitors", optional=True),
    _q(
        "inspirational-sites",
        "Websites with designs you love (up to 3 URLs)",
        "inspirationalSites",
        "url-list",
        "visual-assets",
        optional=True,
    ),
    _q("country", "What country is your business located in?", "country", "text", "location-social"),
    _q("region", "State/Region/City", "region", "text", "location-social", optional=True),
    _q(
        "content-mode",
        "How do you want to handle website content?",
        "contentMode",
        "radio",
        "preferences",
        options=["ai_generated", "user_provided"],
    ),
    _q("theme-mode", "Preferred theme mode", "themeMode", "radio", "preferences", options=["light", "dark"]),
)

QUICK_FORM_QUESTIONS: Sequence[Question] = (
    _q("quick-business-name", "What's your business called?", "businessName", "text", "quick-form"),
    _q("quick-industry", "What industry are you in?", "industry", "text", "quick-form"),
    _q("quick-location", "Where are you located?", "location", "text", "quick-form", optional=True),
    _q("quick-email", "Where should customers reach you?", "email", "email", "quick-form"),
    _q(
        "quick-photos",
        "Do you have your own photos?",
        "hasOwnPhotos",
        "radio",
        "quick-form",
        optional=True,
    ),
)


def _answers(requirements: WebsiteRequirements | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(requirements, WebsiteRequirements):
        return requirements.model_dump(by_alias=True, exclude_none=True)
    return requirements


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return not value
    return False


def is_question_visible(question: Question, requirements: WebsiteRequirements | Mapping[str, Any]) -> bool:
    condition = question.conditional
    if condition is None:
        return True
    current = _answers(requirements).get(condition.depends_on)
    if isinstance(condition.show_when, str):
        return current == condition.show_when
    return current in condition.show_when


def visible_questions(
    requirements: WebsiteRequirements | Mapping[str, Any],
    page: str | None = None,
    questions: Sequence[Question] = DISCOVERY_QUESTIONS,
) -> list[Question]:
    answers = _answers(requirements)
    return [
        question
        for question in questions
        if (page is None or question.page == page) and is_question_visible(question, answers)
    ]


def validate_answer(question: Question, value: Any) -> str | None:
    """Return an error message for ``value`` or ``None`` when it is acceptable."""
    if _is_empty(value):
        return None if question.optional else REQUIRED_MESSAGE

    if question.type == "email" and not EMAIL_PATTERN.match(str(value)):
        return INVALID_EMAIL_MESSAGE
    if question.type == "phone" and not PHONE_PATTERN.match(str(value)):
        return INVALID_PHONE_MESSAGE
    if question.type == "url" and not URL_PATTERN.match(str(value)):
        return INVALID_URL_MESSAGE
    if question.type == "url-list":
        for item in value:
            url = item.get("url", "") if isinstance(item, Mapping) else str(item)
            if not URL_PATTERN.match(url):
                return INVALID_URL_MESSAGE
    if question.type in ("select", "radio") and question.options and str(value) not in question.options:
        return INVALID_OPTION_MESSAGE
    if question.type == "multiselect" and question.options:
        if any(str(item) not in question.options for item in value):
            return INVALID_OPTION_MESSAGE
    return None


def validate_requirements(
    requirements: WebsiteRequirements | Mapping[str, Any],
    page: str | None = None,
    questions: Sequence[Question] = DISCOVERY_QUESTIONS,
) -> dict[str, str]:
    """Validate every visible question; hidden conditional questions are skipped."""
    answers = _answers(requirements)
    errors: dict[str, str] = {}
    for question in visible_questions(answers, page, questions):
        message = validate_answer(question, answers.get(question.key))
        if message:
            errors[question.key] = message
    return errors


def next_page(page: str) -> str | None:
    try:
        index = PAGE_ORDER.index(page)
    except ValueError:
        return None
    return PAGE_ORDER[index + 1] if index + 1 < len(PAGE_ORDER) else None


__all__ = [
    "DISCOVERY_QUESTIONS",
    "PAGE_ORDER",
    "QUICK_FORM_QUESTIONS",
    "Question",
    "QuestionCondition",
    "is_question_visible",
    "next_page",
    "validate_answer",
    "validate_requirements",
    "visible_questions",
]
