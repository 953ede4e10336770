"""
Carousel template definitions and branding overrides.

Five pre-built visual styles for LinkedIn carousels. A workspace (or a single
carousel) can override the brand colors, the font family and the font sizes
of whichever template it uses.
"""

import logging
import re
from dataclasses import dataclass, asdict, replace
from types import MappingProxyType
from typing import Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

HEX_COLOR_RE = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)

DEFAULT_TEMPLATE_ID = "minimal"


def is_hex_color(value: Any) -> bool:
    return isinstance(value, str) and HEX_COLOR_RE.match(value) is not None


@dataclass(frozen=True)
class TemplateColors:
    primary: str
    secondary: str
    background: str
    text: str
    accent: str


@dataclass(frozen=True)
class TemplateFonts:
    title: str
    body: str
    key_point: str


@dataclass(frozen=True)
class TemplateFontSizes:
    title: float
    body: float
    key_point: float
    slide_number: float


@dataclass(frozen=True)
class TemplateLayout:
    title_position: Literal["top", "center", "bottom"]
    key_point_style: Literal["badge", "highlight", "subtle", "boxed", "underline"]
    background_pattern: Literal["none", "dots", "lines", "gradient", "shapes"]


@dataclass(frozen=True)
class Template:
    id: str
    name: str
    description: str
    colors: TemplateColors
    fonts: TemplateFonts
    font_sizes: TemplateFontSizes
    layout: TemplateLayout
    preview: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def _inter() -> TemplateFonts:
    return TemplateFonts(title="Inter", body="Inter", key_point="Inter")


# ============================================
# TEMPLATES
# ============================================
CAROUSEL_TEMPLATES: Mapping[str, Template] = MappingProxyType({
    "minimal": Template(
        id="minimal",
        name="Minimal",
        description="Clean, text-focused design with plenty of whitespace",
        colors=TemplateColors(
            primary="#1A1A1A",
            secondary="#666666",
            background="#FFFFFF",
            text="#1A1A1A",
            accent="#0077B5",
        ),
        fonts=_inter(),
        font_sizes=TemplateFontSizes(title=36, body=18, key_point=14, slide_number=12),
        layout=TemplateLayout(title_position="top", key_point_style="subtle", background_pattern="none"),
        preview="linear-gradient(135deg, #FFFFFF 0%, #F5F5F5 100%)",
    ),
    "bold": Template(
        id="bold",
        name="Bold",
        description="High contrast, impactful design that stands out",
        colors=TemplateColors(
            primary="#FFFFFF",
            secondary="#E0E0E0",
            background="#1A1A1A",
            text="#FFFFFF",
            accent="#FFD700",
        ),
        fonts=_inter(),
        font_sizes=TemplateFontSizes(title=42, body=20, key_point=16, slide_number=14),
        layout=TemplateLayout(title_position="center", key_point_style="badge", background_pattern="gradient"),
        preview="linear-gradient(135deg, #1A1A1A 0%, #333333 100%)",
    ),
    "professional": Template(
        id="professional",
        name="Professional",
        description="Corporate, polished look for business content",
        colors=TemplateColors(
            primary="#0077B5",
            secondary="#004182",
            background="#F8FAFC",
            text="#1E293B",
            accent="#0077B5",
        ),
        fonts=_inter(),
        font_sizes=TemplateFontSizes(title=34, body=18, key_point=14, slide_number=12),
        layout=TemplateLayout(title_position="top", key_point_style="boxed", background_pattern="lines"),
        preview="linear-gradient(135deg, #F8FAFC 0%, #E2E8F0 100%)",
    ),
    "creative": Template(
        id="creative",
        name="Creative",
        description="Colorful, engaging design with visual flair",
        colors=TemplateColors(
            primary="#7C3AED",
            secondary="#A78BFA",
            background="#FAF5FF",
            text="#1F2937",
            accent="#EC4899",
        ),
        fonts=_inter(),
        font_sizes=TemplateFontSizes(title=38, body=18, key_point=15, slide_number=12),
        layout=TemplateLayout(title_position="top", key_point_style="highlight", background_pattern="shapes"),
        preview="linear-gradient(135deg, #FAF5FF 0%, #F3E8FF 100%)",
    ),
    "story": Template(
        id="story",
        name="Story",
        description="Narrative flow design optimized for storytelling",
        colors=TemplateColors(
            primary="#059669",
            secondary="#34D399",
            background="#ECFDF5",
            text="#064E3B",
            accent="#F59E0B",
        ),
        fonts=_inter(),
        font_sizes=TemplateFontSizes(title=32, body=20, key_point=14, slide_number=12),
        layout=TemplateLayout(title_position="top", key_point_style="underline", background_pattern="dots"),
        preview="linear-gradient(135deg, #ECFDF5 0%, #D1FAE5 100%)",
    ),
})

TEMPLATE_IDS = tuple(CAROUSEL_TEMPLATES)


def get_template(template_id: Optional[str]) -> Template:
    """Get a template by ID, falling back to the minimal template."""
    return CAROUSEL_TEMPLATES.get(template_id or "", CAROUSEL_TEMPLATES[DEFAULT_TEMPLATE_ID])


def is_valid_template(template_id: Any) -> bool:
    return isinstance(template_id, str) and template_id in CAROUSEL_TEMPLATES


def list_templates() -> list[Template]:
    """List all templates in display order."""
    return list(CAROUSEL_TEMPLATES.values())


# ============================================
# BRANDING
# ============================================
class BrandingOverride(BaseModel):
    """Workspace or carousel branding. Every field is optional."""
    model_config = ConfigDict(extra="ignore")

    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    font_family: Optional[str] = None
    title_font_size: Optional[float] = None
    body_font_size: Optional[float] = None
    key_point_font_size: Optional[float] = None


BrandingInput = Union[BrandingOverride, Mapping[str, Any], None]


def _color(branding: Mapping[str, Any], key: str, default: str) -> str:
    value = branding.get(key)
    if not value:
        return default
    if not is_hex_color(value):
        logger.debug("Ignoring malformed branding color %s=%r", key, value)
        return default
    return value


def _font_size(branding: Mapping[str, Any], key: str, default: float) -> float:
    value = branding.get(key)
    if not value:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        logger.debug("Ignoring invalid branding font size %s=%r", key, value)
        return default
    return value


def apply_branding_overrides(template: Template, branding: BrandingInput = None) -> Template:
    """
    Merge branding over a template's defaults.

    Only present, well-formed fields override. The accent color follows the
    brand primary color. The template itself is never modified.
    """
    if isinstance(branding, BrandingOverride):
        branding = branding.model_dump(exclude_none=True)
    if not branding:
        return template
    if not isinstance(branding, Mapping):
        logger.debug("Ignoring branding of type %s", type(branding).__name__)
        return template

    primary = _color(branding, "primary_color", template.colors.primary)
    accent = _color(branding, "primary_color", template.colors.accent)
    font_family = branding.get("font_family")
    if not isinstance(font_family, str) or not font_family.strip():
        font_family = None

    return replace(
        template,
        colors=replace(
            template.colors,
            primary=primary,
            secondary=_color(branding, "secondary_color", template.colors.secondary),
            accent=accent,
        ),
        fonts=TemplateFonts(
            title=font_family or template.fonts.title,
            body=font_family or template.fonts.body,
            key_point=font_family or template.fonts.key_point,
        ),
        font_sizes=replace(
            template.font_sizes,
            title=_font_size(branding, "title_font_size", template.font_sizes.title),
            body=_font_size(branding, "body_font_size", template.font_sizes.body),
            key_point=_font_size(branding, "key_point_font_size", template.font_sizes.key_point),
        ),
    )


def resolve_carousel_style(
    template_type: Optional[str],
    workspace_branding: BrandingInput = None,
    carousel_branding: BrandingInput = None,
) -> Template:
    """Template lookup, then workspace branding, then the carousel's own branding."""
    style = get_template(template_type)
    style = apply_branding_overrides(style, workspace_branding)
    return apply_branding_overrides(style, carousel_branding)
