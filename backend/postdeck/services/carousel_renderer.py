"""
PDF Rendering Engine for LinkedIn Carousels.

One layout algorithm, two page configurations:
- EXPORT_PAGE: square page in millimetres, for downloads
- PUBLISH_PAGE: 1080x1350 portrait page in pixels, for LinkedIn document posts

Layout is computed in the page's own units with a top-left origin and is
converted to PDF points only when painting.
"""

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from postdeck.carousel_templates import HEX_COLOR_RE, Template
from postdeck.slides import Slide, parse_slides

logger = logging.getLogger(__name__)

Color = tuple[int, int, int]

BLACK: Color = (0, 0, 0)
MAX_BODY_LINES = 12
ACCENT_LIGHTEN = 180
BASELINE_RATIO = 0.8  # baseline position within a line box

FALLBACK_FONTS = {False: "Helvetica", True: "Helvetica-Bold"}


class EmptyCarouselError(ValueError):
    """A carousel needs at least one slide to render."""


# ============================================
# PAGE CONFIGURATIONS
# ============================================
@dataclass(frozen=True)
class PageConfig:
    name: str
    width: float
    height: float
    unit: float  # PDF points per layout unit
    padding: float
    label_advance: float  # cursor advance after the slide index label
    title_line_height: float
    title_gap: float
    body_line_height: float
    key_point_line_height: float
    key_point_bottom_offset: float  # callout top = height - padding - offset
    key_point_box_padding: float
    key_point_indent: float
    accent_bar_width: float
    font_scale: float = 1.0

    @property
    def content_width(self) -> float:
        return self.width - self.padding * 2

    @property
    def pagesize(self) -> tuple[float, float]:
        return (self.width * self.unit, self.height * self.unit)


EXPORT_PAGE = PageConfig(
    name="export",
    width=297,
    height=297,
    unit=mm,
    padding=20,
    label_advance=15,
    title_line_height=16,
    title_gap=15,
    body_line_height=8.5,
    key_point_line_height=7,
    key_point_bottom_offset=30,
    key_point_box_padding=6,
    key_point_indent=10,
    accent_bar_width=3,
)

PUBLISH_PAGE = PageConfig(
    name="publish",
    width=1080,
    height=1350,
    unit=0.75,  # CSS pixel
    padding=80,
    label_advance=80,
    title_line_height=100,
    title_gap=60,
    body_line_height=52,
    key_point_line_height=48,
    key_point_bottom_offset=200,
    key_point_box_padding=24,
    key_point_indent=30,
    accent_bar_width=6,
    font_scale=1.75,
)


# ============================================
# COLORS AND FONTS
# ============================================
def hex_to_rgb(value: Any) -> Color:
    """Parse #RRGGBB. Anything unparseable is black."""
    if not isinstance(value, str):
        return BLACK
    match = HEX_COLOR_RE.match(value)
    if not match:
        return BLACK
    return tuple(int(group, 16) for group in match.groups())


def lighten(color: Color, amount: int = ACCENT_LIGHTEN) -> Color:
    return tuple(min(255, channel + amount) for channel in color)


def register_fonts(font_dir: Union[str, Path]) -> list[str]:
    """Register every TrueType font in font_dir under its file stem (e.g. Inter-Bold)."""
    font_dir = Path(font_dir)
    if not font_dir.is_dir():
        logger.info("Font directory %s not found, using built-in fonts", font_dir)
        return []

    registered = []
    known = set(pdfmetrics.getRegisteredFontNames())
    for path in sorted(font_dir.glob("*.ttf")):
        if path.stem not in known:
            pdfmetrics.registerFont(TTFont(path.stem, str(path)))
        registered.append(path.stem)
    logger.info("Registered %d fonts from %s", len(registered), font_dir)
    return registered


def resolve_font(family: Optional[str], bold: bool = False) -> str:
    """Map a template font family to a registered font name."""
    if family:
        candidate = f"{family.replace(' ', '')}-{'Bold' if bold else 'Regular'}"
        if candidate in pdfmetrics.getRegisteredFontNames():
            return candidate
    return FALLBACK_FONTS[bold]


def wrap_text(text: Optional[str], font_name: str, font_size: float, max_width: float) -> list[str]:
    """Split text into lines that fit max_width points, using real glyph widths."""
    if not text:
        return []
    lines = []
    for line in simpleSplit(text, font_name, font_size, max_width):
        if pdfmetrics.stringWidth(line, font_name, font_size) > max_width:
            # simpleSplit keeps a word longer than the line (URLs, hashtag runs) whole
            lines.extend(_break_word(line, font_name, font_size, max_width))
        else:
            lines.append(line)
    return lines


def _break_word(line: str, font_name: str, font_size: float, max_width: float) -> list[str]:
    pieces = []
    current = ""
    for char in line:
        if current and pdfmetrics.stringWidth(current + char, font_name, font_size) > max_width:
            pieces.append(current)
            current = char
        else:
            current += char
    if current:
        pieces.append(current)
    return pieces


# ============================================
# SLIDE LAYOUT
# ============================================
@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float
    color: Color


@dataclass(frozen=True)
class TextBlock:
    lines: tuple[str, ...]
    x: float
    y: float  # top of the block
    line_height: float
    font_name: str
    font_size: float  # points
    color: Color

    @property
    def height(self) -> float:
        return len(self.lines) * self.line_height

    def baselines(self) -> list[float]:
        return [self.y + (i + BASELINE_RATIO) * self.line_height for i in range(len(self.lines))]


@dataclass(frozen=True)
class KeyPointCallout:
    accent_bar: Rect
    box: Rect
    text: TextBlock


@dataclass(frozen=True)
class SlidePlan:
    slide_number: int
    background: Rect
    label: TextBlock
    title: TextBlock
    body: TextBlock
    key_point: Optional[KeyPointCallout] = None

    def operations(self) -> list[Union[Rect, TextBlock]]:
        """Drawing operations in paint order."""
        ops = [self.background, self.label, self.title, self.body]
        if self.key_point:
            ops += [self.key_point.accent_bar, self.key_point.box, self.key_point.text]
        return ops


def layout_slide(
    slide: Slide,
    position: int,
    total: int,
    style: Template,
    page: PageConfig = EXPORT_PAGE,
) -> SlidePlan:
    """Position the blocks of one slide (position is 1-based)."""
    colors = style.colors
    sizes = style.font_sizes
    scale = page.font_scale
    wrap_width = page.content_width * page.unit

    background = Rect(0, 0, page.width, page.height, hex_to_rgb(colors.background))

    y = page.padding
    label_size = sizes.slide_number * scale
    label = TextBlock(
        lines=(str(position),),
        x=page.padding,
        y=y,
        line_height=label_size / page.unit,
        font_name=resolve_font(style.fonts.body),
        font_size=label_size,
        color=hex_to_rgb(colors.secondary),
    )
    y += page.label_advance

    title_font = resolve_font(style.fonts.title, bold=True)
    title_size = sizes.title * scale
    title = TextBlock(
        lines=tuple(wrap_text(slide.title, title_font, title_size, wrap_width)),
        x=page.padding,
        y=y,
        line_height=page.title_line_height,
        font_name=title_font,
        font_size=title_size,
        color=hex_to_rgb(colors.primary),
    )
    y += title.height + page.title_gap

    body_font = resolve_font(style.fonts.body)
    body_size = sizes.body * scale
    body_lines = wrap_text(slide.body, body_font, body_size, wrap_width)
    if len(body_lines) > MAX_BODY_LINES:
        logger.debug(
            "Slide %d of %d: dropping %d body lines over the %d line limit",
            position, total, len(body_lines) - MAX_BODY_LINES, MAX_BODY_LINES,
        )
    body = TextBlock(
        lines=tuple(body_lines[:MAX_BODY_LINES]),
        x=page.padding,
        y=y,
        line_height=page.body_line_height,
        font_name=body_font,
        font_size=body_size,
        color=hex_to_rgb(colors.text),
    )

    key_point = None
    if slide.key_point:
        accent = hex_to_rgb(colors.accent)
        kp_font = resolve_font(style.fonts.key_point, bold=True)
        kp_size = sizes.key_point * scale
        kp_lines = wrap_text(
            slide.key_point, kp_font, kp_size,
            (page.content_width - page.key_point_indent * 2) * page.unit,
        )
        box_top = page.height - page.padding - page.key_point_bottom_offset
        box_height = len(kp_lines) * page.key_point_line_height + page.key_point_box_padding * 2
        key_point = KeyPointCallout(
            accent_bar=Rect(page.padding, box_top, page.accent_bar_width, box_height, accent),
            box=Rect(
                page.padding + page.accent_bar_width,
                box_top,
                page.content_width - page.accent_bar_width,
                box_height,
                lighten(accent),
            ),
            text=TextBlock(
                lines=tuple(kp_lines),
                x=page.padding + page.key_point_indent,
                y=box_top + page.key_point_box_padding,
                line_height=page.key_point_line_height,
                font_name=kp_font,
                font_size=kp_size,
                color=hex_to_rgb(colors.text),
            ),
        )

    return SlidePlan(
        slide_number=position,
        background=background,
        label=label,
        title=title,
        body=body,
        key_point=key_point,
    )


# ============================================
# DOCUMENT COMPOSITION
# ============================================
SlidesInput = Iterable[Union[Slide, dict]]


def compose_carousel(slides: SlidesInput, style: Template, page: PageConfig = EXPORT_PAGE) -> list[SlidePlan]:
    """Lay out every slide in order. Raises EmptyCarouselError for no slides."""
    slides = parse_slides(slides)
    if not slides:
        raise EmptyCarouselError("Carousel has no slides")
    total = len(slides)
    return [layout_slide(slide, i + 1, total, style, page) for i, slide in enumerate(slides)]


def _fill(pdf: canvas.Canvas, color: Color) -> None:
    pdf.setFillColorRGB(*(channel / 255 for channel in color))


def _paint(pdf: canvas.Canvas, plan: SlidePlan, page: PageConfig) -> None:
    u = page.unit
    for op in plan.operations():
        _fill(pdf, op.color)
        if isinstance(op, Rect):
            pdf.rect(op.x * u, (page.height - op.y - op.height) * u, op.width * u, op.height * u, stroke=0, fill=1)
            continue
        pdf.setFont(op.font_name, op.font_size)
        for line, baseline in zip(op.lines, op.baselines()):
            pdf.drawString(op.x * u, (page.height - baseline) * u, line)


def render_carousel_document(
    slides: SlidesInput,
    style: Template,
    title: Optional[str],
    page: PageConfig = EXPORT_PAGE,
) -> bytes:
    """
    Render slides to a PDF, one page per slide.

    The output is byte-for-byte reproducible for identical inputs.
    """
    plans = compose_carousel(slides, style, page)

    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=page.pagesize, invariant=1)
    pdf.setTitle(title or "Carousel")
    for plan in plans:
        _paint(pdf, plan, page)
        pdf.showPage()
    pdf.save()

    logger.info("Rendered %d-page %s carousel (%s template)", len(plans), page.name, style.id)
    return buffer.getvalue()
