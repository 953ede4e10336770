"""
Slide model and slide editing operations.

A carousel's slides are an ordered list whose slide_number always equals
position + 1. Every operation here returns a new, renumbered list.
"""

from typing import Any, Iterable, Optional, Sequence

from pydantic import BaseModel, field_validator


class SlideEditError(ValueError):
    """Base class for rejected slide edits."""


class LastSlideError(SlideEditError):
    """A carousel must keep at least one slide."""


class SlideIndexError(SlideEditError):
    """Slide index outside the carousel."""


class Slide(BaseModel):
    slide_number: int = 1
    title: str = ""
    body: str = ""
    key_point: Optional[str] = None

    @field_validator("title", "body", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value


def parse_slides(raw: Optional[Iterable[Any]]) -> list[Slide]:
    """Load slides from stored JSON (list of dicts or Slide objects)."""
    if not raw:
        return []
    return [s if isinstance(s, Slide) else Slide.model_validate(s) for s in raw]


def dump_slides(slides: Sequence[Slide]) -> list[dict]:
    return [s.model_dump() for s in slides]


def renumber_slides(slides: Sequence[Slide]) -> list[Slide]:
    return [s.model_copy(update={"slide_number": i + 1}) for i, s in enumerate(slides)]


def _check_index(slides: Sequence[Slide], index: int) -> None:
    if not 0 <= index < len(slides):
        raise SlideIndexError(f"Slide index {index} out of range (carousel has {len(slides)} slides)")


def add_slide(
    slides: Sequence[Slide],
    slide: Optional[Slide] = None,
    position: Optional[int] = None,
) -> list[Slide]:
    """Insert a slide at position (default: append a blank slide)."""
    new_slides = list(slides)
    if position is None:
        position = len(new_slides)
    if not 0 <= position <= len(new_slides):
        raise SlideIndexError(f"Cannot insert at position {position}")
    new_slides.insert(position, slide or Slide())
    return renumber_slides(new_slides)


def remove_slide(slides: Sequence[Slide], index: int) -> list[Slide]:
    if len(slides) <= 1:
        raise LastSlideError("Cannot delete the last slide")
    _check_index(slides, index)
    new_slides = list(slides)
    del new_slides[index]
    return renumber_slides(new_slides)


def move_slide(slides: Sequence[Slide], from_index: int, to_index: int) -> list[Slide]:
    _check_index(slides, from_index)
    _check_index(slides, to_index)
    new_slides = list(slides)
    new_slides.insert(to_index, new_slides.pop(from_index))
    return renumber_slides(new_slides)


def update_slide(slides: Sequence[Slide], index: int, **fields) -> list[Slide]:
    """Edit title, body or key_point of one slide."""
    _check_index(slides, index)
    unknown = set(fields) - {"title", "body", "key_point"}
    if unknown:
        raise SlideEditError(f"Unknown slide fields: {', '.join(sorted(unknown))}")
    new_slides = list(slides)
    merged = {**new_slides[index].model_dump(), **fields}
    new_slides[index] = Slide.model_validate(merged)
    return renumber_slides(new_slides)
