"""
Records for the locale collection document.

Collection -> stories -> cards (per age band) -> sub-parts. Records are
serialized with the document's wire names via ``as_dict`` / ``from_dict``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, TypeVar

from storybook.errors import NotFoundError
from storybook.languages import LanguageText

AGE_BANDS = ("toddler", "kids", "child", "teen")
# Bands whose cards use the short partContent layout instead of sub-parts.
SIMPLE_AGE_BANDS = ("toddler", "kids")

T = TypeVar("T")


def _language_text(value: Any) -> LanguageText:
    if not isinstance(value, dict):
        return {}
    return {
        str(lang): "" if text is None else str(text)
        for lang, text in value.items()
    }


def _card_list(container: Any) -> list:
    if not isinstance(container, dict):
        return []
    return list(container.get("card") or [])


def find_by_id(items: Sequence[T], item_id: Optional[str]) -> Optional[T]:
    if not item_id:
        return None
    for item in items:
        if item.id == item_id:
            return item
    return None


def remove_by_id(items: List[T], item_id: str) -> bool:
    """Drop every item with ``item_id``; return whether anything was removed."""
    kept = [item for item in items if item.id != item_id]
    removed = len(kept) != len(items)
    items[:] = kept
    return removed


@dataclass
class SubPart:
    id: str
    heading: LanguageText = field(default_factory=dict)
    quote: LanguageText = field(default_factory=dict)
    text: LanguageText = field(default_factory=dict)
    image: str = ""

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "heading": dict(self.heading),
            "quote": dict(self.quote),
            "image": self.image,
            "text": dict(self.text),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SubPart":
        return cls(
            id=str(data.get("id") or ""),
            heading=_language_text(data.get("heading")),
            quote=_language_text(data.get("quote")),
            text=_language_text(data.get("text")),
            image=data.get("image") or "",
        )


@dataclass
class Card:
    id: str
    title: LanguageText = field(default_factory=dict)
    date: LanguageText = field(default_factory=dict)
    description: LanguageText = field(default_factory=dict)
    time_to_read: LanguageText = field(default_factory=dict)
    story_type: LanguageText = field(default_factory=dict)
    thumbnail_image: str = ""
    cover_image: str = ""
    sub_parts: List[SubPart] = field(default_factory=list)

    def active_languages(self) -> List[str]:
        return list(self.title)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": dict(self.title),
            "date": dict(self.date),
            "thumbnailImage": self.thumbnail_image,
            "coverImage": self.cover_image,
            "description": dict(self.description),
            "timeToRead": dict(self.time_to_read),
            "storyType": dict(self.story_type),
            "part": [sub_part.as_dict() for sub_part in self.sub_parts],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Card":
        return cls(
            id=str(data.get("id") or ""),
            title=_language_text(data.get("title")),
            date=_language_text(data.get("date")),
            description=_language_text(data.get("description")),
            time_to_read=_language_text(data.get("timeToRead")),
            story_type=_language_text(data.get("storyType")),
            thumbnail_image=data.get("thumbnailImage") or "",
            cover_image=data.get("coverImage") or "",
            sub_parts=[SubPart.from_dict(item) for item in data.get("part") or []],
        )


@dataclass
class AgePart:
    id: str
    one_line_text: LanguageText = field(default_factory=dict)
    heading_text: LanguageText = field(default_factory=dict)
    image_url: str = ""

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "oneLineText": dict(self.one_line_text),
            "headingText": dict(self.heading_text),
            "imageUrl": self.image_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AgePart":
        return cls(
            id=str(data.get("id") or ""),
            one_line_text=_language_text(data.get("oneLineText")),
            heading_text=_language_text(data.get("headingText")),
            image_url=data.get("imageUrl") or "",
        )


@dataclass
class AgeCard:
    id: str
    title: LanguageText = field(default_factory=dict)
    description: LanguageText = field(default_factory=dict)
    time_to_read: LanguageText = field(default_factory=dict)
    story_type: LanguageText = field(default_factory=dict)
    thumbnail_image: str = ""
    cover_image: str = ""
    part_content: List[AgePart] = field(default_factory=list)

    def active_languages(self) -> List[str]:
        return list(self.title)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": dict(self.title),
            "thumbnailImage": self.thumbnail_image,
            "coverImage": self.cover_image,
            "description": dict(self.description),
            "timeToRead": dict(self.time_to_read),
            "storyType": dict(self.story_type),
            "partContent": [part.as_dict() for part in self.part_content],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AgeCard":
        return cls(
            id=str(data.get("id") or ""),
            title=_language_text(data.get("title")),
            description=_language_text(data.get("description")),
            time_to_read=_language_text(data.get("timeToRead")),
            story_type=_language_text(data.get("storyType")),
            thumbnail_image=data.get("thumbnailImage") or "",
            cover_image=data.get("coverImage") or "",
            part_content=[
                AgePart.from_dict(item) for item in data.get("partContent") or []
            ],
        )


@dataclass
class Story:
    id: str
    name: LanguageText = field(default_factory=dict)
    languages: List[str] = field(default_factory=list)
    story_cover_image: str = ""
    banner_image: str = ""
    cards: List[Card] = field(default_factory=list)
    toddler: List[AgeCard] = field(default_factory=list)
    kids: List[AgeCard] = field(default_factory=list)
    child: List[Card] = field(default_factory=list)
    teen: List[Card] = field(default_factory=list)

    def active_languages(self) -> List[str]:
        # Stories written before language selection existed only carry names.
        return list(self.languages) or list(self.name)

    def band(self, name: str) -> list:
        if name not in AGE_BANDS:
            raise NotFoundError(f"Unknown age band '{name}'")
        return getattr(self, name)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": dict(self.name),
            "languages": list(self.languages),
            "storyCoverImage": self.story_cover_image,
            "bannerImage": self.banner_image,
            "parts": {"card": [card.as_dict() for card in self.cards]},
            "toddler": {"card": [card.as_dict() for card in self.toddler]},
            "kids": {"card": [card.as_dict() for card in self.kids]},
            "child": {"card": [card.as_dict() for card in self.child]},
            "teen": {"card": [card.as_dict() for card in self.teen]},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Story":
        return cls(
            id=str(data.get("id") or ""),
            name=_language_text(data.get("name")),
            languages=[str(lang) for lang in data.get("languages") or []],
            story_cover_image=data.get("storyCoverImage") or "",
            banner_image=data.get("bannerImage") or data.get("bannerImge") or "",
            cards=[Card.from_dict(item) for item in _card_list(data.get("parts"))],
            toddler=[
                AgeCard.from_dict(item) for item in _card_list(data.get("toddler"))
            ],
            kids=[AgeCard.from_dict(item) for item in _card_list(data.get("kids"))],
            child=[Card.from_dict(item) for item in _card_list(data.get("child"))],
            teen=[Card.from_dict(item) for item in _card_list(data.get("teen"))],
        )


@dataclass
class Collection:
    """The single document holding every story for one locale."""

    language: str
    stories: List[Story] = field(default_factory=list)

    def find_story(self, story_id: Optional[str]) -> Optional[Story]:
        return find_by_id(self.stories, story_id)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "stories": [story.as_dict() for story in self.stories],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Collection":
        return cls(
            language=str(data.get("language") or ""),
            stories=[Story.from_dict(item) for item in data.get("stories") or []],
        )
