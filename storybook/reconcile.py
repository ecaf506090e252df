"""
Reconcilers for stories, cards and sub-parts.

Each reconciler builds the next version of a record from the previous one
(or None) and a submitted flat field-set. Text fields follow the
LanguageText rules in ``storybook.languages``; images resolve as uploaded
file > supplied URL > existing URL > empty string.

Nothing here performs I/O. Uploaded images are stored by the caller first
and handed in as ``uploads``, a ``{fieldname: url}`` mapping.
"""

from __future__ import annotations

import json
import uuid
from typing import (
    Any,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from storybook.documents import AgeCard, AgePart, Card, Story, SubPart
from storybook.errors import ValidationError
from storybook.languages import (
    LanguageText,
    build_language_text,
    field_name,
    parse_languages,
    supplied_values,
    text_value,
)

Fields = Mapping[str, Any]
Uploads = Mapping[str, str]

T = TypeVar("T")


def new_id() -> str:
    return str(uuid.uuid4())


def resolve_image(
    name: str,
    fields: Fields,
    uploads: Uploads,
    existing: str = "",
    aliases: Sequence[str] = (),
) -> str:
    keys = (name, *aliases)
    for key in keys:
        if uploads.get(key):
            return uploads[key]
    for key in keys:
        value = text_value(fields, key)
        if value:
            return value
    return existing or ""


def upsert_by_id(items: List[T], item: T, item_id: Optional[str]) -> Tuple[int, bool]:
    """Replace the entry whose id equals ``item_id`` in place, else append.

    Returns the position of ``item`` and whether an entry was replaced. An
    unknown ``item_id`` appends rather than failing.
    """
    if item_id:
        for index, current in enumerate(items):
            if current.id == item_id:
                items[index] = item
                return index, True
    items.append(item)
    return len(items) - 1, False


def _resolve_languages(
    fields: Fields,
    default: Sequence[str],
    story_languages: Optional[Sequence[str]] = None,
) -> List[str]:
    languages = parse_languages(fields.get("languages"), default)
    if story_languages is not None:
        outside = [lang for lang in languages if lang not in story_languages]
        if outside:
            raise ValidationError(
                "Part languages must be a subset of the story languages; "
                f"not enabled on the story: {', '.join(outside)}",
                field="languages",
                language=outside[0],
            )
    return languages


def _text_field(
    fields: Fields,
    base: str,
    languages: Sequence[str],
    existing: Optional[LanguageText],
    *,
    required: bool = False,
    index: Optional[int] = None,
) -> LanguageText:
    return build_language_text(
        languages,
        supplied_values(fields, base, languages, index),
        existing,
        required=required,
        field=base if index is None else f"{base}{index}",
    )


def _indexed_present(
    fields: Fields, bases: Sequence[str], languages: Sequence[str], index: int
) -> bool:
    return any(
        fields.get(field_name(base, lang, index)) is not None
        for base in bases
        for lang in languages
    )


def _ensure_unique_ids(items: Sequence[Any], field: str) -> None:
    seen = set()
    for item in items:
        if item.id in seen:
            raise ValidationError(f"Duplicate id '{item.id}'", field=field)
        seen.add(item.id)


def build_sub_parts(
    languages: Sequence[str],
    fields: Fields,
    uploads: Uploads,
    existing: Optional[Sequence[SubPart]] = None,
) -> Iterator[SubPart]:
    """Yield sub-parts from indexed fields ``heading<Lang><i>`` and friends.

    The scan stops at the first index where no active language has a
    heading field, so a gap ends the list. Existing sub-parts are matched
    by position.
    """
    existing = existing or []
    index = 0
    while _indexed_present(fields, ("heading",), languages, index):
        prior = existing[index] if index < len(existing) else None
        yield SubPart(
            id=text_value(fields, f"id{index}") or (prior.id if prior else new_id()),
            heading=_text_field(
                fields,
                "heading",
                languages,
                prior.heading if prior else None,
                required=True,
                index=index,
            ),
            quote=_text_field(
                fields, "quote", languages, prior.quote if prior else None, index=index
            ),
            text=_text_field(
                fields,
                "text",
                languages,
                prior.text if prior else None,
                required=True,
                index=index,
            ),
            image=resolve_image(
                f"partImage{index}", fields, uploads, prior.image if prior else ""
            ),
        )
        index += 1


def _item_text(value: Any) -> dict:
    if not isinstance(value, Mapping):
        return {}
    return {str(lang): str(text) for lang, text in value.items() if text is not None}


def sub_parts_from_list(
    languages: Sequence[str],
    items: Sequence[Any],
    uploads: Uploads,
    existing: Optional[Sequence[SubPart]] = None,
) -> List[SubPart]:
    """Build sub-parts from an explicit ordered list of objects."""
    existing = existing or []
    sub_parts = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ValidationError(
                f"subParts[{index}] must be an object", field="subParts"
            )
        prior = existing[index] if index < len(existing) else None
        image = uploads.get(f"partImage{index}") or str(item.get("image") or "").strip()
        sub_parts.append(
            SubPart(
                id=str(item.get("id") or "").strip()
                or (prior.id if prior else new_id()),
                heading=build_language_text(
                    languages,
                    _item_text(item.get("heading")),
                    prior.heading if prior else None,
                    required=True,
                    field=f"subParts[{index}].heading",
                ),
                quote=build_language_text(
                    languages,
                    _item_text(item.get("quote")),
                    prior.quote if prior else None,
                    field=f"subParts[{index}].quote",
                ),
                text=build_language_text(
                    languages,
                    _item_text(item.get("text")),
                    prior.text if prior else None,
                    required=True,
                    field=f"subParts[{index}].text",
                ),
                image=image or (prior.image if prior else ""),
            )
        )
    return sub_parts


def _sub_part_payload(fields: Fields) -> Optional[list]:
    raw = text_value(fields, "subParts")
    if raw is None:
        return None
    try:
        items = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError(
            "subParts must be a JSON array", field="subParts", details=str(exc)
        ) from exc
    if not isinstance(items, list):
        raise ValidationError("subParts must be a JSON array", field="subParts")
    return items


def reconcile_card(
    existing: Optional[Card],
    fields: Fields,
    uploads: Uploads,
    *,
    story_languages: Sequence[str],
    default_languages: Sequence[str],
) -> Card:
    """Build the next version of a card.

    ``partId`` in the submission keeps the card's identity; without it a new
    id is generated. Languages come from the submission, then the existing
    card, then ``default_languages``, and must all be enabled on the story.
    """
    default = (existing.active_languages() if existing else None) or default_languages
    languages = _resolve_languages(fields, default, story_languages)
    prior = existing or Card(id="")

    items = _sub_part_payload(fields)
    if items is None:
        sub_parts = list(build_sub_parts(languages, fields, uploads, prior.sub_parts))
    else:
        sub_parts = sub_parts_from_list(languages, items, uploads, prior.sub_parts)
    _ensure_unique_ids(sub_parts, "subParts")

    return Card(
        id=text_value(fields, "partId") or prior.id or new_id(),
        title=_text_field(fields, "title", languages, prior.title, required=True),
        date=_text_field(fields, "date", languages, prior.date),
        description=_text_field(fields, "description", languages, prior.description),
        time_to_read=_text_field(fields, "timeToRead", languages, prior.time_to_read),
        story_type=_text_field(fields, "storyType", languages, prior.story_type),
        thumbnail_image=resolve_image(
            "thumbnailImage", fields, uploads, prior.thumbnail_image
        ),
        cover_image=resolve_image("coverImage", fields, uploads, prior.cover_image),
        sub_parts=sub_parts,
    )


def build_age_parts(
    languages: Sequence[str],
    fields: Fields,
    uploads: Uploads,
    existing: Optional[Sequence[AgePart]] = None,
) -> Iterator[AgePart]:
    existing = existing or []
    index = 0
    while _indexed_present(fields, ("oneLineText", "headingText"), languages, index):
        prior = existing[index] if index < len(existing) else None
        yield AgePart(
            id=text_value(fields, f"id{index}") or (prior.id if prior else new_id()),
            one_line_text=_text_field(
                fields,
                "oneLineText",
                languages,
                prior.one_line_text if prior else None,
                index=index,
            ),
            heading_text=_text_field(
                fields,
                "headingText",
                languages,
                prior.heading_text if prior else None,
                index=index,
            ),
            image_url=resolve_image(
                f"imageUrl{index}", fields, uploads, prior.image_url if prior else ""
            ),
        )
        index += 1


def reconcile_age_card(
    existing: Optional[AgeCard],
    fields: Fields,
    uploads: Uploads,
    *,
    story_languages: Sequence[str],
    default_languages: Sequence[str],
) -> AgeCard:
    default = (existing.active_languages() if existing else None) or default_languages
    languages = _resolve_languages(fields, default, story_languages)
    prior = existing or AgeCard(id="")

    part_content = list(
        build_age_parts(languages, fields, uploads, prior.part_content)
    )
    _ensure_unique_ids(part_content, "partContent")

    return AgeCard(
        id=text_value(fields, "partId") or prior.id or new_id(),
        title=_text_field(fields, "title", languages, prior.title, required=True),
        description=_text_field(fields, "description", languages, prior.description),
        time_to_read=_text_field(fields, "timeToRead", languages, prior.time_to_read),
        story_type=_text_field(fields, "storyType", languages, prior.story_type),
        thumbnail_image=resolve_image(
            "thumbnailImage", fields, uploads, prior.thumbnail_image
        ),
        cover_image=resolve_image("coverImage", fields, uploads, prior.cover_image),
        part_content=part_content,
    )


def reconcile_story(
    existing: Optional[Story],
    fields: Fields,
    uploads: Uploads,
    *,
    default_languages: Sequence[str],
) -> Story:
    """Build the next version of a story's own fields.

    A supplied language list replaces the previous one wholesale. Cards are
    carried over untouched, even when languages were removed.
    """
    default = (existing.active_languages() if existing else None) or default_languages
    languages = _resolve_languages(fields, default)
    prior = existing or Story(id=new_id())

    return Story(
        id=prior.id,
        name=_text_field(fields, "name", languages, prior.name, required=True),
        languages=languages,
        story_cover_image=resolve_image(
            "storyCoverImage", fields, uploads, prior.story_cover_image
        ),
        banner_image=resolve_image(
            "bannerImage",
            fields,
            uploads,
            prior.banner_image,
            aliases=("bannerImge",),
        ),
        cards=list(prior.cards),
        toddler=list(prior.toddler),
        kids=list(prior.kids),
        child=list(prior.child),
        teen=list(prior.teen),
    )
