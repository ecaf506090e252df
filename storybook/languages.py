"""
Per-language text values.

A LanguageText is a plain ``{code: text}`` dict. A key is present exactly
when the language is active for the entity that owns the field; an active
language may hold an empty string.

Form submissions carry these values as flat fields named
``<base><Lang>[<index>]``, e.g. ``titleEn`` or ``headingTe0``.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from storybook.errors import ValidationError

SUPPORTED_LANGUAGES = ("en", "te", "hi")

LanguageText = Dict[str, str]


def field_name(base: str, lang: str, index: Optional[int] = None) -> str:
    name = f"{base}{lang.capitalize()}"
    if index is None:
        return name
    return f"{name}{index}"


def text_value(fields: Mapping[str, Any], key: str) -> Optional[str]:
    """Return the stripped string value of ``key`` or None when absent.

    Repeated form fields arrive as lists; the last value wins.
    """
    value = fields.get(key)
    if isinstance(value, (list, tuple)):
        value = value[-1] if value else None
    if value is None:
        return None
    return str(value).strip()


def supplied_values(
    fields: Mapping[str, Any],
    base: str,
    languages: Iterable[str],
    index: Optional[int] = None,
) -> Dict[str, str]:
    supplied = {}
    for lang in languages:
        value = text_value(fields, field_name(base, lang, index))
        if value is not None:
            supplied[lang] = value
    return supplied


def parse_languages(raw: Any, default: Sequence[str]) -> List[str]:
    """Normalize a submitted language list.

    Accepts a list (repeated form field), a JSON array string or a
    comma-separated string. ``None`` means "not supplied" and yields
    ``default``. The result, supplied or defaulted, must name at least one
    supported language.
    """
    if raw is None:
        items = list(default)
    elif isinstance(raw, str):
        stripped = raw.strip()
        if stripped.startswith("["):
            try:
                items = json.loads(stripped)
            except json.JSONDecodeError as exc:
                raise ValidationError(
                    "languages must be a JSON array or comma-separated list",
                    field="languages",
                    details=str(exc),
                ) from exc
            if not isinstance(items, list):
                raise ValidationError(
                    "languages must be a list", field="languages"
                )
        else:
            items = stripped.split(",")
    else:
        items = []
        for entry in raw:
            items.extend(str(entry).split(","))

    languages: List[str] = []
    for item in items:
        code = str(item).strip().lower()
        if not code or code in languages:
            continue
        if code not in SUPPORTED_LANGUAGES:
            raise ValidationError(
                f"Unsupported language '{code}'",
                field="languages",
                language=code,
            )
        languages.append(code)

    if not languages:
        raise ValidationError(
            "At least one language must be selected", field="languages"
        )
    return languages


def build_language_text(
    active: Sequence[str],
    supplied: Mapping[str, str],
    existing: Optional[Mapping[str, str]] = None,
    *,
    required: bool = False,
    field: str = "",
) -> LanguageText:
    """Resolve one LanguageText field.

    For each active language the supplied non-empty value wins, then the
    existing value, then an empty string. Inactive languages are dropped.
    """
    existing = existing or {}
    text: LanguageText = {}
    for lang in active:
        value = (supplied.get(lang) or "").strip()
        if not value:
            value = existing.get(lang) or ""
        if required and not value.strip():
            raise ValidationError(
                f"{field} is required for language '{lang}'",
                field=field,
                language=lang,
            )
        text[lang] = value
    return text
