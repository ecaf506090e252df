"""
HTTP routes for the storybook API.

Every content mutation loads the whole locale collection, reconciles the
affected story or card in memory and writes the collection back. Uploads
are stored before reconciliation so a failed upload writes nothing.
Form parsing stays on the event loop; storage and database calls run in
the threadpool.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from storybook import auth
from storybook.config import Settings, get_settings
from storybook.db import DbClient, SubscriberRecord
from storybook.dependencies import get_db_client, get_image_intake
from storybook.documents import SIMPLE_AGE_BANDS, Collection, Story, find_by_id, remove_by_id
from storybook.errors import NotFoundError, ValidationError
from storybook.forms import read_submission
from storybook.intake import ImageIntake
from storybook.languages import text_value
from storybook.reconcile import (
    reconcile_age_card,
    reconcile_card,
    reconcile_story,
    upsert_by_id,
)
from storybook.schemas import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PartResponse,
    StoryResponse,
    SubscribeRequest,
    SubscribersResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")


def _load_collection(db: DbClient, settings: Settings) -> Collection:
    collection = db.find_collection(settings.locale_key)
    if collection is None:
        raise NotFoundError("No stories found")
    return collection


def _find_story(collection: Collection, story_id: Optional[str]) -> Story:
    story = collection.find_story(story_id)
    if story is None:
        raise NotFoundError("Story not found")
    return story


# Stories


@router.get("/stories")
def list_stories(
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    collection = db.find_collection(settings.locale_key)
    if collection is None:
        return []
    return [story.as_dict() for story in collection.stories]


@router.post("/stories", response_model=StoryResponse, status_code=201)
async def create_story(
    request: Request,
    admin: Optional[str] = Depends(auth.require_admin),
    db: DbClient = Depends(get_db_client),
    intake: ImageIntake = Depends(get_image_intake),
    settings: Settings = Depends(get_settings),
):
    fields, uploads = await read_submission(request)
    return await run_in_threadpool(
        _add_story, fields, uploads, admin, db, intake, settings
    )


def _add_story(fields, uploads, admin, db, intake, settings) -> StoryResponse:
    urls = intake.store_all(uploads)
    story = reconcile_story(
        None, fields, urls, default_languages=settings.default_languages
    )

    collection = db.find_collection(settings.locale_key)
    if collection is None:
        logger.info("Creating story collection %s", settings.locale_key)
        db.create_collection(settings.locale_key, [story])
    else:
        collection.stories.append(story)
        db.save_collection(collection)

    logger.info("Story %s added by %s", story.id, admin)
    return StoryResponse(message="Story added", story=story.as_dict())


@router.put("/stories/{story_id}", response_model=StoryResponse)
async def update_story(
    story_id: str,
    request: Request,
    admin: Optional[str] = Depends(auth.require_admin),
    db: DbClient = Depends(get_db_client),
    intake: ImageIntake = Depends(get_image_intake),
    settings: Settings = Depends(get_settings),
):
    fields, uploads = await read_submission(request)
    return await run_in_threadpool(
        _update_story, story_id, fields, uploads, admin, db, intake, settings
    )


def _update_story(story_id, fields, uploads, admin, db, intake, settings) -> StoryResponse:
    collection = _load_collection(db, settings)
    existing = _find_story(collection, story_id)

    urls = intake.store_all(uploads)
    story = reconcile_story(
        existing, fields, urls, default_languages=settings.default_languages
    )
    upsert_by_id(collection.stories, story, story.id)
    db.save_collection(collection)

    logger.info("Story %s updated by %s", story.id, admin)
    return StoryResponse(message="Story updated", story=story.as_dict())


@router.delete("/stories/{story_id}", response_model=MessageResponse)
def delete_story(
    story_id: str,
    admin: Optional[str] = Depends(auth.require_admin),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    collection = _load_collection(db, settings)
    if not remove_by_id(collection.stories, story_id):
        raise NotFoundError("Story not found")
    db.save_collection(collection)
    logger.info("Story %s deleted by %s", story_id, admin)
    return MessageResponse(message="Story deleted successfully")


# Parts (cards of the main story track)


@router.post("/parts", response_model=PartResponse, status_code=201)
async def save_part(
    request: Request,
    admin: Optional[str] = Depends(auth.require_admin),
    db: DbClient = Depends(get_db_client),
    intake: ImageIntake = Depends(get_image_intake),
    settings: Settings = Depends(get_settings),
):
    """Add a card, or replace the card whose id matches ``partId``.

    An unknown ``partId`` appends a new card carrying that id.
    """
    fields, uploads = await read_submission(request)
    return await run_in_threadpool(
        _save_part, fields, uploads, admin, db, intake, settings
    )


def _save_part(fields, uploads, admin, db, intake, settings) -> PartResponse:
    story_id = text_value(fields, "storyId")
    if not story_id:
        raise ValidationError("storyId is required", field="storyId")

    collection = _load_collection(db, settings)
    story = _find_story(collection, story_id)
    part_id = text_value(fields, "partId")
    existing = find_by_id(story.cards, part_id)

    urls = intake.store_all(uploads)
    card = reconcile_card(
        existing,
        fields,
        urls,
        story_languages=story.active_languages(),
        default_languages=story.active_languages(),
    )
    index, replaced = upsert_by_id(story.cards, card, part_id)
    db.save_collection(collection)

    logger.info(
        "Part %s %s at position %d of story %s by %s",
        card.id,
        "replaced" if replaced else "appended",
        index,
        story.id,
        admin,
    )
    return PartResponse(
        message="Part updated" if part_id else "Part added", part=card.as_dict()
    )


@router.delete("/parts/{story_id}/{part_id}", response_model=MessageResponse)
def delete_part(
    story_id: str,
    part_id: str,
    admin: Optional[str] = Depends(auth.require_admin),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    collection = _load_collection(db, settings)
    story = _find_story(collection, story_id)
    remove_by_id(story.cards, part_id)
    db.save_collection(collection)
    logger.info("Part %s deleted from story %s by %s", part_id, story_id, admin)
    return MessageResponse(message="Part deleted successfully")


# Age-banded cards


@router.post(
    "/stories/{story_id}/age/{band}/cards",
    response_model=PartResponse,
    status_code=201,
)
async def save_age_card(
    story_id: str,
    band: str,
    request: Request,
    admin: Optional[str] = Depends(auth.require_admin),
    db: DbClient = Depends(get_db_client),
    intake: ImageIntake = Depends(get_image_intake),
    settings: Settings = Depends(get_settings),
):
    fields, uploads = await read_submission(request)
    return await run_in_threadpool(
        _save_age_card, story_id, band, fields, uploads, admin, db, intake, settings
    )


def _save_age_card(
    story_id, band, fields, uploads, admin, db, intake, settings
) -> PartResponse:
    collection = _load_collection(db, settings)
    story = _find_story(collection, story_id)
    cards = story.band(band)

    part_id = text_value(fields, "partId")
    existing = find_by_id(cards, part_id)

    urls = intake.store_all(uploads)
    reconcile = reconcile_age_card if band in SIMPLE_AGE_BANDS else reconcile_card
    card = reconcile(
        existing,
        fields,
        urls,
        story_languages=story.active_languages(),
        default_languages=story.active_languages(),
    )
    index, replaced = upsert_by_id(cards, card, part_id)
    db.save_collection(collection)

    logger.info(
        "%s card %s %s at position %d of story %s by %s",
        band,
        card.id,
        "replaced" if replaced else "appended",
        index,
        story.id,
        admin,
    )
    return PartResponse(
        message="Part updated" if part_id else "Part added", part=card.as_dict()
    )


@router.delete(
    "/stories/{story_id}/age/{band}/cards/{card_id}",
    response_model=MessageResponse,
)
def delete_age_card(
    story_id: str,
    band: str,
    card_id: str,
    admin: Optional[str] = Depends(auth.require_admin),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    collection = _load_collection(db, settings)
    story = _find_story(collection, story_id)
    remove_by_id(story.band(band), card_id)
    db.save_collection(collection)
    logger.info("%s card %s deleted from story %s by %s", band, card_id, story_id, admin)
    return MessageResponse(message="Part deleted successfully")


# Auth


@router.post("/auth/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    token = auth.login(db, payload.username, payload.password, settings)
    return LoginResponse(token=token)


# Subscribers


@router.post(
    "/subscribers/new-subscribe", response_model=MessageResponse, status_code=201
)
def subscribe(payload: SubscribeRequest, db: DbClient = Depends(get_db_client)):
    email = (payload.email or "").strip().lower()
    if not email:
        raise ValidationError("Email is required", field="email")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Please enter a valid email address", field="email")
    if db.find_subscriber(email) or not db.add_subscriber(SubscriberRecord(email=email)):
        raise ValidationError("Email is already subscribed", field="email")
    logger.info("New subscriber added")
    return MessageResponse(message="Successfully subscribed")


@router.get("/subscribers", response_model=SubscribersResponse)
def list_subscribers(
    admin: Optional[str] = Depends(auth.require_admin),
    db: DbClient = Depends(get_db_client),
):
    return SubscribersResponse(
        emails=[subscriber.email for subscriber in db.list_subscribers()]
    )
