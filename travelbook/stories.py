"""
Owner-scoped repository for travel stories.

Every read and write is filtered by the caller's account id. A story that
exists but belongs to someone else is reported exactly like a missing one.
Listings always put favourites first.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

from travelbook.db import DbClient, StoryRecord
from travelbook.errors import NotFound, ValidationError

STORY_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")
_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")


def parse_epoch_millis(value: Any, field_name: str) -> datetime:
    """Convert an epoch-millisecond value (number or numeric string) to a UTC datetime."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} must be a timestamp in milliseconds")
    if isinstance(value, str):
        value = value.strip()
        if not _INTEGER_PATTERN.match(value):
            raise ValidationError(f"{field_name} must be a timestamp in milliseconds")
        value = int(value)
    if not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be a timestamp in milliseconds")
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValidationError(f"{field_name} is out of range") from exc


def _clean_locations(visited_locations: Optional[list[str]]) -> list[str]:
    if not visited_locations:
        return []
    return [loc.strip() for loc in visited_locations if loc and loc.strip()]


def _matches(story: StoryRecord, needle: str) -> bool:
    if needle in story.title.casefold() or needle in story.story.casefold():
        return True
    return any(needle in loc.casefold() for loc in story.visited_locations)


class StoryRepository:
    def __init__(self, db: DbClient, placeholder_image_url: str):
        self.db = db
        self.placeholder_image_url = placeholder_image_url

    def _require_owned(self, owner_id: str, story_id: str) -> StoryRecord:
        story = self.db.get_owned_story(owner_id, story_id)
        if story is None:
            raise NotFound("Travel story not found")
        return story

    def create(
        self,
        owner_id: str,
        title: Optional[str],
        story: Optional[str],
        visited_locations: Optional[list[str]],
        image_url: Optional[str],
        visited_date: Any,
    ) -> StoryRecord:
        locations = _clean_locations(visited_locations)
        if (
            not (title or "").strip()
            or not (story or "").strip()
            or not locations
            or not (image_url or "").strip()
            or visited_date in (None, "")
        ):
            raise ValidationError("All fields are required")
        return self.db.create_story(
            owner_id=owner_id,
            title=title.strip(),
            story=story,
            visited_locations=locations,
            image_url=image_url.strip(),
            visited_date=parse_epoch_millis(visited_date, "visitedDate"),
        )

    def list_stories(self, owner_id: str) -> list[StoryRecord]:
        return self.db.list_stories(owner_id)

    def update(
        self,
        owner_id: str,
        story_id: str,
        title: Optional[str],
        story: Optional[str],
        visited_locations: Optional[list[str]],
        image_url: Optional[str],
        visited_date: Any,
    ) -> StoryRecord:
        locations = _clean_locations(visited_locations)
        if (
            not (title or "").strip()
            or not (story or "").strip()
            or not locations
            or visited_date in (None, "")
        ):
            raise ValidationError("All fields are required")
        parsed_date = parse_epoch_millis(visited_date, "visitedDate")

        record = self._require_owned(owner_id, story_id)
        record.title = title.strip()
        record.story = story
        record.visited_locations = locations
        # A missing photo means the placeholder, never the previous photo.
        record.image_url = (image_url or "").strip() or self.placeholder_image_url
        record.visited_date = parsed_date
        self.db.update_story(record)
        return record

    def set_favourite(self, owner_id: str, story_id: str, is_favourite: bool) -> StoryRecord:
        record = self._require_owned(owner_id, story_id)
        record.is_favourite = bool(is_favourite)
        self.db.update_story(record)
        return record

    def delete(self, owner_id: str, story_id: str) -> str:
        """Remove the story and return its photo URL so the caller can clean it up."""
        record = self.db.delete_story(owner_id, story_id)
        if record is None:
            raise NotFound("Travel story not found")
        return record.image_url

    def search(self, owner_id: str, query: Optional[str]) -> list[StoryRecord]:
        needle = (query or "").strip().casefold()
        if not needle:
            raise ValidationError("query is required")
        return [s for s in self.db.list_stories(owner_id) if _matches(s, needle)]

    def filter_by_date_range(self, owner_id: str, start: Any, end: Any) -> list[StoryRecord]:
        visited_from = parse_epoch_millis(start, "startDate")
        visited_to = parse_epoch_millis(end, "endDate")
        return self.db.list_stories(
            owner_id, visited_from=visited_from, visited_to=visited_to
        )

    def get_public(self, story_id: str) -> StoryRecord:
        """Unauthenticated read used for shared story links."""
        if not STORY_ID_PATTERN.match(story_id or ""):
            raise ValidationError("Invalid story ID format")
        record = self.db.get_story(story_id)
        if record is None:
            raise NotFound("Story not found")
        return record
