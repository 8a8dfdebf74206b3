import unittest
from datetime import datetime, timezone

from travelbook.db import InMemoryDbClient
from travelbook.errors import NotFound, ValidationError
from travelbook.stories import StoryRepository, parse_epoch_millis

PLACEHOLDER = "https://example.test/placeholder.png"
PHOTO = "https://example.test/storage/travel_book/a.jpg"


class ParseEpochMillisTests(unittest.TestCase):
    def test_accepts_numbers_and_numeric_strings(self):
        expected = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        self.assertEqual(parse_epoch_millis(1700000000000, "d"), expected)
        self.assertEqual(parse_epoch_millis("1700000000000", "d"), expected)
        self.assertEqual(parse_epoch_millis(1700000000000.0, "d"), expected)

    def test_rejects_malformed_values(self):
        for value in (None, "", "soon", "17e11", True, [1]):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    parse_epoch_millis(value, "d")


class StoryRepositoryTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.repo = StoryRepository(self.db, PLACEHOLDER)

    def _create(self, owner="ana", title="Paris", story="Lovely", places=None, when=1700000000000):
        return self.repo.create(owner, title, story, places or ["France"], PHOTO, when)

    def test_create_sets_defaults(self):
        story = self._create(places=["Rome", "Rome", "Florence"])
        self.assertFalse(story.is_favourite)
        self.assertEqual(story.owner_id, "ana")
        self.assertEqual(story.visited_locations, ["Rome", "Rome", "Florence"])
        self.assertEqual(story.visited_date.year, 2023)

    def test_create_requires_every_field(self):
        cases = [
            ("", "text", ["x"], PHOTO, 1),
            ("t", "  ", ["x"], PHOTO, 1),
            ("t", "text", [], PHOTO, 1),
            ("t", "text", ["x"], None, 1),
            ("t", "text", ["x"], PHOTO, None),
        ]
        for title, story, places, photo, when in cases:
            with self.subTest(title=title, story=story, places=places, photo=photo, when=when):
                with self.assertRaises(ValidationError):
                    self.repo.create("ana", title, story, places, photo, when)
        self.assertEqual(self.db.stories, {})

    def test_update_falls_back_to_placeholder(self):
        story = self._create()
        updated = self.repo.update("ana", story.story_id, "New", "Text", ["Oslo"], None, 1)
        self.assertEqual(updated.image_url, PLACEHOLDER)
        kept = self.repo.update("ana", story.story_id, "New", "Text", ["Oslo"], PHOTO, 1)
        self.assertEqual(kept.image_url, PHOTO)

    def test_update_checks_fields_and_ownership(self):
        story = self._create()
        with self.assertRaises(ValidationError):
            self.repo.update("ana", story.story_id, "New", "", ["Oslo"], None, 1)
        with self.assertRaises(NotFound):
            self.repo.update("bob", story.story_id, "New", "Text", ["Oslo"], None, 1)
        self.assertEqual(self.db.get_story(story.story_id).title, "Paris")

    def test_set_favourite_is_idempotent(self):
        story = self._create()
        first = self.repo.set_favourite("ana", story.story_id, True).as_dict()
        second = self.repo.set_favourite("ana", story.story_id, True).as_dict()
        self.assertEqual(first, second)
        with self.assertRaises(NotFound):
            self.repo.set_favourite("bob", story.story_id, False)

    def test_delete_returns_photo_url(self):
        story = self._create()
        with self.assertRaises(NotFound):
            self.repo.delete("bob", story.story_id)
        self.assertEqual(self.repo.delete("ana", story.story_id), PHOTO)
        with self.assertRaises(NotFound):
            self.repo.delete("ana", story.story_id)

    def test_listing_never_leaks_other_owners(self):
        self._create(owner="ana")
        self._create(owner="bob")
        self.assertTrue(all(s.owner_id == "ana" for s in self.repo.list_stories("ana")))
        self.assertEqual(len(self.repo.list_stories("ana")), 1)

    def test_search(self):
        self._create(title="PARIS nights")
        self._create(title="Lisbon", story="Trip to paris first")
        self._create(title="Porto", story="Wine", places=["Parisian cafe"])
        self._create(title="Kyoto", story="Temples", places=["Japan"])
        self._create(owner="bob", title="Paris")
        fav = self._create(title="Nice", story="Paris was next", places=["France"])
        self.repo.set_favourite("ana", fav.story_id, True)

        titles = [s.title for s in self.repo.search("ana", "Paris")]
        self.assertEqual(titles, ["Nice", "PARIS nights", "Lisbon", "Porto"])

    def test_search_treats_query_literally(self):
        self._create(title="Cost (approx.) 100%")
        self._create(title="Other")
        self.assertEqual(len(self.repo.search("ana", "(approx.)")), 1)
        self.assertEqual(self.repo.search("ana", ".*"), [])

    def test_search_requires_query(self):
        with self.assertRaises(ValidationError):
            self.repo.search("ana", "  ")
        with self.assertRaises(ValidationError):
            self.repo.search("ana", None)

    def test_filter_by_date_range(self):
        story = self._create(when=1700000000000)
        self.assertEqual(
            [s.story_id for s in self.repo.filter_by_date_range("ana", 1690000000000, 1710000000000)],
            [story.story_id],
        )
        self.assertEqual(self.repo.filter_by_date_range("ana", 1, 2), [])
        self.assertEqual(
            len(self.repo.filter_by_date_range("ana", "1700000000000", "1700000000000")), 1
        )
        with self.assertRaises(ValidationError):
            self.repo.filter_by_date_range("ana", "abc", 2)
        with self.assertRaises(ValidationError):
            self.repo.filter_by_date_range("ana", 1, None)

    def test_get_public(self):
        story = self._create()
        self.assertEqual(self.repo.get_public(story.story_id).title, "Paris")
        with self.assertRaises(ValidationError):
            self.repo.get_public("../etc")
        with self.assertRaises(NotFound):
            self.repo.get_public("f" * 32)


if __name__ == "__main__":
    unittest.main()
