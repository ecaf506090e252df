import asyncio
import unittest

from fastapi.testclient import TestClient

from storybook.app import create_app
from storybook.auth import hash_password
from storybook.config import Settings, get_settings
from storybook.db import AdminRecord, InMemoryDbClient
from storybook.dependencies import get_db_client, get_image_intake
from storybook.intake import ImageIntake
from storybook.storage import InMemoryStorageClient

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
SECRET = "test-signing-secret-0123456789abcdef"


class LoopRecordingStorageClient(InMemoryStorageClient):
    """Remembers whether each upload ran on a thread with a running event loop."""

    def __post_init__(self):
        super().__post_init__()
        self.upload_on_loop = []

    def upload_bytes(self, path, data, content_type):
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self.upload_on_loop.append(False)
        else:
            self.upload_on_loop.append(True)
        super().upload_bytes(path, data, content_type)


class StorybookApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.password_hash = hash_password("secret")

    def setUp(self):
        self.settings = Settings(
            jwt_secret=SECRET,
            locale_key="Eng",
            default_languages=["en", "te"],
            use_in_memory_backends=True,
        )
        self.db = InMemoryDbClient()
        self.db.save_admin(AdminRecord(username="admin", password_hash=self.password_hash))
        self.storage = LoopRecordingStorageClient()
        self.intake = ImageIntake(
            storage=self.storage, public_base_url="https://cdn.test/uploads"
        )

        app = create_app()
        app.dependency_overrides[get_settings] = lambda: self.settings
        app.dependency_overrides[get_db_client] = lambda: self.db
        app.dependency_overrides[get_image_intake] = lambda: self.intake
        self.client = TestClient(app)

        response = self.client.post(
            "/api/auth/login", json={"username": "admin", "password": "secret"}
        )
        self.assertEqual(response.status_code, 200)
        self.headers = {"Authorization": f"Bearer {response.json()['token']}"}

    def _create_story(self, **fields):
        data = {"nameEn": "Sun", "nameTe": "Suryudu", "languages": "en,te"}
        data.update(fields)
        response = self.client.post("/api/stories", data=data, headers=self.headers)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["story"]

    def _save_part(self, story_id, **fields):
        data = {"storyId": story_id}
        data.update(fields)
        return self.client.post("/api/parts", data=data, headers=self.headers)

    def test_health(self):
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.text, "Backend is running")

    def test_list_stories_empty(self):
        response = self.client.get("/api/stories")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [])

    def test_login_rejects_bad_password(self):
        response = self.client.post(
            "/api/auth/login", json={"username": "admin", "password": "nope"}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"], "Invalid credentials")

    def test_mutations_require_token(self):
        response = self.client.post("/api/stories", data={"nameEn": "Sun"})
        self.assertEqual(response.status_code, 401)
        response = self.client.post(
            "/api/stories",
            data={"nameEn": "Sun"},
            headers={"Authorization": "Bearer not-a-token"},
        )
        self.assertEqual(response.status_code, 401)
        self.assertIsNone(self.db.find_collection("Eng"))

    def test_create_story_with_upload(self):
        response = self.client.post(
            "/api/stories",
            data={"nameEn": "Sun", "languages": "en"},
            files={"storyCoverImage": ("cover.png", PNG_BYTES, "image/png")},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        payload = response.json()
        self.assertEqual(payload["message"], "Story added")
        story = payload["story"]
        self.assertEqual(story["name"], {"en": "Sun"})
        self.assertEqual(story["languages"], ["en"])
        self.assertTrue(story["storyCoverImage"].startswith("https://cdn.test/uploads/"))
        self.assertEqual(story["bannerImage"], "")
        self.assertEqual(story["parts"], {"card": []})
        self.assertEqual(len(self.storage.stored_objects), 1)
        self.assertEqual(self.storage.upload_on_loop, [False])

        listed = self.client.get("/api/stories").json()
        self.assertEqual([s["id"] for s in listed], [story["id"]])

    def test_bad_upload_writes_nothing(self):
        response = self.client.post(
            "/api/stories",
            data={"nameEn": "Sun", "languages": "en"},
            files={"bannerImage": ("banner.gif", b"GIF89a", "image/gif")},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Only JPEG/PNG images are allowed")
        self.assertEqual(self.storage.stored_objects, {})
        self.assertIsNone(self.db.find_collection("Eng"))

    def test_create_story_missing_name_language(self):
        response = self.client.post(
            "/api/stories", data={"nameEn": "Sun"}, headers=self.headers
        )
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["field"], "name")
        self.assertEqual(body["language"], "te")

    def test_create_story_without_any_language(self):
        self.settings.default_languages = []
        response = self.client.post("/api/stories", data={}, headers=self.headers)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "languages")
        self.assertIsNone(self.db.find_collection("Eng"))

    def test_update_and_delete_story(self):
        story = self._create_story()
        response = self.client.put(
            f"/api/stories/{story['id']}",
            data={"nameEn": "Moon", "languages": "en"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        updated = response.json()["story"]
        self.assertEqual(updated["id"], story["id"])
        self.assertEqual(updated["name"], {"en": "Moon"})

        response = self.client.delete(f"/api/stories/{story['id']}", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get("/api/stories").json(), [])

        response = self.client.delete(f"/api/stories/{story['id']}", headers=self.headers)
        self.assertEqual(response.status_code, 404)

    def test_part_requires_story(self):
        response = self._save_part("", titleEn="Dawn")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "storyId")

        response = self._save_part("missing", titleEn="Dawn")
        self.assertEqual(response.status_code, 404)

        self._create_story()
        response = self._save_part("missing", titleEn="Dawn")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Story not found")

    def test_part_languages_must_be_enabled_on_story(self):
        story = self._create_story(languages="en", nameTe="")
        response = self._save_part(
            story["id"], languages="en,te", titleEn="Dawn", titleTe="Udayam"
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["language"], "te")
        self.assertIn("te", response.json()["error"])

    def test_part_upsert_by_id(self):
        story = self._create_story()
        first = self._save_part(story["id"], titleEn="One", titleTe="Okati")
        self.assertEqual(first.status_code, 201, first.text)
        self.assertEqual(first.json()["message"], "Part added")
        second = self._save_part(story["id"], titleEn="Two", titleTe="Rendu")
        first_id = first.json()["part"]["id"]

        updated = self._save_part(story["id"], partId=first_id, titleEn="Uno")
        self.assertEqual(updated.status_code, 201)
        self.assertEqual(updated.json()["message"], "Part updated")
        self.assertEqual(updated.json()["part"]["title"], {"en": "Uno", "te": "Okati"})

        appended = self._save_part(
            story["id"], partId="client-id", titleEn="Three", titleTe="Moodu"
        )
        self.assertEqual(appended.status_code, 201)

        cards = self.client.get("/api/stories").json()[0]["parts"]["card"]
        self.assertEqual(
            [card["id"] for card in cards],
            [first_id, second.json()["part"]["id"], "client-id"],
        )
        self.assertEqual(cards[0]["title"]["en"], "Uno")

    def test_part_with_sub_parts_and_images(self):
        story = self._create_story(languages="en", nameTe="")
        response = self.client.post(
            "/api/parts",
            data={
                "storyId": story["id"],
                "titleEn": "Dawn",
                "headingEn0": "Wake",
                "textEn0": "The sun rises.",
                "quoteEn0": "Rise",
                "headingEn1": "Shine",
                "textEn1": "It shines.",
                "partImage1": "https://given.test/1.png",
                "headingEn3": "Never",
                "textEn3": "Skipped after the gap.",
            },
            files={
                "partImage0": ("p0.png", PNG_BYTES, "image/png"),
                "thumbnailImage": ("t.png", PNG_BYTES, "image/png"),
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        part = response.json()["part"]
        self.assertEqual(part["title"], {"en": "Dawn"})
        self.assertTrue(part["thumbnailImage"].startswith("https://cdn.test/uploads/"))
        self.assertEqual(part["coverImage"], "")
        sub_parts = part["part"]
        self.assertEqual([s["heading"] for s in sub_parts], [{"en": "Wake"}, {"en": "Shine"}])
        self.assertTrue(sub_parts[0]["image"].startswith("https://cdn.test/uploads/"))
        self.assertEqual(sub_parts[1]["image"], "https://given.test/1.png")

    def test_delete_part(self):
        story = self._create_story()
        part = self._save_part(story["id"], titleEn="One", titleTe="Okati").json()["part"]
        response = self.client.delete(
            f"/api/parts/{story['id']}/{part['id']}", headers=self.headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Part deleted successfully")
        cards = self.client.get("/api/stories").json()[0]["parts"]["card"]
        self.assertEqual(cards, [])

    def test_age_band_cards(self):
        story = self._create_story()
        response = self.client.post(
            f"/api/stories/{story['id']}/age/toddler/cards",
            data={
                "titleEn": "Ball",
                "titleTe": "Bantu",
                "oneLineTextEn0": "Red ball",
                "imageUrl0": "https://given.test/ball.png",
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)
        card = response.json()["part"]
        self.assertEqual(card["partContent"][0]["oneLineText"], {"en": "Red ball", "te": ""})
        self.assertEqual(card["partContent"][0]["imageUrl"], "https://given.test/ball.png")

        response = self.client.post(
            f"/api/stories/{story['id']}/age/teen/cards",
            data={"titleEn": "Quest", "titleTe": "Anveshana"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201, response.text)

        saved = self.client.get("/api/stories").json()[0]
        self.assertEqual(len(saved["toddler"]["card"]), 1)
        self.assertEqual(saved["teen"]["card"][0]["title"]["en"], "Quest")

        response = self.client.delete(
            f"/api/stories/{story['id']}/age/toddler/cards/{card['id']}",
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get("/api/stories").json()[0]["toddler"]["card"], [])

        response = self.client.post(
            f"/api/stories/{story['id']}/age/elders/cards",
            data={"titleEn": "x", "titleTe": "y"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 404)

    def test_subscribe_and_list(self):
        response = self.client.post(
            "/api/subscribers/new-subscribe", json={"email": "  Reader@Example.com "}
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["message"], "Successfully subscribed")

        duplicate = self.client.post(
            "/api/subscribers/new-subscribe", json={"email": "reader@example.com"}
        )
        self.assertEqual(duplicate.status_code, 400)
        self.assertEqual(duplicate.json()["error"], "Email is already subscribed")

        for email in (None, "", "not-an-email"):
            response = self.client.post(
                "/api/subscribers/new-subscribe", json={"email": email}
            )
            self.assertEqual(response.status_code, 400)

        self.assertEqual(self.client.get("/api/subscribers").status_code, 401)
        response = self.client.get("/api/subscribers", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"emails": ["reader@example.com"]})


if __name__ == "__main__":
    unittest.main()
