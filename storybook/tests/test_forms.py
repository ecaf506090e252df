import unittest
from unittest.mock import patch

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from starlette.datastructures import UploadFile

from storybook.forms import read_submission

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def _echo_app() -> FastAPI:
    app = FastAPI()

    @app.post("/echo")
    async def echo(request: Request):
        fields, uploads = await read_submission(request)
        return {
            "fields": fields,
            "uploads": [
                [upload.fieldname, upload.filename, upload.content_type, len(upload.data)]
                for upload in uploads
            ],
        }

    return app


class ReadSubmissionTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(_echo_app())

    def test_fields_and_files_split(self):
        response = self.client.post(
            "/echo",
            data={"titleEn": "Sun", "languages": ["en", "te"]},
            files={"coverImage": ("c.png", PNG_BYTES, "image/png")},
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["fields"], {"titleEn": "Sun", "languages": ["en", "te"]})
        self.assertEqual(
            payload["uploads"], [["coverImage", "c.png", "image/png", len(PNG_BYTES)]]
        )

    def test_empty_file_input_ignored(self):
        response = self.client.post(
            "/echo",
            data={"titleEn": "Sun"},
            files={"coverImage": ("", b"", "application/octet-stream")},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["uploads"], [])

    def test_upload_files_closed_after_reading(self):
        with patch.object(UploadFile, "close", autospec=True) as close:
            response = self.client.post(
                "/echo",
                data={"titleEn": "Sun"},
                files={"coverImage": ("c.png", PNG_BYTES, "image/png")},
            )
        self.assertEqual(response.status_code, 200)
        close.assert_called()


if __name__ == "__main__":
    unittest.main()
