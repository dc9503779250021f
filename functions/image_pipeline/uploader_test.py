# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


import unittest
from unittest.mock import MagicMock, patch

import requests

from image_pipeline import placeholders
from image_pipeline.hosts import GitHubContentsHost, ImageHostError, InMemoryImageHost
from image_pipeline.placeholders import ImageEntry, ImageReference, ReferenceKind
from image_pipeline.uploader import (
    CredentialMissingError,
    ImageUploadError,
    Uploader,
    infer_extension,
    prepare_image,
    strip_data_url,
)


def _placeholder(image_id: str) -> ImageReference:
    return ImageReference(
        target=f"/images/{image_id}", kind=ReferenceKind.IMAGES_PATH, key=image_id
    )


class HelperTest(unittest.TestCase):

    def test_infer_extension(self):
        self.assertEqual(infer_extension(media_type="jpeg"), "jpeg")
        self.assertEqual(infer_extension(media_type="svg+xml"), "svg")
        self.assertEqual(infer_extension(filename="photo.JPG"), "JPG")
        self.assertEqual(infer_extension(filename="no_extension"), "png")
        self.assertEqual(infer_extension(), "png")
        self.assertEqual(infer_extension(media_type="gif", filename="a.png"), "gif")

    def test_strip_data_url(self):
        self.assertEqual(strip_data_url("data:image/png;base64,AAAA"), "AAAA")
        self.assertEqual(strip_data_url(" AAAA\n"), "AAAA")

    def test_prepare_image_from_data_uri(self):
        reference = placeholders.scan("![x](data:image/webp;base64,UklGRg==)")[0]
        prepared = prepare_image(reference, {})
        self.assertTrue(prepared.filename.endswith(".webp"))
        self.assertEqual(len(prepared.filename), len("0123456789.webp"))
        self.assertEqual(prepared.content_base64, "UklGRg==")

    def test_prepare_image_from_session_map(self):
        image_map = {"abc": ImageEntry(base64="data:image/png;base64,QUJD", filename="cat.jpg")}
        prepared = prepare_image(_placeholder("abc"), image_map)
        self.assertTrue(prepared.filename.endswith(".jpg"))
        self.assertEqual(prepared.content_base64, "QUJD")

    def test_prepare_image_missing_entry(self):
        self.assertIsNone(prepare_image(_placeholder("nope"), {}))

    def test_same_bytes_get_distinct_names(self):
        reference = placeholders.scan("![x](data:image/png;base64,QUJD)")[0]
        first = prepare_image(reference, {})
        second = prepare_image(reference, {})
        self.assertNotEqual(first.filename, second.filename)


class UploaderTest(unittest.TestCase):

    def setUp(self):
        self.host = InMemoryImageHost()
        self.credential_provider = MagicMock(return_value="secret-token")
        self.uploader = Uploader(self.host, self.credential_provider)

    def test_uploads_each_reference_once(self):
        image_map = {
            "a": ImageEntry(base64="QUFB", filename="a.png"),
            "b": ImageEntry(base64="QkJC", filename="b.gif"),
        }
        outcome = self.uploader.upload_all([_placeholder("a"), _placeholder("b")], image_map)

        self.assertEqual(len(self.host.files), 2)
        self.assertEqual(set(outcome.uploaded), {"/images/a", "/images/b"})
        self.assertEqual(outcome.unresolved, [])
        self.credential_provider.assert_called_once_with()
        self.assertEqual(self.host.credentials, ["secret-token", "secret-token"])

    def test_unresolved_placeholder_skips_upload(self):
        outcome = self.uploader.upload_all([_placeholder("missing")], {})
        self.assertEqual(outcome.uploaded, {})
        self.assertEqual(outcome.unresolved, ["/images/missing"])
        self.credential_provider.assert_not_called()

    def test_missing_credential_fails_the_call(self):
        self.credential_provider.side_effect = CredentialMissingError("no key")
        image_map = {"a": ImageEntry(base64="QUFB", filename="a.png")}
        with self.assertRaises(CredentialMissingError):
            self.uploader.upload_all([_placeholder("a")], image_map)
        self.assertEqual(self.host.files, {})

    def test_one_failure_fails_the_whole_call(self):
        self.host.fail_for.add("QkJC")
        image_map = {
            "a": ImageEntry(base64="QUFB", filename="a.png"),
            "b": ImageEntry(base64="QkJC", filename="b.png"),
        }
        with self.assertRaises(ImageUploadError) as ctx:
            self.uploader.upload_all([_placeholder("a"), _placeholder("b")], image_map)

        failures = ctx.exception.failures
        self.assertEqual([f.target for f in failures], ["/images/b"])
        self.assertIn("Simulated failure", failures[0].reason)

    def test_no_credential_provider(self):
        uploader = Uploader(self.host)
        image_map = {"a": ImageEntry(base64="QUFB", filename="a.png")}
        uploader.upload_all([_placeholder("a")], image_map)
        self.assertEqual(self.host.credentials, [None])


class GitHubContentsHostTest(unittest.TestCase):

    def setUp(self):
        self.host = GitHubContentsHost(owner="ASK-STEM-official", repo="Image-Storage")

    @patch("image_pipeline.hosts.requests.put")
    def test_create_file(self, mock_put):
        mock_put.return_value = MagicMock(ok=True, status_code=201)

        url = self.host.create_file("abc.png", "QUFB", "tok")

        mock_put.assert_called_once_with(
            "https://api.github.com/repos/ASK-STEM-official/Image-Storage/contents/static/images/abc.png",
            json={"message": "Add image: abc.png", "content": "QUFB"},
            headers={"Content-Type": "application/json", "Authorization": "token tok"},
            timeout=30,
        )
        self.assertEqual(
            url,
            "https://github.com/ASK-STEM-official/Image-Storage/raw/main/static/images/abc.png",
        )

    @patch("image_pipeline.hosts.requests.put")
    def test_remote_error_message_is_surfaced(self, mock_put):
        response = MagicMock(ok=False, status_code=422)
        response.json.return_value = {"message": "Invalid request.\n\n\"sha\" wasn't supplied."}
        mock_put.return_value = response

        with self.assertRaises(ImageHostError) as ctx:
            self.host.create_file("abc.png", "QUFB", "tok")
        self.assertIn("sha", ctx.exception.message)
        self.assertEqual(ctx.exception.status_code, 422)

    @patch("image_pipeline.hosts.requests.put")
    def test_non_json_error_body(self, mock_put):
        response = MagicMock(ok=False, status_code=502, text="Bad gateway")
        response.json.side_effect = ValueError("not json")
        mock_put.return_value = response

        with self.assertRaises(ImageHostError) as ctx:
            self.host.create_file("abc.png", "QUFB", "tok")
        self.assertEqual(ctx.exception.message, "Bad gateway")

    @patch("image_pipeline.hosts.requests.put")
    def test_network_error_is_wrapped(self, mock_put):
        mock_put.side_effect = requests.ConnectionError("reset")
        with self.assertRaises(ImageHostError):
            self.host.create_file("abc.png", "QUFB", "tok")


if __name__ == "__main__":
    unittest.main()
