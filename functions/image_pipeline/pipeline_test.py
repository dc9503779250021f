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
from unittest.mock import MagicMock

from image_pipeline.hosts import InMemoryImageHost
from image_pipeline.pipeline import CREATE_PROFILE, EDIT_PROFILE, externalize_images
from image_pipeline.placeholders import ImageEntry
from image_pipeline.uploader import ImageUploadError, Uploader


class ExternalizeImagesTest(unittest.TestCase):

    def setUp(self):
        self.host = InMemoryImageHost(base_url="https://cdn.test")
        self.uploader = Uploader(self.host, lambda: "token")

    def test_markdown_without_images_is_unchanged(self):
        credential_provider = MagicMock()
        uploader = Uploader(self.host, credential_provider)
        markdown = "# Hello\n\nNo pictures here."

        result = externalize_images(
            markdown, {}, grammars=CREATE_PROFILE.grammars, uploader=uploader
        )

        self.assertEqual(result.markdown, markdown)
        self.assertEqual(self.host.files, {})
        credential_provider.assert_not_called()

    def test_duplicate_placeholder_uploads_once(self):
        image_map = {"abc": ImageEntry(base64="data:image/png;base64,QUFB", filename="a.png")}
        markdown = "![one](/images/abc)\n\n![two](/images/abc)"

        result = externalize_images(
            markdown, image_map, grammars=CREATE_PROFILE.grammars, uploader=self.uploader
        )

        self.assertEqual(len(self.host.files), 1)
        url = result.uploaded["/images/abc"]
        self.assertEqual(result.markdown, f"![one]({url})\n\n![two]({url})")

    def test_duplicate_data_uri_uploads_once(self):
        uri = "data:image/jpeg;base64,/9j/4AAQ"
        markdown = f"![a]({uri}) ![b]({uri})"

        result = externalize_images(
            markdown, None, grammars=CREATE_PROFILE.grammars, uploader=self.uploader
        )

        self.assertEqual(len(self.host.files), 1)
        (filename,) = self.host.files
        self.assertTrue(filename.endswith(".jpeg"))
        self.assertEqual(self.host.files[filename], "/9j/4AAQ")
        url = f"https://cdn.test/{filename}"
        self.assertEqual(result.markdown, f"![a]({url}) ![b]({url})")

    def test_same_id_in_both_placeholder_forms_uploads_once(self):
        image_map = {"abc123": ImageEntry(base64="QUFB", filename="a.png")}
        markdown = "![a](/images/abc123) ![b](temp://abc123)"

        result = externalize_images(
            markdown, image_map, grammars=EDIT_PROFILE.grammars, uploader=self.uploader
        )

        self.assertEqual(len(self.host.files), 1)
        (filename,) = self.host.files
        url = f"https://cdn.test/{filename}"
        self.assertEqual(result.markdown, f"![a]({url}) ![b]({url})")
        self.assertEqual(result.uploaded, {"/images/abc123": url, "temp://abc123": url})

    def test_same_payload_under_two_media_types_uploads_once(self):
        markdown = (
            "![a](data:image/png;base64,QUFB) ![b](data:image/jpeg;base64,QUFB)"
        )

        result = externalize_images(
            markdown, None, grammars=CREATE_PROFILE.grammars, uploader=self.uploader
        )

        self.assertEqual(len(self.host.files), 1)
        self.assertNotIn("data:image", result.markdown)

    def test_unknown_placeholder_is_left_byte_identical(self):
        image_map = {"known": ImageEntry(base64="QUFB", filename="k.png")}
        markdown = "![k](/images/known) ![u](/images/unknown)"

        result = externalize_images(
            markdown, image_map, grammars=CREATE_PROFILE.grammars, uploader=self.uploader
        )

        self.assertTrue(result.markdown.endswith(" ![u](/images/unknown)"))
        self.assertNotIn("/images/known", result.markdown)
        self.assertEqual(result.unresolved, ["/images/unknown"])

    def test_temp_placeholders_only_in_edit_profile(self):
        image_map = {"abc": ImageEntry(base64="QUFB", filename="a.png")}
        markdown = "![a](temp://abc)"

        created = externalize_images(
            markdown, image_map, grammars=CREATE_PROFILE.grammars, uploader=self.uploader
        )
        self.assertEqual(created.markdown, markdown)

        edited = externalize_images(
            markdown, image_map, grammars=EDIT_PROFILE.grammars, uploader=self.uploader
        )
        self.assertTrue(edited.markdown.startswith("![a](https://cdn.test/"))

    def test_failure_raises_and_reports_failed_images(self):
        self.host.fail_for.add("QkJC")
        image_map = {
            "a": ImageEntry(base64="QUFB", filename="a.png"),
            "b": ImageEntry(base64="QkJC", filename="b.png"),
        }
        with self.assertRaises(ImageUploadError) as ctx:
            externalize_images(
                "![a](/images/a) ![b](/images/b)",
                image_map,
                grammars=CREATE_PROFILE.grammars,
                uploader=self.uploader,
            )
        self.assertEqual([f.target for f in ctx.exception.failures], ["/images/b"])

    def test_profiles_carry_xp_rules(self):
        self.assertEqual(CREATE_PROFILE.xp_rule.floor_gain, 30)
        self.assertEqual(CREATE_PROFILE.xp_rule.divisor, 10)
        self.assertEqual(EDIT_PROFILE.xp_rule.floor_gain, 10)
        self.assertEqual(EDIT_PROFILE.xp_rule.divisor, 20)


if __name__ == "__main__":
    unittest.main()
