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


import base64
import io
import unittest

from PIL import Image

from image_pipeline import attachments
from shared.errors import InvalidImageError


def _png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 3), color=(255, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


class LoadImageEntryTest(unittest.TestCase):

    def test_png_is_encoded_as_data_url(self):
        data = _png_bytes()
        entry = attachments.load_image_entry(data, "red.png")

        self.assertEqual(entry.filename, "red.png")
        prefix, encoded = entry.base64.split(",", 1)
        self.assertEqual(prefix, "data:image/png;base64")
        self.assertEqual(base64.b64decode(encoded), data)

    def test_empty_file_is_rejected(self):
        with self.assertRaises(InvalidImageError):
            attachments.load_image_entry(b"", "empty.png")

    def test_non_image_is_rejected(self):
        with self.assertRaises(InvalidImageError):
            attachments.load_image_entry(b"not an image at all", "notes.txt")

    def test_size_limit(self):
        with self.assertRaises(InvalidImageError):
            attachments.load_image_entry(_png_bytes(), "red.png", max_bytes=10)

    def test_image_markdown(self):
        self.assertEqual(
            attachments.image_markdown("cat.png", "/images/", "Ab12Cd"),
            "\n![Image: cat.png](/images/Ab12Cd)\n",
        )


if __name__ == "__main__":
    unittest.main()
