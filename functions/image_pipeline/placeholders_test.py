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

from image_pipeline import placeholders
from image_pipeline.placeholders import (
    DATA_URI,
    IMAGES_PATH,
    TEMP_URI,
    ReferenceKind,
)


class ScanTest(unittest.TestCase):

    def test_no_references(self):
        self.assertEqual(placeholders.scan("# Title\n\nplain text [link](http://x)"), [])

    def test_finds_each_grammar_in_order(self):
        markdown = (
            "![a](temp://abc123)\n"
            "![b](data:image/png;base64,iVBORw0KGgo=)\n"
            "![c](/images/x_y-z)\n"
        )
        references = placeholders.scan(markdown)
        self.assertEqual(
            [r.target for r in references],
            ["temp://abc123", "data:image/png;base64,iVBORw0KGgo=", "/images/x_y-z"],
        )
        self.assertEqual(
            [r.kind for r in references],
            [ReferenceKind.TEMP_URI, ReferenceKind.DATA_URI, ReferenceKind.IMAGES_PATH],
        )
        self.assertEqual(references[1].media_type, "png")
        self.assertEqual(references[1].key, "iVBORw0KGgo=")
        self.assertEqual(references[2].key, "x_y-z")

    def test_repeated_reference_is_collapsed(self):
        markdown = "![one](/images/abc)\ntext\n![two](/images/abc)\n![three](/images/def)"
        references = placeholders.scan(markdown, (IMAGES_PATH,))
        self.assertEqual([r.key for r in references], ["abc", "def"])

    def test_identical_data_uris_are_collapsed(self):
        uri = "data:image/gif;base64,R0lGODlh"
        markdown = f"![x]({uri}) and ![y]({uri})"
        references = placeholders.scan(markdown, (DATA_URI,))
        self.assertEqual(len(references), 1)

    def test_same_id_across_grammars_is_collapsed(self):
        markdown = "![a](/images/abc) ![b](temp://abc) ![c](/images/abc)"
        references = placeholders.scan(markdown)
        self.assertEqual(len(references), 1)
        self.assertEqual(references[0].target, "/images/abc")
        self.assertEqual(references[0].targets, ("/images/abc", "temp://abc"))

    def test_data_uri_is_not_merged_with_placeholder_of_same_key(self):
        markdown = "![a](/images/QUFB) ![b](data:image/png;base64,QUFB)"
        self.assertEqual(len(placeholders.scan(markdown)), 2)

    def test_malformed_data_uri_is_ignored(self):
        markdown = (
            "![a](data:image/png;base64,)\n"
            "![b](data:image/png,abcd)\n"
            "![c](data:image/png;base64,abc$def)\n"
            "![d](data:image/png;base64,abcd"
        )
        self.assertEqual(placeholders.scan(markdown, (DATA_URI,)), [])

    def test_grammar_selection(self):
        markdown = "![a](temp://abc) ![b](/images/abc)"
        references = placeholders.scan(markdown, (IMAGES_PATH,))
        self.assertEqual([r.target for r in references], ["/images/abc"])
        references = placeholders.scan(markdown, (TEMP_URI,))
        self.assertEqual([r.target for r in references], ["temp://abc"])

    def test_temp_uri_rejects_non_alphanumeric_ids(self):
        self.assertEqual(placeholders.scan("![a](temp://ab-c)", (TEMP_URI,)), [])

    def test_input_is_not_mutated(self):
        markdown = "![a](/images/abc)"
        placeholders.scan(markdown)
        self.assertEqual(markdown, "![a](/images/abc)")

    def test_placeholder_target(self):
        self.assertEqual(placeholders.placeholder_target("temp://", "Ab12"), "temp://Ab12")


if __name__ == "__main__":
    unittest.main()
