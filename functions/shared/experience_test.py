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

from shared.experience import (
    CREATE_XP_RULE,
    EDIT_XP_RULE,
    apply_gain,
    level_for,
    progress_percent,
)


class ExperienceTest(unittest.TestCase):

    def test_level_boundaries(self):
        self.assertEqual(level_for(0), 1)
        self.assertEqual(level_for(99), 1)
        self.assertEqual(level_for(100), 2)
        self.assertEqual(level_for(250), 3)

    def test_create_rule_floor_and_length(self):
        self.assertEqual(CREATE_XP_RULE.gain("a" * 5), 30)
        self.assertEqual(CREATE_XP_RULE.gain("a" * 1000), 100)
        self.assertEqual(CREATE_XP_RULE.gain(""), 30)

    def test_edit_rule_floor_and_length(self):
        self.assertEqual(EDIT_XP_RULE.gain("short"), 10)
        self.assertEqual(EDIT_XP_RULE.gain("a" * 1000), 50)

    def test_apply_gain_crosses_level(self):
        self.assertEqual(apply_gain(95, 10), (105, 2))

    def test_apply_gain_without_prior_xp(self):
        self.assertEqual(apply_gain(None, CREATE_XP_RULE.gain("hello")), (30, 1))

    def test_negative_gain_is_rejected(self):
        with self.assertRaises(ValueError):
            apply_gain(10, -1)

    def test_progress_percent(self):
        self.assertEqual(progress_percent(0), 0)
        self.assertEqual(progress_percent(105), 5)
        self.assertEqual(progress_percent(199), 99)

    def test_progress_percent_restarts_each_level(self):
        for xp in (100, 1200, 98700):
            self.assertEqual(progress_percent(xp), 0)
            self.assertEqual(level_for(xp + 99), level_for(xp))
            self.assertEqual(progress_percent(xp + 99), 99)


if __name__ == "__main__":
    unittest.main()
