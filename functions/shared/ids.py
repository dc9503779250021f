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

import secrets
import string

URL_SAFE_ALPHABET = string.ascii_letters + string.digits + "_-"
ALPHANUMERIC = string.ascii_letters + string.digits

ARTICLE_ID_LENGTH = 10
PLACEHOLDER_ID_LENGTH = 6


def short_id(size: int = ARTICLE_ID_LENGTH, alphabet: str = URL_SAFE_ALPHABET) -> str:
    """Returns a random id of `size` characters drawn from `alphabet`."""
    return "".join(secrets.choice(alphabet) for _ in range(size))


def placeholder_id() -> str:
    # Alphanumeric only so the id is valid in every placeholder grammar.
    return short_id(PLACEHOLDER_ID_LENGTH, ALPHANUMERIC)
