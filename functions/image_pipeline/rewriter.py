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

"""Replaces externalized image references with their public URLs."""

import re
from typing import Mapping, Sequence

from image_pipeline.placeholders import ALL_GRAMMARS, Grammar


def rewrite(
    markdown: str,
    resolved: Mapping[str, str],
    grammars: Sequence[Grammar] = ALL_GRAMMARS,
) -> str:
    """
    Rewrites each occurrence of a resolved reference to `![alt](url)`.

    `resolved` maps reference targets (the text inside the parentheses) to
    URLs. Each occurrence keeps its own alt text. Targets missing from
    `resolved` are left byte-identical.
    """
    if not resolved or not markdown:
        return markdown

    def _replace(match: re.Match) -> str:
        url = resolved.get(match.group("target"))
        if url is None:
            return match.group(0)
        return f"![{match.group('alt')}]({url})"

    for grammar in grammars:
        markdown = grammar.pattern.sub(_replace, markdown)
    return markdown
