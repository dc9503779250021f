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

"""Finds image references in Markdown that still need to be externalized."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple


class ReferenceKind(str, Enum):
    DATA_URI = "data_uri"
    IMAGES_PATH = "images_path"
    TEMP_URI = "temp_uri"


@dataclass(frozen=True)
class Grammar:
    """A Markdown image grammar.

    `pattern` must expose the named groups `alt` and `target`, plus `key`
    (the embedded id or data) and optionally `media_type`.
    """

    kind: ReferenceKind
    pattern: re.Pattern


DATA_URI = Grammar(
    kind=ReferenceKind.DATA_URI,
    pattern=re.compile(
        r"!\[(?P<alt>[^\]]*)\]"
        r"\((?P<target>data:image/(?P<media_type>[a-zA-Z0-9.+-]+);base64,"
        r"(?P<key>[A-Za-z0-9+/]+={0,2}))\)"
    ),
)
IMAGES_PATH = Grammar(
    kind=ReferenceKind.IMAGES_PATH,
    pattern=re.compile(
        r"!\[(?P<alt>[^\]]*)\]\((?P<target>/images/(?P<key>[a-zA-Z0-9_-]+))\)"
    ),
)
TEMP_URI = Grammar(
    kind=ReferenceKind.TEMP_URI,
    pattern=re.compile(
        r"!\[(?P<alt>[^\]]*)\]\((?P<target>temp://(?P<key>[a-zA-Z0-9]+))\)"
    ),
)

ALL_GRAMMARS = (DATA_URI, IMAGES_PATH, TEMP_URI)


@dataclass(frozen=True)
class ImageEntry:
    """Image bytes held for one editing session, as Base64 text."""

    base64: str
    filename: str


@dataclass(frozen=True)
class ImageReference:
    """One distinct image reference found in Markdown.

    `target` is the exact text between the parentheses and is what the
    rewriter replaces. `key` is the placeholder id, or the Base64 payload for
    inline data URIs.
    """

    target: str
    kind: ReferenceKind
    key: str
    media_type: Optional[str] = None
    # Other targets embedding the same image, such as `temp://id` next to
    # `/images/id`, or one payload under two media types.
    aliases: Tuple[str, ...] = ()

    @property
    def is_inline(self) -> bool:
        return self.kind == ReferenceKind.DATA_URI

    @property
    def identity(self) -> Tuple[bool, str]:
        return self.is_inline, self.key

    @property
    def targets(self) -> Tuple[str, ...]:
        return (self.target,) + self.aliases


def placeholder_target(prefix: str, image_id: str) -> str:
    return f"{prefix}{image_id}"


def scan(markdown: str, grammars: Sequence[Grammar] = ALL_GRAMMARS) -> List[ImageReference]:
    """
    Returns the distinct image references in `markdown`, in order of first
    appearance.

    References embedding the same placeholder id, or the same inline data,
    collapse into one entry so each image is uploaded once; the other
    targets are kept as `aliases`. Partially typed or malformed references
    do not match any grammar and are ignored.
    """
    found = []
    for grammar in grammars:
        for match in grammar.pattern.finditer(markdown or ""):
            found.append((match.start(), _to_reference(grammar, match)))
    found.sort(key=lambda item: item[0])

    distinct: Dict[Tuple[bool, str], ImageReference] = {}
    for _, reference in found:
        first = distinct.get(reference.identity)
        if first is None:
            distinct[reference.identity] = reference
        elif reference.target not in first.targets:
            distinct[reference.identity] = replace(
                first, aliases=first.aliases + (reference.target,)
            )
    return list(distinct.values())


def _to_reference(grammar: Grammar, match: re.Match) -> ImageReference:
    groups = match.groupdict()
    return ImageReference(
        target=groups["target"],
        kind=grammar.kind,
        key=groups["key"],
        media_type=groups.get("media_type"),
    )
