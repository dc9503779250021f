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

"""Documents stored by the content service."""

from dataclasses import dataclass, field
from typing import List, Optional

from shared.experience import level_for


@dataclass
class Article:
    id: str
    title: str
    content: str
    author_id: str
    author_avatar_url: Optional[str] = None
    editors: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    created_at: Optional[float] = None
    # Stored exactly as submitted by the client.
    discord: bool = False

    def can_be_edited_by(self, uid: Optional[str]) -> bool:
        if not uid:
            return False
        return uid == self.author_id or uid in self.editors


@dataclass
class UserProfile:
    uid: str
    display_name: str = ""
    avatar_url: str = ""
    bio: str = ""
    xp: int = 0
    level: int = 1

    def __post_init__(self):
        # Older documents may lack xp/level; level always follows xp.
        self.xp = self.xp or 0
        self.level = level_for(self.xp)


@dataclass
class Tag:
    name: str


@dataclass
class SeriesEntry:
    article_id: str
    order: int
    title: str


@dataclass
class Series:
    id: str
    title: str
    created_at: Optional[float] = None
    articles: List[SeriesEntry] = field(default_factory=list)

    def sorted_articles(self) -> List[SeriesEntry]:
        return sorted(self.articles, key=lambda entry: entry.order)


@dataclass
class CompositeDocument:
    """A titled, ordered bundle of existing articles shown as one document."""

    id: str
    title: str
    article_ids: List[str] = field(default_factory=list)
    created_at: Optional[float] = None
