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

"""
Externalizes images embedded in article Markdown.

A submit scans the Markdown for image references, uploads each distinct one
and rewrites the references to the returned public URLs. Create and edit
flows share this module and differ only in their `SubmitProfile`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from image_pipeline import placeholders, rewriter
from image_pipeline.placeholders import DATA_URI, IMAGES_PATH, TEMP_URI, Grammar, ImageEntry
from image_pipeline.uploader import Uploader
from shared.experience import CREATE_XP_RULE, EDIT_XP_RULE, XpRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmitProfile:
    """Parameters that distinguish one submit flow from another."""

    name: str
    xp_rule: XpRule
    grammars: Tuple[Grammar, ...]
    placeholder_prefix: str


CREATE_PROFILE = SubmitProfile(
    name="create",
    xp_rule=CREATE_XP_RULE,
    grammars=(DATA_URI, IMAGES_PATH),
    placeholder_prefix="/images/",
)
EDIT_PROFILE = SubmitProfile(
    name="edit",
    xp_rule=EDIT_XP_RULE,
    grammars=(DATA_URI, IMAGES_PATH, TEMP_URI),
    placeholder_prefix="temp://",
)


@dataclass
class ExternalizeResult:
    markdown: str
    uploaded: Dict[str, str] = field(default_factory=dict)
    unresolved: List[str] = field(default_factory=list)


def externalize_images(
    markdown: str,
    image_map: Optional[Mapping[str, ImageEntry]],
    *,
    grammars: Tuple[Grammar, ...],
    uploader: Uploader,
) -> ExternalizeResult:
    """
    Uploads the images referenced in `markdown` and rewrites the references.

    Raises:
        CredentialMissingError: If the host credential is absent.
        ImageUploadError: If any upload fails. Nothing is rewritten then.
    """
    references = placeholders.scan(markdown, grammars)
    if not references:
        return ExternalizeResult(markdown=markdown)

    logger.info("Externalizing %d image reference(s)", len(references))
    outcome = uploader.upload_all(references, image_map)
    rewritten = rewriter.rewrite(markdown, outcome.uploaded, grammars)
    return ExternalizeResult(
        markdown=rewritten,
        uploaded=outcome.uploaded,
        unresolved=outcome.unresolved,
    )
