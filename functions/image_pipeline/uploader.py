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
Uploads the images behind Markdown references to a remote image host.
"""

from __future__ import annotations

import concurrent.futures
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from image_pipeline.hosts import ImageHost, ImageHostError
from image_pipeline.placeholders import ImageEntry, ImageReference
from shared import ids

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "png"
DEFAULT_MAX_WORKERS = 4
UPLOAD_FILENAME_LENGTH = 10

_FILENAME_EXTENSION = re.compile(r"\.([a-zA-Z0-9]+)$")

CredentialProvider = Callable[[], str]


class CredentialMissingError(Exception):
    """The image host credential could not be found."""


@dataclass
class FailedUpload:
    target: str
    reason: str


class ImageUploadError(Exception):
    """One or more images of a submit could not be uploaded."""

    def __init__(self, failures: List[FailedUpload]):
        self.failures = failures
        summary = ", ".join(f"{f.target[:48]}: {f.reason}" for f in failures)
        super().__init__(f"{len(failures)} image upload(s) failed ({summary})")


@dataclass(frozen=True)
class PreparedImage:
    filename: str
    content_base64: str


@dataclass
class UploadOutcome:
    uploaded: Dict[str, str] = field(default_factory=dict)
    unresolved: List[str] = field(default_factory=list)


def strip_data_url(base64_text: str) -> str:
    """Drops a `data:...;base64,` prefix if present."""
    text = base64_text.strip()
    return text.split(",", 1)[1] if "," in text else text


def infer_extension(
    media_type: Optional[str] = None, filename: Optional[str] = None
) -> str:
    """
    Picks the file extension for an uploaded image.

    The data URI media type wins, then the original filename's extension,
    and `png` otherwise. Structured media types keep their base name, so
    `svg+xml` becomes `svg`.
    """
    if media_type:
        return media_type.split("+", 1)[0]
    if filename:
        match = _FILENAME_EXTENSION.search(filename)
        if match:
            return match.group(1)
    return DEFAULT_EXTENSION


def prepare_image(
    reference: ImageReference, image_map: Mapping[str, ImageEntry]
) -> Optional[PreparedImage]:
    """
    Resolves the bytes behind `reference` and names the remote file.

    Returns None when a placeholder id has no entry in `image_map`.
    """
    if reference.is_inline:
        content = reference.key
        extension = infer_extension(media_type=reference.media_type)
    else:
        entry = image_map.get(reference.key)
        if entry is None:
            return None
        content = strip_data_url(entry.base64)
        extension = infer_extension(filename=entry.filename)
    # No content-hash dedup: identical bytes uploaded twice get two names.
    filename = f"{ids.short_id(UPLOAD_FILENAME_LENGTH)}.{extension}"
    return PreparedImage(filename=filename, content_base64=content)


class Uploader:
    """
    Uploads every resolvable reference of one submit concurrently.

    The credential is fetched once per call, and only when there is at least
    one image to upload. A single failed upload fails the whole call.
    """

    def __init__(
        self,
        host: ImageHost,
        credential_provider: Optional[CredentialProvider] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        self.host = host
        self.credential_provider = credential_provider
        self.max_workers = max(1, max_workers)

    def upload_all(
        self,
        references: Sequence[ImageReference],
        image_map: Optional[Mapping[str, ImageEntry]] = None,
    ) -> UploadOutcome:
        image_map = image_map or {}
        outcome = UploadOutcome()
        jobs: List[Tuple[ImageReference, PreparedImage]] = []
        for reference in references:
            prepared = prepare_image(reference, image_map)
            if prepared is None:
                logger.warning(
                    "No session image for placeholder %s; leaving it as is",
                    reference.target,
                )
                outcome.unresolved.extend(reference.targets)
                continue
            jobs.append((reference, prepared))

        if not jobs:
            return outcome

        credential = self.credential_provider() if self.credential_provider else None

        failures: List[FailedUpload] = []
        workers = min(self.max_workers, len(jobs))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(
                    self.host.create_file,
                    prepared.filename,
                    prepared.content_base64,
                    credential,
                ): (reference, prepared)
                for reference, prepared in jobs
            }
            for future in concurrent.futures.as_completed(futures):
                reference, prepared = futures[future]
                try:
                    url = future.result()
                except ImageHostError as e:
                    logger.error(
                        "Image upload failed for %s: %s", prepared.filename, e.message
                    )
                    failures.append(FailedUpload(target=reference.target, reason=e.message))
                    continue
                for target in reference.targets:
                    outcome.uploaded[target] = url

        if failures:
            raise ImageUploadError(failures)

        logger.info("Uploaded %d image(s)", len(jobs))
        return outcome
