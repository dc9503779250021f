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

"""Turns uploaded image files into session entries and Markdown placeholders."""

from __future__ import annotations

import base64
import io
import logging

from PIL import Image, UnidentifiedImageError

from image_pipeline.placeholders import ImageEntry, placeholder_target
from shared.errors import InvalidImageError

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024


def load_image_entry(
    data: bytes, filename: str, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES
) -> ImageEntry:
    """
    Validates `data` as an image and encodes it as a data URL.

    Raises:
        InvalidImageError: If the file is empty, too large or unreadable.
    """
    if not data:
        raise InvalidImageError("The image file is empty.")
    if len(data) > max_bytes:
        raise InvalidImageError(f"The image file exceeds the limit of {max_bytes} bytes.")
    try:
        with Image.open(io.BytesIO(data)) as img:
            image_format = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.warning("Rejected attachment %s: %s", filename, e)
        raise InvalidImageError(f"Could not read {filename} as an image.") from e

    mime_type = Image.MIME.get(image_format or "", "image/png")
    encoded = base64.b64encode(data).decode("ascii")
    return ImageEntry(base64=f"data:{mime_type};base64,{encoded}", filename=filename)


def image_markdown(filename: str, prefix: str, image_id: str) -> str:
    """Markdown snippet inserted into the editor for a newly attached image."""
    return f"\n![Image: {filename}]({placeholder_target(prefix, image_id)})\n"
