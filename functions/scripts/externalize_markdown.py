"""
Externalize inline images of a Markdown file.

Every `data:image/...;base64,` image in the file is uploaded to the configured
image host and replaced by its public URL. The rewritten Markdown is written
to --output (or back to the input with --in-place).
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.dependencies import get_db_client, get_image_host, get_uploader
from image_pipeline import placeholders
from image_pipeline.pipeline import externalize_images
from image_pipeline.placeholders import DATA_URI
from image_pipeline.uploader import CredentialMissingError, ImageUploadError

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("input", type=Path, help="Markdown file to process")
    parser.add_argument("--output", type=Path, default=None, help="Where to write the result")
    parser.add_argument(
        "--in-place",
        action="store_true",
        help="Overwrite the input file",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report how many images would be uploaded without uploading",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    if not args.output and not args.in_place and not args.dry_run:
        parser.error("pass --output, --in-place or --dry-run")

    markdown = args.input.read_text(encoding="utf-8")
    references = placeholders.scan(markdown, (DATA_URI,))
    if args.dry_run:
        logger.info("Would upload %d image(s) from %s", len(references), args.input)
        return 0

    uploader = get_uploader(db=get_db_client(), host=get_image_host())
    try:
        result = externalize_images(markdown, None, grammars=(DATA_URI,), uploader=uploader)
    except CredentialMissingError as e:
        logger.error("%s", e)
        return 1
    except ImageUploadError as e:
        for failure in e.failures:
            logger.error("Upload failed for %s: %s", failure.target[:48], failure.reason)
        return 1

    destination = args.input if args.in_place else args.output
    destination.write_text(result.markdown, encoding="utf-8")
    logger.info("Uploaded %d image(s); wrote %s", len(result.uploaded), destination)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
