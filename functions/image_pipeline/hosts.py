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
Remote hosts that store externalized images and serve them publicly.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Optional, Protocol

import boto3
import requests
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

REQUEST_TIMEOUT = 30  # seconds

GITHUB_API_URL = "https://api.github.com"


class ImageHostError(Exception):
    """The remote host rejected or failed a file creation."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ImageHost(Protocol):
    """Creates one remote file per call and returns its public URL."""

    def create_file(
        self, filename: str, content_base64: str, credential: Optional[str] = None
    ) -> str:
        ...


@dataclass
class InMemoryImageHost:
    """Test double that records created files."""

    base_url: str = "https://example.test/images"
    files: dict = field(default_factory=dict)
    credentials: list = field(default_factory=list)
    fail_for: set = field(default_factory=set)

    def create_file(
        self, filename: str, content_base64: str, credential: Optional[str] = None
    ) -> str:
        self.credentials.append(credential)
        if filename in self.fail_for or content_base64 in self.fail_for:
            raise ImageHostError(f"Simulated failure for {filename}", status_code=422)
        self.files[filename] = content_base64
        return f"{self.base_url}/{filename}"


@dataclass
class GitHubContentsHost:
    """
    Stores images in a GitHub repository through the contents API.

    Each call issues a single PUT that creates a commit adding the file. The
    public URL is built from the repository path rather than read from the
    response.
    """

    owner: str
    repo: str
    directory: str = "static/images"
    branch: str = "main"
    api_url: str = GITHUB_API_URL
    timeout: float = REQUEST_TIMEOUT

    def contents_url(self, filename: str) -> str:
        return (
            f"{self.api_url.rstrip('/')}/repos/{self.owner}/{self.repo}"
            f"/contents/{self.directory.strip('/')}/{filename}"
        )

    def public_url(self, filename: str) -> str:
        return (
            f"https://github.com/{self.owner}/{self.repo}/raw/{self.branch}"
            f"/{self.directory.strip('/')}/{filename}"
        )

    def create_file(
        self, filename: str, content_base64: str, credential: Optional[str] = None
    ) -> str:
        payload = {"message": f"Add image: {filename}", "content": content_base64}
        headers = {"Content-Type": "application/json"}
        if credential:
            headers["Authorization"] = f"token {credential}"
        try:
            response = requests.put(
                self.contents_url(filename),
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ImageHostError(f"Request to image repository failed: {e}") from e

        if not response.ok:
            raise ImageHostError(
                _error_message(response), status_code=response.status_code
            )
        return self.public_url(filename)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {response.status_code}"


@dataclass
class CosImageHost:
    """
    Stores images in an S3-compatible bucket (Tencent COS) with public reads.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str
    prefix: str = "static/images"

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def create_file(
        self, filename: str, content_base64: str, credential: Optional[str] = None
    ) -> str:
        key = f"{self.prefix.strip('/')}/{filename}"
        try:
            body = base64.b64decode(content_base64, validate=True)
        except ValueError as e:
            raise ImageHostError(f"Invalid Base64 content for {filename}: {e}") from e
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=_content_type(filename),
            )
        except (BotoCoreError, ClientError) as e:
            raise ImageHostError(f"Upload to bucket failed: {e}") from e
        return f"{self.public_base_url.rstrip('/')}/{key}"


def _content_type(filename: str) -> str:
    extension = filename.rsplit(".", 1)[-1].lower()
    if extension == "jpg":
        extension = "jpeg"
    if extension == "svg":
        return "image/svg+xml"
    return f"image/{extension}"
