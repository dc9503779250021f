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

"""Domain errors raised by the content service and mapped to HTTP by routes."""


class ContentServiceError(Exception):
    """Base class for errors surfaced to the caller of a service operation."""


class AuthenticationError(ContentServiceError):
    """The caller could not be authenticated (missing or rejected token)."""


class AuthorizationError(ContentServiceError):
    """The caller is authenticated but not allowed to sign in."""


class PermissionDeniedError(ContentServiceError):
    """The caller may not modify the requested resource."""


class NotFoundError(ContentServiceError):
    """A referenced document does not exist."""


class SubmissionInProgressError(ContentServiceError):
    """A submit for the same user is already running."""


class InvalidImageError(ContentServiceError):
    """An attached file is empty, too large or not a readable image."""
