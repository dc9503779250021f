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

"""Conversions between Python dataclasses and camelCase document payloads."""

import re
from dataclasses import asdict
from typing import Any, Literal, Type, TypeVar

from dacite import Config, from_dict

T = TypeVar("T")

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

# Stored under these exact names by every client of the collections.
LITERAL_KEYS = frozenset({"created_at"})


def snake_to_camel(name: str) -> str:
    if name in LITERAL_KEYS:
        return name
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def convert_keys(
    data: Any, direction: Literal["snake_to_camel", "camel_to_snake"]
) -> Any:
    """
    Recursively renames dictionary keys.

    Values are left untouched apart from nested dicts and lists, so strings
    such as article content are never rewritten.
    """
    convert = snake_to_camel if direction == "snake_to_camel" else camel_to_snake
    if isinstance(data, dict):
        return {
            convert(key) if isinstance(key, str) else key: convert_keys(value, direction)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [convert_keys(item, direction) for item in data]
    return data


def to_document(obj: Any) -> dict:
    """Serializes a dataclass into a camelCase document."""
    return convert_keys(asdict(obj), "snake_to_camel")


def from_document(data_class: Type[T], data: dict) -> T:
    """Builds `data_class` from a camelCase document, ignoring unknown keys."""
    return from_dict(
        data_class=data_class,
        data=convert_keys(data, "camel_to_snake"),
        config=Config(check_types=False),
    )
