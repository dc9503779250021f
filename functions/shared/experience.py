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

"""Experience points and the level derived from them."""

from dataclasses import dataclass
from typing import Optional, Tuple

XP_PER_LEVEL = 100


@dataclass(frozen=True)
class XpRule:
    """How much experience a submitted article is worth.

    The gain is the larger of a fixed floor and the content length divided by
    `divisor`, so short articles still earn `floor_gain`.
    """

    floor_gain: int
    divisor: int

    def gain(self, content: str) -> int:
        return max(self.floor_gain, len(content or "") // self.divisor)


CREATE_XP_RULE = XpRule(floor_gain=30, divisor=10)
EDIT_XP_RULE = XpRule(floor_gain=10, divisor=20)


def level_for(xp: int) -> int:
    return xp // XP_PER_LEVEL + 1


def progress_percent(xp: int) -> int:
    """Progress towards the next level, in percent."""
    return xp % XP_PER_LEVEL


def apply_gain(prior_xp: Optional[int], gain: int) -> Tuple[int, int]:
    """
    Adds `gain` to `prior_xp` and returns the new (xp, level) pair.

    A missing prior value counts as 0. Negative gains are rejected since xp
    never decreases.
    """
    if gain < 0:
        raise ValueError(f"xp gain must not be negative, got {gain}")
    new_xp = (prior_xp or 0) + gain
    return new_xp, level_for(new_xp)
