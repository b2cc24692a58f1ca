# /*
# Copyright 2026 The Demo Bootstrap Authors.
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
# */

"""Fatal bootstrap error type."""

from __future__ import annotations


class BootstrapError(RuntimeError):
    """A fatal failure that aborts the run.

    Attributes:
        step: Name of the procedure step that failed (e.g. ``tools``).
        message: What went wrong.
        remedy: Command or hint the operator can use to investigate, if any.
    """

    def __init__(self, step: str, message: str, remedy: str | None = None) -> None:
        self.step = step
        self.message = message
        self.remedy = remedy
        super().__init__(str(self))

    def __str__(self) -> str:
        text = f"[{self.step}] {self.message}"
        if self.remedy:
            text += f" (try: {self.remedy})"
        return text
