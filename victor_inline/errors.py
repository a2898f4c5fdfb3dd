# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
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

"""Error taxonomy for the inline completion pipeline.

Only OutOfRangePosition reaches the host; every other error is recovered
inside the pipeline and degrades to fewer or no candidates.
"""

from typing import Optional


class InlineCompletionError(Exception):
    """Base class for inline completion errors."""


class OutOfRangePosition(InlineCompletionError, ValueError):
    """A position does not resolve to an offset inside the document text."""

    def __init__(self, line: int, character: int, reason: str):
        super().__init__(f"Position {line}:{character} is out of range: {reason}")
        self.line = line
        self.character = character
        self.reason = reason


class ProviderTimeout(InlineCompletionError):
    """A context provider exceeded its time budget."""


class BackendError(InlineCompletionError):
    """The completion backend failed or returned an unusable response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(InlineCompletionError):
    """Credentials could not be obtained for a backend request."""


class RenderFailure(InlineCompletionError):
    """A structured content part could not be expanded."""
