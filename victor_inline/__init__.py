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

"""Victor inline completions.

Ghost-text code completion for editors, backed by any OpenAI-compatible
completions endpoint.

Package Structure:
    errors.py                 - Error taxonomy
    config.py                 - Settings loaded from YAML and environment
    completion/               - Request pipeline (context, coordinator, fetchers)
    content/                  - Rendering of multi-part response content
    cli.py                    - Command line entry point
"""

from victor_inline.completion import (
    CompletionCoordinator,
    CompletionResult,
    DocumentSnapshot,
    Position,
)
from victor_inline.config import InlineCompletionSettings, load_settings

__version__ = "0.1.0"

__all__ = [
    "CompletionCoordinator",
    "CompletionResult",
    "DocumentSnapshot",
    "InlineCompletionSettings",
    "Position",
    "load_settings",
]
