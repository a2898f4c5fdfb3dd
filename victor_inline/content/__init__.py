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

"""Rendering of multi-part response content."""

from victor_inline.content.decoders import DataDecoderRegistry, MimeType
from victor_inline.content.parts import (
    ContentPart,
    DataPart,
    TemplateNode,
    TemplatePart,
    TextPart,
)
from victor_inline.content.renderer import ContentRenderer, expand_template

__all__ = [
    "ContentPart",
    "ContentRenderer",
    "DataDecoderRegistry",
    "DataPart",
    "MimeType",
    "TemplateNode",
    "TemplatePart",
    "TextPart",
    "expand_template",
]
