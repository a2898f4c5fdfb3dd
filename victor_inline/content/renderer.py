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

"""Content renderer.

Flattens an ordered sequence of content parts into display strings. Each
part is rendered on its own: a template that fails to expand falls back to
its raw value, data that cannot be decoded falls back to base64, and the
remaining parts are still rendered. Parts of unknown type are skipped so
newer backends can add variants.
"""

import json
import logging
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from victor_inline.content.decoders import DataDecoderRegistry, MimeType, encode_base64
from victor_inline.content.parts import DataPart, TemplateNode, TemplatePart, TextPart
from victor_inline.errors import RenderFailure

logger = logging.getLogger(__name__)

MAX_TEMPLATE_DEPTH = 64


class ContentRenderer:
    """Renders content parts to strings."""

    def __init__(self, decoders: Optional[DataDecoderRegistry] = None):
        self._decoders = decoders or DataDecoderRegistry.default()

    def render(self, parts: Iterable[Any]) -> list[str]:
        """Render parts in order.

        Args:
            parts: Ordered content parts

        Returns:
            One string per rendered part, in input order. Skipped parts
            contribute nothing.
        """
        rendered: list[str] = []
        for index, part in enumerate(parts):
            if isinstance(part, TextPart):
                rendered.append(part.value)
            elif isinstance(part, TemplatePart):
                rendered.append(self._render_template_part(part, index))
            elif isinstance(part, DataPart):
                rendered.append(self._render_data_part(part, index))
            else:
                logger.debug(f"Skipping unsupported content part #{index}: {type(part).__name__}")
        return rendered

    def render_to_string(self, parts: Iterable[Any], separator: str = "") -> str:
        return separator.join(self.render(parts))

    def _render_template_part(self, part: TemplatePart, index: int) -> str:
        try:
            return expand_template(part.value)
        except Exception as e:
            logger.debug(f"Template part #{index} fell back to raw value: {e}")
            return str(part.value)

    def _render_data_part(self, part: DataPart, index: int) -> str:
        try:
            return self._decoders.decode(part.data, part.mime_type)
        except Exception as e:
            logger.debug(f"Data part #{index} fell back to base64: {e}")
            return encode_base64(part.data, MimeType.parse(part.mime_type))


def expand_template(value: Any) -> str:
    """Fully expand a structured template, ignoring priorities.

    Args:
        value: TemplateNode, its dict form (optionally wrapped as
            ``{"node": {...}}``) or its JSON string form

    Returns:
        The expanded text

    Raises:
        RenderFailure: If the value is not a valid template
    """
    node = _to_node(value)
    return _expand(node, depth=0)


def _to_node(value: Any) -> TemplateNode:
    if isinstance(value, TemplateNode):
        return value
    try:
        if isinstance(value, (str, bytes)):
            value = json.loads(value)
        if isinstance(value, dict) and set(value) == {"node"}:
            value = value["node"]
        return TemplateNode.model_validate(value)
    except (ValidationError, ValueError, TypeError, RecursionError) as e:
        raise RenderFailure(f"Invalid template: {e}") from e


def _expand(node: TemplateNode, depth: int) -> str:
    if depth > MAX_TEMPLATE_DEPTH:
        raise RenderFailure(f"Template nesting exceeds {MAX_TEMPLATE_DEPTH} levels")
    if node.kind == "text":
        if node.children:
            raise RenderFailure("Text nodes cannot have children")
        return node.text

    body = "".join(_expand(child, depth + 1) for child in node.children)
    if node.tag:
        return f"<{node.tag}>\n{body}\n</{node.tag}>"
    return body
