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

"""Content part variants carried by backend and tool responses.

A response is an ordered sequence of parts. The variant set is closed:
plain text, a structured template tree, or an encoded data blob.
"""

from dataclasses import dataclass
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class TextPart:
    """Literal text."""

    value: str


@dataclass(frozen=True)
class TemplatePart:
    """Structured template payload.

    ``value`` is a TemplateNode, its dict form, or its JSON form. Anything
    that does not validate as a template falls back to ``str(value)`` when
    rendered.
    """

    value: Any


@dataclass(frozen=True)
class DataPart:
    """Encoded data with a declared MIME type."""

    data: bytes
    mime_type: str

    @classmethod
    def text(cls, value: str, mime_type: str = "text/plain") -> "DataPart":
        return cls(data=value.encode("utf-8"), mime_type=mime_type)

    @classmethod
    def json(cls, value: str) -> "DataPart":
        return cls(data=value.encode("utf-8"), mime_type="application/json")


ContentPart = Union[TextPart, TemplatePart, DataPart]


class TemplateNode(BaseModel):
    """One node of a structured template tree.

    ``text`` nodes carry a literal; ``element`` nodes concatenate their
    children and, when ``tag`` is set, wrap them in ``<tag>`` lines.
    ``priority`` is used by budgeted renderers to prune low-priority nodes;
    full expansion keeps every node.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["text", "element"] = Field(description="Node kind")
    text: str = Field(default="", description="Literal text for text nodes")
    tag: Optional[str] = Field(default=None, description="Wrapping tag for element nodes")
    priority: Optional[int] = Field(default=None, description="Pruning priority")
    children: list["TemplateNode"] = Field(default_factory=list, description="Child nodes")


TemplateNode.model_rebuild()
