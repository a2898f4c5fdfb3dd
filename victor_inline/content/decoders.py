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

"""Decoders that turn data parts into display strings.

Decoders are looked up by MIME type: exact type first, then structured
syntax suffix (``+json``), then major type wildcard (``text/*``), then the
fallback decoder.
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MimeType:
    """Parsed MIME type."""

    type: str
    subtype: str
    params: dict[str, str] = field(default_factory=dict, hash=False, compare=False)

    @property
    def essence(self) -> str:
        return f"{self.type}/{self.subtype}"

    @property
    def suffix(self) -> Optional[str]:
        if "+" in self.subtype:
            return "+" + self.subtype.rsplit("+", 1)[1]
        return None

    @property
    def charset(self) -> Optional[str]:
        return self.params.get("charset")

    @classmethod
    def parse(cls, value: str) -> "MimeType":
        """Parse a MIME type string such as ``text/plain; charset=utf-8``.

        Malformed values parse as ``application/octet-stream``.
        """
        essence, _, rest = value.partition(";")
        major, sep, minor = essence.strip().lower().partition("/")
        if not sep or not major or not minor:
            major, minor = "application", "octet-stream"

        params: dict[str, str] = {}
        for item in rest.split(";"):
            key, sep, param_value = item.partition("=")
            if sep:
                params[key.strip().lower()] = param_value.strip().strip('"')
        return cls(type=major, subtype=minor, params=params)


Decoder = Callable[[bytes, MimeType], str]


def decode_text(data: bytes, mime: MimeType) -> str:
    """Decode text-like data with its declared charset (UTF-8 by default).

    Charsets that are unknown or are not text encodings (``hex``,
    ``base64``) decode as UTF-8.
    """
    encoding = mime.charset or "utf-8"
    try:
        return data.decode(encoding, errors="replace")
    except (LookupError, UnicodeError) as e:
        logger.debug(f"Cannot decode with charset {encoding!r}, using utf-8: {e}")
        return data.decode("utf-8", errors="replace")


def describe_image(data: bytes, mime: MimeType) -> str:
    return f"[image: {mime.essence}, {len(data)} bytes]"


def encode_base64(data: bytes, mime: MimeType) -> str:
    return f"[{mime.essence};base64] {base64.b64encode(data).decode('ascii')}"


class DataDecoderRegistry:
    """Maps MIME types to decoders."""

    def __init__(self, fallback: Decoder = encode_base64):
        self._exact: dict[str, Decoder] = {}
        self._suffixes: dict[str, Decoder] = {}
        self._wildcards: dict[str, Decoder] = {}
        self._fallback = fallback

    def register(self, pattern: str, decoder: Decoder) -> None:
        """Register a decoder.

        Args:
            pattern: ``type/subtype``, ``type/*`` or a ``+suffix``
            decoder: Callable receiving the raw bytes and parsed MIME type
        """
        pattern = pattern.strip().lower()
        if pattern.startswith("+"):
            self._suffixes[pattern] = decoder
        elif pattern.endswith("/*"):
            self._wildcards[pattern[:-2]] = decoder
        else:
            self._exact[pattern] = decoder

    def resolve(self, mime: MimeType) -> Decoder:
        if mime.essence in self._exact:
            return self._exact[mime.essence]
        if mime.suffix and mime.suffix in self._suffixes:
            return self._suffixes[mime.suffix]
        if mime.type in self._wildcards:
            return self._wildcards[mime.type]
        return self._fallback

    def decode(self, data: bytes, mime_type: str) -> str:
        mime = MimeType.parse(mime_type)
        return self.resolve(mime)(data, mime)

    @classmethod
    def default(cls) -> "DataDecoderRegistry":
        """Registry with text, structured text and image decoders."""
        registry = cls()
        registry.register("text/*", decode_text)
        for essence in (
            "application/json",
            "application/xml",
            "application/javascript",
            "application/x-yaml",
            "application/yaml",
            "application/toml",
            "application/x-sh",
        ):
            registry.register(essence, decode_text)
        registry.register("+json", decode_text)
        registry.register("+xml", decode_text)
        registry.register("image/*", describe_image)
        return registry
