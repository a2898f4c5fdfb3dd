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

"""Fill-In-the-Middle (FIM) prompt construction and cleanup."""

import logging
from typing import Sequence

from victor_inline.completion.protocol import ContextFragment

logger = logging.getLogger(__name__)


# FIM prompt templates per model family
FIM_TEMPLATES = {
    "default": {
        "prefix": "<PRE>",
        "suffix": "<SUF>",
        "middle": "<MID>",
        "format": "{prefix}{pre}{suffix}{suf}{middle}",
    },
    "codellama": {
        "prefix": "<PRE>",
        "suffix": " <SUF>",
        "middle": " <MID>",
        "format": "{prefix} {pre}{suffix}{suf}{middle}",
    },
    "starcoder": {
        "prefix": "<fim_prefix>",
        "suffix": "<fim_suffix>",
        "middle": "<fim_middle>",
        "format": "{prefix}{pre}{suffix}{suf}{middle}",
    },
    "deepseek": {
        "prefix": "<｜fim▁begin｜>",
        "suffix": "<｜fim▁hole｜>",
        "middle": "<｜fim▁end｜>",
        "format": "{prefix}{pre}{suffix}{suf}{middle}",
    },
    "qwen": {
        "prefix": "<|fim_prefix|>",
        "suffix": "<|fim_suffix|>",
        "middle": "<|fim_middle|>",
        "format": "{prefix}{pre}{suffix}{suf}{middle}",
    },
}

MIN_SUFFIX_OVERLAP = 4

END_TOKENS = ("<|endoftext|>", "</s>", "<|im_end|>", "```", "<|end|>")

_LINE_COMMENTS = {
    "python": "#",
    "ruby": "#",
    "shellscript": "#",
    "yaml": "#",
    "toml": "#",
    "r": "#",
    "sql": "--",
    "lua": "--",
    "haskell": "--",
}


def template_for_model(model: str) -> str:
    """Pick a FIM template name from a model name."""
    model_lower = model.lower()
    for family in ("codellama", "starcoder", "deepseek", "qwen"):
        if family in model_lower:
            return family
    return "default"


def comment_prefix(language: str) -> str:
    """Line comment marker for a language (``//`` when unknown)."""
    return _LINE_COMMENTS.get(language.lower(), "//")


def render_fragments(fragments: Sequence[ContextFragment], language: str) -> str:
    """Render context fragments as a comment block placed before the prefix."""
    if not fragments:
        return ""
    marker = comment_prefix(language)
    lines: list[str] = []
    for fragment in fragments:
        if fragment.uri:
            lines.append(f"{marker} Path: {fragment.uri}")
        for line in fragment.content.split("\n"):
            lines.append(f"{marker} {line}".rstrip())
    return "\n".join(lines) + "\n"


def build_fim_prompt(
    prefix: str,
    suffix: str,
    template: str = "default",
    preamble: str = "",
) -> str:
    """Build a Fill-In-the-Middle prompt.

    Args:
        prefix: Text before cursor
        suffix: Text after cursor
        template: FIM template name
        preamble: Text placed before the prefix (rendered context fragments)

    Returns:
        FIM formatted prompt
    """
    if template not in FIM_TEMPLATES:
        logger.debug(f"Unknown FIM template {template!r}, using default")
    tokens = FIM_TEMPLATES.get(template, FIM_TEMPLATES["default"])
    return tokens["format"].format(
        prefix=tokens["prefix"],
        pre=preamble + prefix,
        suffix=tokens["suffix"],
        suf=suffix,
        middle=tokens["middle"],
    )


def clean_completion(completion: str, suffix: str) -> str:
    """Clean up raw completion text.

    Removes FIM tokens, trailing end tokens and whitespace, and a trailing
    run of at least MIN_SUFFIX_OVERLAP characters that repeats the start of
    the suffix. Shorter overlaps such as a closing bracket are kept.

    Args:
        completion: Raw completion text
        suffix: Text after the cursor

    Returns:
        Cleaned completion
    """
    for tokens in FIM_TEMPLATES.values():
        for key in ("prefix", "suffix", "middle"):
            completion = completion.replace(tokens[key].strip(), "")

    for token in END_TOKENS:
        if completion.endswith(token):
            completion = completion[: -len(token)]

    completion = completion.rstrip()

    if suffix:
        suffix_start = suffix.lstrip()[:50]
        for size in range(len(suffix_start), MIN_SUFFIX_OVERLAP - 1, -1):
            if completion.endswith(suffix_start[:size]):
                completion = completion[:-size].rstrip()
                break

    return completion
