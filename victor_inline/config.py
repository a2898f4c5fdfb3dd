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

"""Inline completion settings.

Settings are plain dataclasses with defaults suitable for a local
OpenAI-compatible server. They can be loaded from YAML:

```yaml
window:
  lines_before: 80
  lines_after: 10
timing:
  debounce_ms: 50
  provider_timeout_ms: 200
max_candidates: 3
backend:
  base_url: http://localhost:11434/v1
  model: qwen2.5-coder:1.5b
  fim_template: qwen
registration:
  group_id: completions
  excludes: [other.completions]
```

and the backend endpoint, model and API key can be overridden through the
VICTOR_INLINE_BASE_URL, VICTOR_INLINE_MODEL and VICTOR_INLINE_API_KEY
environment variables.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional, Union

import yaml

logger = logging.getLogger(__name__)

ENV_API_KEY = "VICTOR_INLINE_API_KEY"
ENV_BASE_URL = "VICTOR_INLINE_BASE_URL"
ENV_MODEL = "VICTOR_INLINE_MODEL"

SECTIONS = frozenset({"window", "timing", "max_candidates", "backend", "registration"})


@dataclass
class BackendSettings:
    """Completion backend configuration."""

    base_url: str = "http://localhost:11434/v1"
    model: str = "qwen2.5-coder:1.5b"
    api_key: Optional[str] = None
    fim_template: Optional[str] = None  # Derived from the model name when unset
    max_tokens: int = 200
    temperature: float = 0.2
    stop: list[str] = field(default_factory=lambda: ["\n\n", "```"])
    timeout_seconds: float = 10.0
    azure_api_version: str = "2024-12-01-preview"  # Only used for Azure endpoints


@dataclass
class RegistrationSettings:
    """Metadata requested when registering with the host."""

    selector: str = "**"
    group_id: Optional[str] = "completions"
    excludes: list[str] = field(default_factory=list)
    debounce_delay_ms: Optional[int] = 0
    display_name: Optional[str] = "Victor Inline Completions"
    yield_to: list[str] = field(default_factory=list)


@dataclass
class InlineCompletionSettings:
    """Top-level settings for the inline completion pipeline."""

    lines_before: int = 100
    lines_after: int = 20
    debounce_ms: float = 75.0
    provider_timeout_ms: float = 150.0
    max_candidates: int = 3
    backend: BackendSettings = field(default_factory=BackendSettings)
    registration: RegistrationSettings = field(default_factory=RegistrationSettings)

    def __post_init__(self) -> None:
        for name in ("lines_before", "lines_after", "max_candidates", "debounce_ms", "provider_timeout_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InlineCompletionSettings":
        """Build settings from a (YAML-shaped) dictionary.

        Unknown keys are ignored with a warning.

        Raises:
            ValueError: If a section is not a mapping or a value is invalid
        """
        unknown = set(data) - SECTIONS
        if unknown:
            logger.warning(f"Ignoring unknown settings keys: {sorted(unknown)}")
        window = _section(data, "window", known={"lines_before", "lines_after"})
        timing = _section(data, "timing", known={"debounce_ms", "provider_timeout_ms"})
        return cls(
            lines_before=int(window.get("lines_before", cls.lines_before)),
            lines_after=int(window.get("lines_after", cls.lines_after)),
            debounce_ms=float(timing.get("debounce_ms", cls.debounce_ms)),
            provider_timeout_ms=float(timing.get("provider_timeout_ms", cls.provider_timeout_ms)),
            max_candidates=int(data.get("max_candidates", cls.max_candidates)),
            backend=_build(BackendSettings, _section(data, "backend")),
            registration=_build(RegistrationSettings, _section(data, "registration")),
        )


def _section(data: dict[str, Any], name: str, known: Optional[set[str]] = None) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Settings section {name!r} must be a mapping, got {type(section).__name__}")
    if known is not None and set(section) - known:
        logger.warning(f"Ignoring unknown {name} keys: {sorted(set(section) - known)}")
    return section


def _build(settings_class: type, data: dict[str, Any]) -> Any:
    known = {f.name for f in fields(settings_class)}
    unknown = set(data) - known
    if unknown:
        logger.warning(f"Ignoring unknown {settings_class.__name__} keys: {sorted(unknown)}")
    return settings_class(**{k: v for k, v in data.items() if k in known})


def apply_env_overrides(
    settings: InlineCompletionSettings,
    environ: Optional[dict[str, str]] = None,
) -> InlineCompletionSettings:
    """Apply backend overrides from the environment in place."""
    env = os.environ if environ is None else environ
    if env.get(ENV_API_KEY):
        settings.backend.api_key = env[ENV_API_KEY]
    if env.get(ENV_BASE_URL):
        settings.backend.base_url = env[ENV_BASE_URL]
    if env.get(ENV_MODEL):
        settings.backend.model = env[ENV_MODEL]
    return settings


def load_settings(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[dict[str, str]] = None,
) -> InlineCompletionSettings:
    """Load settings from a YAML file plus environment overrides.

    Args:
        path: YAML file, defaults only when None
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Loaded settings. A file that cannot be read or parsed is logged and
        the defaults are used instead.

    Raises:
        ValueError: If a value in the file is invalid
    """
    data: dict[str, Any] = {}
    if path is not None:
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load settings from {path}: {e}")
            data = {}
        if not isinstance(data, dict):
            logger.error(f"Settings file {path} must contain a mapping")
            data = {}

    settings = InlineCompletionSettings.from_dict(data)
    return apply_env_overrides(settings, environ)
