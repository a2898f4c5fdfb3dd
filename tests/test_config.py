# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for settings loading."""

import logging

import pytest

from victor_inline.config import (
    ENV_API_KEY,
    ENV_BASE_URL,
    ENV_MODEL,
    InlineCompletionSettings,
    load_settings,
)

SETTINGS_YAML = """\
window:
  lines_before: 10
  lines_after: 5
timing:
  debounce_ms: 0
  provider_timeout_ms: 300
max_candidates: 5
backend:
  base_url: http://example.test/v1
  model: starcoder2
  stop: ["\\n"]
registration:
  group_id: grp
  excludes: [other.provider]
"""


class TestLoadSettings:
    """YAML settings with environment overrides."""

    def test_defaults(self):
        settings = load_settings(environ={})

        assert settings.lines_before == 100
        assert settings.lines_after == 20
        assert settings.debounce_ms == 75.0
        assert settings.provider_timeout_ms == 150.0
        assert settings.max_candidates == 3
        assert settings.backend.max_tokens == 200
        assert settings.backend.temperature == 0.2
        assert settings.backend.stop == ["\n\n", "```"]
        assert settings.registration.selector == "**"
        assert settings.registration.group_id == "completions"

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(SETTINGS_YAML)

        settings = load_settings(path, environ={})

        assert settings.lines_before == 10
        assert settings.lines_after == 5
        assert settings.debounce_ms == 0.0
        assert settings.provider_timeout_ms == 300.0
        assert settings.max_candidates == 5
        assert settings.backend.base_url == "http://example.test/v1"
        assert settings.backend.model == "starcoder2"
        assert settings.backend.stop == ["\n"]
        assert settings.backend.max_tokens == 200
        assert settings.registration.group_id == "grp"
        assert settings.registration.excludes == ["other.provider"]

    def test_env_overrides(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(SETTINGS_YAML)
        environ = {
            ENV_API_KEY: "sk-test",
            ENV_BASE_URL: "https://api.example.test/v1",
            ENV_MODEL: "qwen2.5-coder:7b",
        }

        settings = load_settings(path, environ=environ)

        assert settings.backend.api_key == "sk-test"
        assert settings.backend.base_url == "https://api.example.test/v1"
        assert settings.backend.model == "qwen2.5-coder:7b"

    def test_empty_env_values_are_ignored(self):
        settings = load_settings(environ={ENV_MODEL: ""})

        assert settings.backend.model == "qwen2.5-coder:1.5b"

    @pytest.mark.parametrize("content", ["window: [unclosed", "- just\n- a list\n"])
    def test_unusable_file_falls_back_to_defaults(self, tmp_path, caplog, content):
        path = tmp_path / "settings.yaml"
        path.write_text(content)

        with caplog.at_level(logging.ERROR, logger="victor_inline.config"):
            settings = load_settings(path, environ={})

        assert settings == InlineCompletionSettings()
        assert caplog.records

    def test_missing_file_falls_back_to_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "absent.yaml", environ={})

        assert settings == InlineCompletionSettings()

    def test_unknown_keys_are_ignored(self, tmp_path, caplog):
        path = tmp_path / "settings.yaml"
        path.write_text("backend:\n  model: m\n  flavour: spicy\n")

        with caplog.at_level(logging.WARNING, logger="victor_inline.config"):
            settings = load_settings(path, environ={})

        assert settings.backend.model == "m"
        assert "flavour" in caplog.text

    def test_negative_values_rejected(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("window:\n  lines_before: -1\n")

        with pytest.raises(ValueError):
            load_settings(path, environ={})

    def test_unknown_top_level_keys_are_warned(self, tmp_path, caplog):
        path = tmp_path / "settings.yaml"
        path.write_text("max_candidates: 2\nwindw:\n  lines_before: 5\ntiming:\n  debunce_ms: 1\n")

        with caplog.at_level(logging.WARNING, logger="victor_inline.config"):
            settings = load_settings(path, environ={})

        assert settings.max_candidates == 2
        assert settings.lines_before == 100
        assert "windw" in caplog.text
        assert "debunce_ms" in caplog.text

    @pytest.mark.parametrize("section", ["window", "timing", "backend", "registration"])
    def test_non_mapping_section_rejected(self, section):
        with pytest.raises(ValueError, match=section):
            InlineCompletionSettings.from_dict({section: [1, 2]})
