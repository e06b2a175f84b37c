"""
Tests for config.py.
"""

import logging

from lingotutor import config


class TestConfigureLogging:
    def test_applies_level_and_format(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
        config.configure_logging("debug")
        assert calls == [{"level": logging.DEBUG, "format": config.LOG_FORMAT}]

    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
        config.configure_logging("chatty")
        assert calls[0]["level"] == logging.INFO


class TestDefaults:
    def test_lesson_constants(self):
        assert config.MAX_ATTEMPTS == 4
        assert config.SUPPORTED_LANGUAGES == ("en", "de", "es", "fr")

    def test_bundled_lessons_dir(self):
        assert (config.LESSONS_DIR / "en" / "basic-1.json").is_file()
