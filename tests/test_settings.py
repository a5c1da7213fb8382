"""Tests for feature flags."""

import pytest

from bpmn_layout.config import settings


class TestFeatureFlags:

    def test_known_flags(self):
        flags = settings.get_all_flags()
        assert set(flags) == {"allow_engine_fallback", "layout_debug"}

    def test_unknown_flag(self):
        with pytest.raises(KeyError, match="Unknown feature flag"):
            settings.is_enabled("no_such_flag")
        with pytest.raises(KeyError):
            settings.set_flag("no_such_flag", True)

    def test_set_flag(self, layout_debug):
        assert settings.is_enabled("layout_debug") is True

    def test_get_all_flags_is_a_copy(self):
        flags = settings.get_all_flags()
        flags["layout_debug"] = not flags["layout_debug"]
        assert settings.get_all_flags()["layout_debug"] != flags["layout_debug"]

    def test_defaults(self):
        assert settings.LAYOUT_ENGINE in ("elk", "layered")
        assert settings.ELK_TIMEOUT > 0
