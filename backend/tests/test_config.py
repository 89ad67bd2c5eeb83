"""
Tests for settings loading.
"""

from app.config import Settings, get_settings


class TestSettings:
    """Environment driven settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PERPLEXITY_API_KEY", raising=False)
        settings = Settings(_env_file=None)
        assert settings.AI_ANALYSIS_BATCH_SIZE == 5
        assert settings.MENTION_CONTEXT_WINDOW == 100
        assert settings.ai_analysis_enabled is False

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("PERPLEXITY_API_KEY", "pplx-key")
        monkeypatch.setenv("FUZZY_MAX_DISTANCE", "1")
        settings = get_settings()
        assert settings.ai_analysis_enabled is True
        assert settings.FUZZY_MAX_DISTANCE == 1

    def test_names_are_case_sensitive(self, monkeypatch):
        monkeypatch.setenv("fuzzy_max_distance", "9")
        assert Settings(_env_file=None).FUZZY_MAX_DISTANCE == 2

    def test_reads_dotenv(self, tmp_path, monkeypatch):
        (tmp_path / ".env").write_text("LOW_PROMINENCE_POSITION=6\n")
        monkeypatch.chdir(tmp_path)
        assert Settings().LOW_PROMINENCE_POSITION == 6
