"""Unit tests for configuration loading."""

import sys
import tomllib
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

import aangan.config as config_module
from aangan.config import DEFAULT_CONFIG, load_config, parse_config


def default_data() -> dict:
    return tomllib.loads(DEFAULT_CONFIG)


class TestParseConfig:
    """Test building AanganConfig from TOML data."""

    def test_defaults(self, tmp_path) -> None:
        config = parse_config(default_data())

        assert config.storage.path == tmp_path / "data" / "aangan.db"
        assert config.embeddings.enabled is True
        assert config.embeddings.model == "all-mpnet-base-v2"
        assert config.embeddings.dimension == 768
        assert config.reactions.allowed == ("❤️", "😢", "😮", "🙌")
        assert config.http.host == "127.0.0.1"
        assert config.http.port == 8000
        assert config.offline.name == "whisperverse"
        assert config.offline.version == "1"
        assert "/offline.html" in config.offline.resources
        assert config.offline.path == tmp_path / "data" / "offline.db"

    def test_env_overrides(self, monkeypatch, tmp_path) -> None:
        """Test environment variables win over the config file."""
        monkeypatch.setenv("AANGAN_DB_PATH", str(tmp_path / "other.db"))
        monkeypatch.setenv("AANGAN_EMBEDDING_DIM", "384")
        monkeypatch.setenv("AANGAN_HTTP_HOST", "0.0.0.0")
        monkeypatch.setenv("AANGAN_HTTP_PORT", "9000")

        config = parse_config(default_data())

        assert config.storage.path == tmp_path / "other.db"
        assert config.embeddings.dimension == 384
        assert config.http.host == "0.0.0.0"
        assert config.http.port == 9000

    def test_missing_required_values(self) -> None:
        with pytest.raises(ValueError, match="http.host, offline.name"):
            parse_config({"offline": {"version": "1"}})

    def test_invalid_dimension(self) -> None:
        data = default_data()
        data["embeddings"]["dimension"] = 0

        with pytest.raises(ValueError, match="positive"):
            parse_config(data)

    def test_empty_reaction_set(self) -> None:
        data = default_data()
        data["reactions"]["allowed"] = []

        with pytest.raises(ValueError, match="reactions.allowed"):
            parse_config(data)


class TestLoadConfig:
    """Test first-run generation and caching."""

    def test_first_run_generates_and_exits(self) -> None:
        with pytest.raises(SystemExit):
            load_config()

        assert config_module.CONFIG_PATH.exists()
        assert config_module.CONFIG_PATH.read_text() == DEFAULT_CONFIG

    def test_second_run_loads_and_caches(self) -> None:
        config_module.generate_config()

        first = load_config()

        assert load_config() is first

    def test_invalid_file_exits(self) -> None:
        config_module.CONFIG_DIR.mkdir(parents=True)
        config_module.CONFIG_PATH.write_text('[offline]\nname = "x"\n')

        with pytest.raises(SystemExit):
            load_config()
