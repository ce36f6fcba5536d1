"""Configuration management for aangan.

Loads configuration from ~/.config/aangan/config.toml.
Priority chain: CLI flags > env vars > config file.
"""

import os
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path

from .embeddings.models import EMBEDDING_DIM, EMBEDDING_MODEL
from .store import get_data_dir
from .store.models import DEFAULT_ALLOWED_EMOJIS

CONFIG_DIR = Path.home() / ".config" / "aangan"
CONFIG_PATH = CONFIG_DIR / "config.toml"

DEFAULT_CONFIG = """\
# aangan configuration

[storage]
# SQLite database for whispers, reactions and embeddings
# path = "~/.local/share/aangan/aangan.db"

[embeddings]
# Generate embeddings for new whispers in the background
enabled = true

# sentence-transformers model; its output size must equal `dimension`
model = "all-mpnet-base-v2"
dimension = 768

[reactions]
allowed = ["❤️", "😢", "😮", "🙌"]

[http]
# Bind address: "127.0.0.1" = localhost only, "0.0.0.0" = allow LAN access
host = "127.0.0.1"
port = 8000

[offline]
# Client cache generation; bump `version` whenever served content changes
name = "whisperverse"
version = "1"
base_url = "http://127.0.0.1:8000"
resources = ["/", "/index.html", "/offline.html", "/manifest.json"]
"""


@dataclass(frozen=True)
class StorageConfig:
    """Whisper database configuration."""

    path: Path


@dataclass(frozen=True)
class EmbeddingsConfig:
    """Embedding generation configuration."""

    enabled: bool
    model: str
    dimension: int


@dataclass(frozen=True)
class ReactionsConfig:
    """Reaction configuration."""

    allowed: tuple[str, ...]


@dataclass(frozen=True)
class HTTPConfig:
    """HTTP API configuration."""

    host: str
    port: int


@dataclass(frozen=True)
class OfflineConfig:
    """Client cache configuration."""

    name: str
    version: str
    base_url: str
    resources: tuple[str, ...]
    path: Path


@dataclass(frozen=True)
class AanganConfig:
    """Top-level aangan configuration."""

    storage: StorageConfig
    embeddings: EmbeddingsConfig
    reactions: ReactionsConfig
    http: HTTPConfig
    offline: OfflineConfig


_cached_config: AanganConfig | None = None


def generate_config() -> Path:
    """Generate default config file at ~/.config/aangan/config.toml."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text(DEFAULT_CONFIG)
    return CONFIG_PATH


def _expand(path: str) -> Path:
    return Path(path).expanduser()


def parse_config(data: dict) -> AanganConfig:
    """Build configuration from parsed TOML data with env var overrides.

    Raises:
        ValueError: If a value is missing or invalid
    """
    storage = data.get("storage", {})
    embeddings = data.get("embeddings", {})
    reactions = data.get("reactions", {})
    http_cfg = data.get("http", {})
    offline = data.get("offline", {})

    missing = []
    if "host" not in http_cfg:
        missing.append("http.host")
    if "name" not in offline:
        missing.append("offline.name")
    if "version" not in offline:
        missing.append("offline.version")
    if missing:
        raise ValueError(f"Missing required config values: {', '.join(missing)}")

    db_path = os.getenv("AANGAN_DB_PATH", storage.get("path", ""))
    dimension = int(
        os.getenv("AANGAN_EMBEDDING_DIM", embeddings.get("dimension", EMBEDDING_DIM))
    )
    if dimension <= 0:
        raise ValueError(f"embeddings.dimension must be positive, got {dimension}")

    allowed = tuple(reactions.get("allowed", DEFAULT_ALLOWED_EMOJIS))
    if not allowed:
        raise ValueError("reactions.allowed cannot be empty")

    data_dir = get_data_dir()
    return AanganConfig(
        storage=StorageConfig(
            path=_expand(db_path) if db_path else data_dir / "aangan.db",
        ),
        embeddings=EmbeddingsConfig(
            enabled=bool(embeddings.get("enabled", True)),
            model=os.getenv(
                "AANGAN_EMBEDDING_MODEL", embeddings.get("model", EMBEDDING_MODEL)
            ),
            dimension=dimension,
        ),
        reactions=ReactionsConfig(allowed=allowed),
        http=HTTPConfig(
            host=os.getenv("AANGAN_HTTP_HOST", http_cfg["host"]),
            port=int(os.getenv("AANGAN_HTTP_PORT", http_cfg.get("port", 8000))),
        ),
        offline=OfflineConfig(
            name=offline["name"],
            version=str(offline["version"]),
            base_url=os.getenv(
                "AANGAN_OFFLINE_BASE_URL",
                offline.get("base_url", "http://127.0.0.1:8000"),
            ),
            resources=tuple(offline.get("resources", ())),
            path=(
                _expand(offline["path"])
                if "path" in offline
                else data_dir / "offline.db"
            ),
        ),
    )


def load_config() -> AanganConfig:
    """Load configuration from config file with env var overrides.

    On first run, generates the config file and exits so the user
    can review it before proceeding.

    Returns:
        Loaded and validated AanganConfig.

    Raises:
        SystemExit: If config is missing (after generating) or invalid.
    """
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    if not CONFIG_PATH.exists():
        path = generate_config()
        print(
            f"No config found. Generated {path}, review it and run again.",
            file=sys.stderr,
        )
        raise SystemExit(1)

    with open(CONFIG_PATH, "rb") as f:
        data = tomllib.load(f)

    try:
        _cached_config = parse_config(data)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        print(f"Edit {CONFIG_PATH} or delete it to regenerate.", file=sys.stderr)
        raise SystemExit(1) from e

    return _cached_config
