# Board — configuration
# Override defaults via config.yaml, --config, or environment variables.

import os
import yaml
from pathlib import Path
from dataclasses import dataclass, fields
from typing import Optional

CONFIG_PATH = Path(__file__).parent.parent.parent / "config.yaml"

# env var → field name
ENV_OVERRIDES = {
    "BOARD_API_URL": "api_url",
    "BOARD_DATA_DIR": "data_dir",
    "BOARD_DB_PATH": "db_path",
    "PORT": "port",
    "CORS_ORIGIN": "cors_origin",
    "BOARD_LOG_LEVEL": "log_level",
}


@dataclass
class BoardConfig:
    """Runtime configuration for the board facade and storage service."""

    # Storage client
    api_url: str = "http://localhost:3001"
    request_timeout: float = 4.0          # requests slower than this count as failed

    # Facade lifecycle
    save_debounce_ms: int = 400
    load_timeout_secs: float = 3.0
    default_project_title: str = "Stuff to do now, stuff to do later"

    # Storage service
    data_dir: str = "~/.local/share/laneboard"
    db_path: str = ""                     # empty = <data_dir>/board.db
    host: str = "127.0.0.1"
    port: int = 3001
    cors_origin: str = "*"
    max_body_bytes: int = 1024 * 1024

    log_level: str = "INFO"

    @property
    def save_debounce_secs(self) -> float:
        return self.save_debounce_ms / 1000

    def resolve_paths(self):
        """Expand ~ and derive db_path from data_dir when unset."""
        self.data_dir = str(Path(self.data_dir).expanduser())
        if not self.db_path:
            self.db_path = str(Path(self.data_dir) / "board.db")
        self.db_path = str(Path(self.db_path).expanduser())

    def apply_env(self, environ=None):
        """Environment variables win over file values."""
        environ = os.environ if environ is None else environ
        types = {f.name: f.type for f in fields(self)}
        for env_name, attr in ENV_OVERRIDES.items():
            value = environ.get(env_name)
            if not value:
                continue
            if types[attr] in (int, "int"):
                try:
                    value = int(value)
                except ValueError:
                    continue
            setattr(self, attr, value)
        # BOARD_DATA_DIR alone relocates the database too
        if environ.get("BOARD_DATA_DIR") and not environ.get("BOARD_DB_PATH"):
            self.db_path = ""

    @classmethod
    def load(cls, path: Optional[str] = None, environ=None) -> "BoardConfig":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                known = {f.name for f in fields(cls)}
                cfg = cls(**{k: v for k, v in data.items() if k in known})
            except Exception:
                cfg = cls()
        else:
            cfg = cls()
        cfg.apply_env(environ)
        cfg.resolve_paths()
        return cfg
