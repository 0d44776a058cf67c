# Mission Control — configuration
# Override paths and server settings via config.yaml, env vars or CLI args.

import os
import yaml
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"


@dataclass
class Config:
    """Runtime configuration for the Mission Control server."""

    # Storage root (projects/, documents/, members/, scheduled/, memory/)
    data_dir: str = "./data"

    # HTTP
    host: str = "127.0.0.1"
    port: int = 3000
    log_level: str = "INFO"
    max_upload_mb: int = 25

    def resolve_paths(self):
        """Apply env overrides and expand ~ in the data directory."""
        env_dir = os.environ.get("MC_DATA_DIR")
        if env_dir:
            self.data_dir = env_dir
        self.data_dir = str(Path(self.data_dir).expanduser().resolve())

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path or os.environ.get("MC_CONFIG") or CONFIG_PATH)
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if hasattr(cls, k)})
            except (yaml.YAMLError, TypeError, AttributeError):
                cfg = cls()
        else:
            cfg = cls()
        cfg.resolve_paths()
        return cfg
