"""
config.py
- Runtime flags derived from environment variables.
- RebalanceConfig: validated cluster topology, credentials, and table settings
  read from the YAML config file.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from ckrebalance.core import constants
from ckrebalance.core.config_loader import load_yaml
from ckrebalance.core.errors import ConfigError

# --- Runtime Behavior Flags ---
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"

# --- Config Paths ---
REBALANCE_CONFIG_PATH = os.getenv("REBALANCE_CONFIG", "/etc/ck-rebalance/rebalance.yml")

_REQUIRED_KEYS = ("hosts", "table", "data_dir")


@dataclass(frozen=True)
class RebalanceConfig:
    hosts: Tuple[str, ...]
    table: str
    data_dir: str
    port: int = constants.DEFAULT_HTTP_PORT
    database: str = constants.DEFAULT_DATABASE
    username: str = constants.DEFAULT_CATALOG_USER
    password: str = field(default="", repr=False)
    os_user: str = constants.DEFAULT_OS_USER
    os_password: Optional[str] = field(default=None, repr=False)
    ssh_port: int = constants.DEFAULT_SSH_PORT
    connect_timeout: float = constants.DEFAULT_CONNECT_TIMEOUT
    journal_path: Optional[str] = None

    @property
    def staging_dir(self):
        """Directory where detached partitions of the target table live on every node."""
        return constants.STAGING_DIR_TEMPLATE.format(
            data_dir=self.data_dir.rstrip("/"),
            database=self.database,
            table=self.table,
        )

    @classmethod
    def from_dict(cls, raw, env=None):
        """
        Validate a raw config mapping.

        Args:
            raw (dict): Parsed YAML contents.
            env (dict): Environment used for password overrides. Defaults to os.environ.

        Returns:
            RebalanceConfig

        Raises:
            ConfigError: On missing keys, duplicate hosts, or wrongly typed values.
        """
        env = os.environ if env is None else env

        missing = [key for key in _REQUIRED_KEYS if not raw.get(key)]
        if missing:
            raise ConfigError(f"missing required config keys: {', '.join(missing)}")

        hosts = raw["hosts"]
        if isinstance(hosts, str) or not isinstance(hosts, (list, tuple)):
            raise ConfigError("'hosts' must be a list of host names")
        hosts = tuple(str(h).strip() for h in hosts)
        if any(not h for h in hosts):
            raise ConfigError("'hosts' contains an empty entry")
        duplicates = sorted({h for h in hosts if hosts.count(h) > 1})
        if duplicates:
            raise ConfigError(f"duplicate hosts in config: {', '.join(duplicates)}")

        unknown = set(raw) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(sorted(unknown))}")

        os_password = env.get("SSH_PASSWORD", raw.get("os_password"))

        try:
            return cls(
                hosts=hosts,
                table=str(raw["table"]),
                data_dir=str(raw["data_dir"]),
                port=int(raw.get("port", constants.DEFAULT_HTTP_PORT)),
                database=str(raw.get("database", constants.DEFAULT_DATABASE)),
                username=str(raw.get("username", constants.DEFAULT_CATALOG_USER)),
                password=env.get("CLICKHOUSE_PASSWORD", str(raw.get("password") or "")),
                os_user=str(raw.get("os_user", constants.DEFAULT_OS_USER)),
                os_password=None if os_password is None else str(os_password),
                ssh_port=int(raw.get("ssh_port", constants.DEFAULT_SSH_PORT)),
                connect_timeout=float(raw.get("connect_timeout", constants.DEFAULT_CONNECT_TIMEOUT)),
                journal_path=raw.get("journal_path"),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid config value: {e}") from e


def load_config(path=REBALANCE_CONFIG_PATH):
    """Read and validate the rebalance config at `path`."""
    return RebalanceConfig.from_dict(load_yaml(path))
