"""
cluster.py
- ClusterClient owns the per-node handles used during one run:
    - catalog handle (ClickHouse HTTP)
    - remote shell (ssh)
    - destination lock guarding the node's staging directory
- Built once by the runner and passed explicitly to the collector and executor.
"""

import asyncio
from loguru import logger
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from ckrebalance.core import constants
from ckrebalance.core.errors import CatalogError, NodeConnectionError, RemoteCommandError
from ckrebalance.lib.catalog import ClickHouseCatalog
from ckrebalance.lib.common.ssh_helpers import RemoteShell


@retry(
    reraise=True,
    stop=stop_after_attempt(constants.PROBE_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=constants.PROBE_WAIT_MIN, max=constants.PROBE_WAIT_MAX),
    retry=retry_if_exception_type((CatalogError, RemoteCommandError)),
)
def probe_node(catalog, shell, timeout=constants.DEFAULT_CONNECT_TIMEOUT):
    """Verify catalog and shell access to one node, retrying transient failures."""
    catalog.ping()
    shell.probe(timeout=timeout)


class ClusterClient:
    def __init__(self, catalogs, shells):
        if set(catalogs) != set(shells):
            raise ValueError("catalog and shell handles must cover the same hosts")
        self._catalogs = dict(catalogs)
        self._shells = dict(shells)
        self._locks = {}

    @classmethod
    def connect(cls, config, probe=True):
        """
        Build handles for every configured host and check that each one answers.

        Args:
            config (RebalanceConfig): Cluster topology and credentials.
            probe (bool): Skip the connectivity check when False.

        Returns:
            ClusterClient

        Raises:
            NodeConnectionError: If any node is unreachable after retries.
        """
        catalogs = {}
        shells = {}
        for host in config.hosts:
            catalog = ClickHouseCatalog(
                host,
                port=config.port,
                user=config.username,
                password=config.password,
                database=config.database,
                connect_timeout=config.connect_timeout,
            )
            shell = RemoteShell(host, user=config.os_user, password=config.os_password, port=config.ssh_port)
            if probe:
                logger.info(f"[cluster] Probing {host}...")
                try:
                    probe_node(catalog, shell, timeout=config.connect_timeout)
                except (CatalogError, RemoteCommandError) as e:
                    raise NodeConnectionError(host, e) from e
            catalogs[host] = catalog
            shells[host] = shell
        logger.info(f"[cluster] Connected to {len(catalogs)} nodes.")
        return cls(catalogs, shells)

    @property
    def hosts(self):
        return list(self._catalogs)

    def catalog(self, host):
        return self._catalogs[host]

    def shell(self, host):
        return self._shells[host]

    def lock(self, host):
        """Lock serializing transfers into `host`'s staging directory."""
        if host not in self._catalogs:
            raise KeyError(host)
        if host not in self._locks:
            self._locks[host] = asyncio.Lock()
        return self._locks[host]
