"""
collector.py
- Reads the current partition layout of the target table from every node.
- Fails fast: one unreadable node aborts the whole run before planning.
"""

from loguru import logger

from ckrebalance.core.errors import CatalogError, CollectionError
from ckrebalance.core.state import NodeState


class StateCollector:
    def __init__(self, cluster, table):
        self.cluster = cluster
        self.table = table

    def collect(self, hosts=None):
        """
        Build one NodeState per host, in the given order.

        Args:
            hosts (list[str]): Hosts to query. Defaults to every host in the cluster.

        Returns:
            list[NodeState]

        Raises:
            CollectionError: If any node's catalog query fails.
        """
        hosts = self.cluster.hosts if hosts is None else hosts
        states = []
        for host in hosts:
            try:
                sizes = self.cluster.catalog(host).partition_sizes(self.table)
            except (CatalogError, KeyError) as e:
                raise CollectionError(host, e) from e
            state = NodeState.from_sizes(host, sizes)
            logger.info(
                f"[collect] host: {host}, partitions: {len(state.partitions)}, "
                f"total compressed: {state.total_size} bytes"
            )
            states.append(state)
        return states
