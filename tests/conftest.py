import os
import shlex
import threading
import time

import pytest

from ckrebalance.core.config import RebalanceConfig
from ckrebalance.core.errors import CatalogError, RemoteCommandError
from ckrebalance.core.state import NodeState
from ckrebalance.lib.cluster import ClusterClient


def make_config(hosts=("ch1", "ch2", "ch3"), **overrides):
    values = dict(hosts=tuple(hosts), table="access_log", data_dir="/data01/clickhouse")
    values.update(overrides)
    return RebalanceConfig(**values)


def make_state(host, partitions):
    return NodeState.from_sizes(host, partitions)


class SimulatedCluster:
    """
    In-memory stand-in for a set of ClickHouse nodes.

    Each host has active partitions and a staging area. Catalog detach/attach
    and the rsync/cleanup shell commands move partitions between the two.
    """

    def __init__(self, layout, transfer_delay=0.0):
        self.active = {host: dict(parts) for host, parts in layout.items()}
        self.staging = {host: {} for host in layout}
        self.transfer_delay = transfer_delay
        self.failures = {}
        self.calls = []
        self.windows = []  # (source, destination, start, end)
        self._guard = threading.Lock()
        self._in_flight = {host: 0 for host in layout}
        self.max_in_flight = {host: 0 for host in layout}

    def fail_on(self, step, partition, host=None):
        self.failures[(step, partition)] = host

    def _check(self, step, partition, host):
        key = (step, partition)
        if key in self.failures and self.failures[key] in (None, host):
            return True
        return False

    def client(self):
        hosts = list(self.active)
        return ClusterClient(
            catalogs={h: FakeCatalog(self, h) for h in hosts},
            shells={h: FakeShell(self, h) for h in hosts},
        )

    def totals(self):
        return {host: sum(parts.values()) for host, parts in self.active.items()}


class FakeCatalog:
    def __init__(self, sim, host):
        self.sim = sim
        self.host = host

    def ping(self):
        pass

    def partition_sizes(self, table):
        if self.sim._check("collect", None, self.host):
            raise CatalogError(self.host, "SELECT ...", "Connection refused")
        with self.sim._guard:
            return dict(self.sim.active[self.host])

    def detach_partition(self, table, partition):
        self.sim.calls.append(("detach", self.host, partition))
        if self.sim._check("detach", partition, self.host):
            raise CatalogError(self.host, "DETACH", "Code: 999. simulated")
        with self.sim._guard:
            size = self.sim.active[self.host].pop(partition)
            self.sim.staging[self.host][partition] = size

    def attach_partition(self, table, partition):
        self.sim.calls.append(("attach", self.host, partition))
        if self.sim._check("attach", partition, self.host):
            raise CatalogError(self.host, "ATTACH", "Code: 999. simulated")
        with self.sim._guard:
            if partition not in self.sim.staging[self.host]:
                raise CatalogError(self.host, "ATTACH", f"no detached part {partition}")
            self.sim.active[self.host][partition] = self.sim.staging[self.host].pop(partition)


def _staged_partition(pattern):
    """Partition id from a `<staging>/<partition>_*` part-dir glob."""
    name = os.path.basename(pattern)
    assert name.endswith("_*"), pattern
    return name[:-2]


class FakeShell:
    def __init__(self, sim, host):
        self.sim = sim
        self.host = host

    def probe(self, timeout=None):
        pass

    def run(self, command, timeout=None):
        self.sim.calls.append(("shell", self.host, command))
        argv = shlex.split(command)
        if argv[0] == "rsync":
            partition = _staged_partition(argv[-2])
            destination = argv[-1].split(":", 1)[0]
            if self.sim._check("transfer", partition, self.host):
                raise RemoteCommandError(self.host, command, 23, "rsync: connection unexpectedly closed")
            self._rsync(partition, destination)
        elif argv[0] == "rm":
            partition = _staged_partition(argv[-1])
            with self.sim._guard:
                self.sim.staging[self.host].pop(partition, None)
        return ""

    def _rsync(self, partition, destination):
        sim = self.sim
        with sim._guard:
            sim._in_flight[destination] += 1
            sim.max_in_flight[destination] = max(sim.max_in_flight[destination], sim._in_flight[destination])
        start = time.monotonic()
        if sim.transfer_delay:
            time.sleep(sim.transfer_delay)
        with sim._guard:
            if partition in sim.staging[self.host]:
                sim.staging[destination][partition] = sim.staging[self.host][partition]
            sim._in_flight[destination] -= 1
        sim.windows.append((self.host, destination, start, time.monotonic()))


@pytest.fixture
def config():
    return make_config()
