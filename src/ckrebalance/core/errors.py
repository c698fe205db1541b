"""
errors.py
- Exception hierarchy for the rebalancer.
- Setup-phase errors (config, connection, collection) abort the run.
- MoveError is contained to the node whose move failed.
"""


class RebalanceError(Exception):
    """Base class for every error raised by ckrebalance."""


class ConfigError(RebalanceError):
    pass


class NodeConnectionError(RebalanceError):
    """Catalog or remote shell access to a node could not be established."""

    def __init__(self, host, reason):
        super().__init__(f"cannot connect to {host}: {reason}")
        self.host = host
        self.reason = reason


class CollectionError(RebalanceError):
    """Partition sizes could not be read from a node's catalog."""

    def __init__(self, host, reason):
        super().__init__(f"failed to collect partitions from {host}: {reason}")
        self.host = host
        self.reason = reason


class CatalogError(RebalanceError):
    """A catalog statement was rejected or could not be delivered."""

    def __init__(self, host, query, reason):
        super().__init__(f"{host}: query failed ({reason}): {query}")
        self.host = host
        self.query = query
        self.reason = reason


class RemoteCommandError(RebalanceError):
    """A remote shell command exited non-zero."""

    def __init__(self, host, command, returncode, stderr=""):
        detail = stderr.strip() or f"exit status {returncode}"
        super().__init__(f"{host}: command failed ({detail}): {command}")
        self.host = host
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class MoveError(RebalanceError):
    """One step of the detach/transfer/attach protocol failed for a partition."""

    def __init__(self, partition, source, destination, step, cause):
        super().__init__(
            f"move of partition {partition} {source} -> {destination} failed at {step}: {cause}"
        )
        self.partition = partition
        self.source = source
        self.destination = destination
        self.step = step
        self.cause = cause
