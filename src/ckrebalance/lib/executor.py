"""
executor.py
- Executes one node's planned outgoing moves:
    1. detach the partition at the source (files land in its staging dir)
    2. take the destination's lock
    3. rsync the partition's part dirs (`<partition_id>_*`) from the staging dir
       to the destination, then remove them at the source
    4. attach the partition at the destination
    5. release the lock
- Moves run one after another in partition-id order. The first failure stops
  the node's remaining moves; nothing is rolled back or retried.
"""

import asyncio
import shlex
from loguru import logger

from ckrebalance.core.errors import CatalogError, MoveError, RemoteCommandError
from ckrebalance.core.state import MoveJournal, MoveRecord, MoveState, NodeResult


class MoveExecutor:
    def __init__(self, cluster, config, journal=None):
        self.cluster = cluster
        self.table = config.table
        self.staging_dir = config.staging_dir
        self.journal = journal if journal is not None else MoveJournal()

    def transfer_commands(self, partition, destination):
        """
        Commands run on the source host to ship `partition`'s staged part dirs to `destination`.
        Other entries of the staging dir (earlier strays, broken_/ignored_ parts) are left alone.
        """
        parts = shlex.quote(f"{self.staging_dir}/{partition}_") + "*"
        dst = shlex.quote(f"{destination}:{self.staging_dir}/")
        return [
            f"rsync -avp {parts} {dst}",
            f"rm -rf {parts}",
        ]

    async def _save(self):
        await asyncio.to_thread(self.journal.save)

    async def _step(self, record, step, func, *args):
        try:
            await asyncio.to_thread(func, *args)
        except (CatalogError, RemoteCommandError) as e:
            record.fail(step, e)
            await self._save()
            raise MoveError(record.partition, record.source, record.destination, step, e) from e

    async def _transfer(self, record):
        shell = self.cluster.shell(record.source)
        for command in self.transfer_commands(record.partition, record.destination):
            await self._step(record, "transfer", shell.run, command)

    async def move(self, record):
        """Run the full protocol for one partition. Raises MoveError on the first failed step."""
        source = self.cluster.catalog(record.source)
        destination = self.cluster.catalog(record.destination)

        await self._step(record, "detach", source.detach_partition, self.table, record.partition)
        record.advance(MoveState.DETACHED)
        await self._save()

        async with self.cluster.lock(record.destination):
            await self._transfer(record)
            record.advance(MoveState.TRANSFERRED)
            await self._save()

            await self._step(record, "attach", destination.attach_partition, self.table, record.partition)
            record.advance(MoveState.ATTACHED)
            await self._save()

        logger.info(
            f"[move] {record.partition} ({record.size} bytes) moved {record.source} -> {record.destination}"
        )

    async def execute(self, state):
        """
        Perform every planned outgoing move of `state`.

        Returns:
            NodeResult: Records of attempted moves, the MoveError that stopped
            the node (if any), and the partitions that were never attempted.
        """
        result = NodeResult(host=state.host)
        planned = state.planned_moves()
        for index, (partition, destination) in enumerate(planned):
            record = self.journal.track(MoveRecord(
                partition=partition,
                source=state.host,
                destination=destination,
                size=state.outgoing_sizes.get(partition, 0),
            ))
            await self._save()
            result.moves.append(record)
            try:
                await self.move(record)
            except MoveError as e:
                result.error = e
                result.skipped = [p for p, _ in planned[index + 1:]]
                level = "ERROR" if record.stranded else "WARNING"
                logger.log(level, f"[move] host: {state.host}, {e}")
                if record.stranded:
                    logger.error(
                        f"[move] Partition {partition} is detached on {state.host} and not attached on "
                        f"{destination}; manual recovery required."
                    )
                if result.skipped:
                    logger.warning(f"[move] host: {state.host}, skipping remaining moves: {', '.join(result.skipped)}")
                break
        return result
