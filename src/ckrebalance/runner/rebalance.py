#!/usr/bin/env python3
"""
rebalance.py
- Runs one rebalance pass over the configured table:
    connect → collect → plan → execute (one task per node) → report
- Setup failures (config, connection, collection) raise and abort before any
  data moves. Per-node move failures are reported, never raised.
"""

import asyncio
from loguru import logger

from ckrebalance.core.state import MoveJournal, NodeResult, RebalanceReport
from ckrebalance.lib.cluster import ClusterClient
from ckrebalance.lib.collector import StateCollector
from ckrebalance.lib.executor import MoveExecutor
from ckrebalance.lib.planner import PlanGenerator, summarize_plan


class Orchestrator:
    """Runs one MoveExecutor task per node concurrently and gathers the results."""

    def __init__(self, executor):
        self.executor = executor

    async def _run_node(self, state):
        try:
            result = await self.executor.execute(state)
        except Exception as e:
            logger.exception(f"[rebalance] host: {state.host}, executor crashed: {e}")
            result = NodeResult(host=state.host, error=e)
        logger.info(f"[rebalance] host: {state.host}, rebalance done")
        return result

    async def run(self, states):
        results = await asyncio.gather(*(self._run_node(state) for state in states))
        report = RebalanceReport(results=sorted(results, key=lambda r: r.host))
        logger.info(f"[rebalance] rebalance done: {report.summary()}")
        return report


def log_plan(moves):
    if not moves:
        logger.info("[plan] Cluster is balanced, nothing to move.")
        return
    for source, partition, destination, size in moves:
        logger.info(f"[plan] {partition}: {source} -> {destination} ({size} bytes)")


async def run_rebalance(config, dry_run=False, cluster=None, journal=None):
    """
    Perform one rebalance pass.

    Args:
        config (RebalanceConfig): Topology, credentials and target table.
        dry_run (bool): Plan and log moves without executing them.
        cluster (ClusterClient): Pre-built handles. Connects from config when None.
        journal (MoveJournal): Move journal. Built from config.journal_path when None.

    Returns:
        RebalanceReport: Empty when dry_run is set or nothing needs to move.

    Raises:
        NodeConnectionError, CollectionError: Before any data has moved.
    """
    if cluster is None:
        cluster = await asyncio.to_thread(ClusterClient.connect, config)

    states = await asyncio.to_thread(StateCollector(cluster, config.table).collect, list(config.hosts))
    PlanGenerator().plan(states)
    moves = summarize_plan(states)
    log_plan(moves)

    if dry_run:
        logger.info("[rebalance] Dry-run mode: no partitions will be moved.")
        return RebalanceReport()

    journal = journal if journal is not None else MoveJournal(config.journal_path)
    executor = MoveExecutor(cluster, config, journal=journal)
    report = await Orchestrator(executor).run(states)

    for record in report.failed:
        logger.warning(
            f"[rebalance] {record.partition} {record.source} -> {record.destination} "
            f"failed at {record.failed_step}: {record.error}"
        )
    if report.stranded:
        logger.warning(
            "[rebalance] Stranded partitions (detached, not attached): "
            + ", ".join(f"{r.partition}@{r.source}->{r.destination}" for r in report.stranded)
        )
    return report
