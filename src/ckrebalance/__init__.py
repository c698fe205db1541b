"""
ckrebalance - ClickHouse partition rebalancer.

Modules:
- core: config, errors, and the in-memory run state
- lib: catalog and ssh access, collector, planner, move executor
- runner: one-shot rebalance pass and the per-node orchestrator
"""

__version__ = "0.1.0"
