"""
planner.py
- Greedy planning of partition moves from the fullest node to the emptiest one.
- Pure in-memory computation over NodeStates; no I/O.

Each round sorts nodes by total size and pairs the lowest unassigned node
(destination) with the highest unassigned node (source). The first source
partition, in partition-id order, that fits without overshooting is moved:

    source.total_size >= destination.total_size + 2 * size

so the destination never ends up larger than the source. Every round
assigns the source role to one node, with or without a move, so the loop
finishes in at most N rounds for N nodes.
"""

from loguru import logger


def _fits(source, destination, size):
    return size > 0 and source.total_size >= destination.total_size + 2 * size


class PlanGenerator:
    def __init__(self):
        self.rounds = 0

    def _pick_pair(self, states):
        dst_idx = next((i for i, s in enumerate(states) if s.is_unassigned), None)
        src_idx = next((i for i in range(len(states) - 1, -1, -1) if states[i].is_unassigned), None)
        if dst_idx is None or src_idx is None or dst_idx >= src_idx:
            return None, None
        return states[dst_idx], states[src_idx]

    def plan(self, states):
        """
        Annotate `states` with outgoing moves.

        Sorts the list in place by (total_size, host) and returns it. Sizes of
        moved partitions are shifted between the nodes' totals and the
        partitions are dropped from the source's partition map.
        """
        self.rounds = 0
        while True:
            states.sort(key=lambda s: (s.total_size, s.host))
            destination, source = self._pick_pair(states)
            if destination is None:
                break
            self.rounds += 1

            for partition, size in sorted(source.partitions.items()):
                if not _fits(source, destination, size):
                    continue
                logger.debug(
                    f"[plan] {partition} ({size} bytes): {source.host} "
                    f"[{source.total_size}] -> {destination.host} [{destination.total_size}]"
                )
                destination.total_size += size
                source.total_size -= size
                source.outgoing_moves = {partition: destination.host}
                source.outgoing_sizes[partition] = size
                del source.partitions[partition]
                destination.incoming = True
                break
            else:
                logger.debug(f"[plan] No partition on {source.host} fits into {destination.host}")
                source.outgoing_moves = {}

        logger.info(f"[plan] Planning finished after {self.rounds} rounds, {len(summarize_plan(states))} moves.")
        return states


def summarize_plan(states):
    """
    Flatten planned moves.

    Returns:
        list[tuple]: (source, partition, destination, size), ordered by source host then partition.
    """
    moves = []
    for state in sorted(states, key=lambda s: s.host):
        for partition, destination in state.planned_moves():
            moves.append((state.host, partition, destination, state.outgoing_sizes.get(partition, 0)))
    return moves
