"""Per-interface network counters for running containers."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List


logger = logging.getLogger(__name__)

HEADER_LINES = 2
# /proc/net/dev: name, 8 receive counters, 8 transmit counters
MIN_FIELDS = 17
LOOPBACK = "lo"


@dataclass
class NetworkStats:
    """Traffic counters for one container interface."""
    interface: str
    rx_bytes: int = 0
    rx_packets: int = 0
    rx_errors: int = 0
    rx_dropped: int = 0
    tx_bytes: int = 0
    tx_packets: int = 0
    tx_errors: int = 0
    tx_dropped: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _counter(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def parse_net_dev(text: str) -> List[NetworkStats]:
    """Parse the contents of a ``/proc/<pid>/net/dev`` file.

    The two header lines are skipped, as are the loopback interface and any
    line too short to hold every counter. Counters that do not parse are
    reported as zero.
    """
    now = datetime.now(timezone.utc)
    stats = []
    for line in text.splitlines()[HEADER_LINES:]:
        # Long interface names run into the first counter ("eth0:123")
        name, sep, counters = line.partition(":")
        fields = [name.strip()] + counters.split()
        if not sep or len(fields) < MIN_FIELDS:
            logger.debug(f"Skipping malformed net/dev line: {line!r}")
            continue
        if fields[0] == LOOPBACK:
            continue

        stats.append(NetworkStats(
            interface=fields[0],
            rx_bytes=_counter(fields[1]),
            rx_packets=_counter(fields[2]),
            rx_errors=_counter(fields[3]),
            rx_dropped=_counter(fields[4]),
            tx_bytes=_counter(fields[9]),
            tx_packets=_counter(fields[10]),
            tx_errors=_counter(fields[11]),
            tx_dropped=_counter(fields[12]),
            timestamp=now,
        ))
    return stats
