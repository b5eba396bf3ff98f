"""Backfill lifecycle states, shared by the driver and the BackfillRun row.

    idle → running → completed
                   ↘ failed
"""

import enum


class DriverState(str, enum.Enum):
    idle = "idle"
    running = "running"
    completed = "completed"
    failed = "failed"
