"""Schedule identifier generation."""

import secrets

SCHEDULE_ID_PREFIX = "sched_"


def generate_schedule_id() -> str:
    """Random opaque schedule ID, e.g. ``sched_9f1c02ab``.

    Eight hex characters from the OS CSPRNG. Uniqueness across stored
    schedules is still enforced by storage on save.
    """
    return f"{SCHEDULE_ID_PREFIX}{secrets.token_hex(4)}"
