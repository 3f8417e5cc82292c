"""
Shared adapter types.

Adapters report progress through a plain callback:

    callback(percent, status, message)

percent is an int in [0, 100], status is the stage status the adapter
believes it is in ("processing"), message is a short human-readable note.
"""

from typing import Callable, Optional

ProgressCallback = Callable[[int, str, Optional[str]], None]

PROCESSING = "processing"


def noop_callback(percent: int, status: str, message: Optional[str]) -> None:
    pass
