"""
Skip detection: explicit "don't learn this" declarations.

Any skip trigger vetoes learning no matter how strong the other signals are.
"""

from typing import Optional

from .signals import DEFAULT_SIGNAL_TABLE, SignalTable, SkipTrigger


def find_skip_trigger(message: str, table: SignalTable = DEFAULT_SIGNAL_TABLE) -> Optional[SkipTrigger]:
    """Return the first skip trigger found in the message, if any."""
    if not isinstance(message, str) or not message:
        return None
    for trigger in table.skip_triggers:
        if trigger.search(message):
            return trigger
    return None


def is_skip_requested(message: str, table: SignalTable = DEFAULT_SIGNAL_TABLE) -> bool:
    return find_skip_trigger(message, table) is not None
