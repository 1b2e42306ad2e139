"""Registry of module-level singletons that tests can reset."""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

_resetters: list[Callable[[], None]] = []


def register_singleton(reset: Callable[[], None]) -> None:
    if reset not in _resetters:
        _resetters.append(reset)


def reset_all_singletons() -> None:
    for reset in list(_resetters):
        reset()
    logger.debug("[singletons] reset %d singleton(s)", len(_resetters))
