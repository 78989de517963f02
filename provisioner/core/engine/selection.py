"""
Selection — turn user-supplied step and group names into a request set.
"""

from __future__ import annotations

import logging
from typing import Iterable

from provisioner.core.engine.registry import StepRegistry
from provisioner.core.errors import UnknownStepError

logger = logging.getLogger(__name__)


def expand_selection(
    registry: StepRegistry,
    selectors: Iterable[str] = (),
    *,
    select_all: bool = False,
) -> list[str]:
    """Expand selectors into an ordered, de-duplicated list of step names.

    Each selector is tried as a step name first, then as a group tag.
    Group members come out in registration order; selectors keep the
    order they were given in.

    Raises:
        UnknownStepError: A selector matches neither a step nor a group.
    """
    if select_all:
        return registry.names()

    requested: list[str] = []
    for selector in selectors:
        if registry.has(selector):
            names = [selector]
        elif registry.has_group(selector):
            names = registry.all_with_group(selector)
            logger.debug("Group '%s' expands to %s", selector, names)
        else:
            raise UnknownStepError(selector)

        for name in names:
            if name not in requested:
                requested.append(name)

    return requested
