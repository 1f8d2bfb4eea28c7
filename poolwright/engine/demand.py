from __future__ import annotations

from collections.abc import Mapping

from loguru import logger

log = logger.bind(component="demand")


def extract_demand(node_selector: Mapping[str, str], key: str) -> str | None:
    """Return the demand identifier a workload declares, or None.

    Absence of ``key`` is an ordinary outcome: the workload simply does not
    ask for a pool. An empty value is treated the same way since no pool
    name can be derived from it.
    """
    value = node_selector.get(key)
    if value is None:
        log.debug("'{key}' not present in node selector", key=key)
        return None
    if not value:
        log.warning("'{key}' present in node selector with an empty value, ignoring", key=key)
        return None
    log.info("Found node selector '{key}'", key=key, demand=value)
    return value
