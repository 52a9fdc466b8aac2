"""Hook registry for fetch-cycle lifecycle events."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class HookName(str, Enum):
    BEFORE_CYCLE = "before_cycle"
    AFTER_PARTITION = "after_partition"
    AFTER_DEDUP = "after_dedup"
    AFTER_FETCH = "after_fetch"
    AFTER_QUALITY = "after_quality"
    AFTER_AGGREGATE = "after_aggregate"
    AFTER_MERGE = "after_merge"
    ON_RESET = "on_reset"
    ON_ERROR = "on_error"


HookCallback = Callable[[dict[str, Any], dict[str, Any]], dict[str, Any] | None]


class HookManager:
    """In-process hook manager with deterministic callback ordering."""

    def __init__(self) -> None:
        self._callbacks: dict[HookName, list[HookCallback]] = defaultdict(list)

    def register(self, name: HookName, callback: HookCallback) -> None:
        self._callbacks[name].append(callback)

    def emit(self, name: HookName, context: dict[str, Any], envelope: dict[str, Any]) -> dict[str, Any]:
        result = dict(envelope)
        for callback in self._callbacks[name]:
            try:
                patch = callback(context, dict(result))
            except Exception as exc:
                logger.warning("Hook %s failed: %s", name.value, exc)
                if name != HookName.ON_ERROR:
                    self.emit_error(exc, context)
                continue
            if patch:
                result.update(patch)
        return result

    def emit_error(self, exc: BaseException, context: dict[str, Any]) -> None:
        for callback in self._callbacks[HookName.ON_ERROR]:
            try:
                callback({"exception": exc, **context}, {})
            except Exception as hook_exc:
                logger.warning("Error hook failed: %s", hook_exc)
