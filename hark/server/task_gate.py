"""Operating-mode gate for the audio task endpoints.

The mode is committed exactly once at startup and only read afterwards,
so checks take no lock. Until a mode is committed every task check fails
closed with ``NotReadyError``.
"""

from __future__ import annotations

from hark._types import OperatingMode, Task
from hark.exceptions import ConfigError, NotReadyError, TaskNotEnabledError

_RESTART_HINTS: dict[Task, str] = {
    Task.TRANSCRIBE: (
        "To enable it, restart the server with `--task transcribe` or `--task full`."
    ),
    Task.TRANSLATE: (
        "To enable it, restart the server with `--task translate` or `--task full`."
    ),
}


class TaskGate:
    """Decides per request whether the path's task is enabled."""

    def __init__(self, mode: OperatingMode | None = None) -> None:
        self._mode: OperatingMode | None = None
        if mode is not None:
            self.commit(mode)

    @property
    def mode(self) -> OperatingMode | None:
        return self._mode

    def commit(self, mode: OperatingMode) -> None:
        """Fix the operating mode.

        Raises:
            ConfigError: If a mode was already committed.
        """
        if self._mode is not None:
            raise ConfigError(f"Operating mode already set to '{self._mode.value}'")
        self._mode = mode

    def is_enabled(self, task: Task) -> bool:
        return self._mode is not None and task in self._mode.tasks

    def check(self, task: Task) -> None:
        """Raise unless ``task`` may run under the committed mode.

        Raises:
            NotReadyError: No mode committed yet.
            TaskNotEnabledError: The mode does not include ``task``.
        """
        if self._mode is None:
            raise NotReadyError("operating mode")
        if task not in self._mode.tasks:
            hint = _RESTART_HINTS.get(task, "This task cannot be enabled by the operating mode.")
            raise TaskNotEnabledError(task.value, hint)
