"""Abstract interface for compute engines.

Every engine (faster-whisper, test doubles, ...) exposes the same narrow
tensor-style contract: inputs are set by index, one compute step runs, and
outputs are copied into a caller-owned buffer. The engine instance is
stateful and NOT safe for concurrent use; ``InferenceInvoker`` serializes
every access to it.

Input convention used by the gateway:

- index 0: audio waveform, ``TensorType.F32`` with dims ``[1, n_samples]``
  (or UTF-8 text as ``TensorType.U8`` ``[n_bytes]`` for speech synthesis)
- index 1: per-request options as UTF-8 JSON, ``TensorType.U8`` ``[n_bytes]``

Output index 0 holds UTF-8 text (transcription/translation) or encoded
audio bytes (speech synthesis).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

    from hark._types import Task, TensorType

AUDIO_INPUT_INDEX = 0
OPTIONS_INPUT_INDEX = 1
OUTPUT_INDEX = 0


class ComputeEngine(ABC):
    """Contract that every compute engine must implement."""

    @property
    @abstractmethod
    def capabilities(self) -> frozenset[Task]:
        """Tasks the loaded model can run."""
        ...

    @abstractmethod
    def init_execution_context(self) -> None:
        """Discard the current execution context and build a fresh one.

        Called once after loading, and again whenever a request asks for a
        new context.
        """
        ...

    @abstractmethod
    def set_input(
        self,
        index: int,
        tensor_type: TensorType,
        dims: Sequence[int],
        data: Any,
    ) -> None:
        """Bind ``data`` to input ``index`` of the current context."""
        ...

    @abstractmethod
    def compute(self) -> None:
        """Run inference on the bound inputs."""
        ...

    @abstractmethod
    def get_output(self, index: int, buffer: bytearray) -> int:
        """Copy output ``index`` into ``buffer`` and return its size in bytes.

        When the output is larger than ``buffer`` nothing is copied and the
        required size is returned, so callers can detect the overflow.
        """
        ...


def copy_output(payload: bytes, buffer: bytearray) -> int:
    """Helper for engines: copy ``payload`` into ``buffer`` when it fits."""
    size = len(payload)
    if size <= len(buffer):
        buffer[:size] = payload
    return size
