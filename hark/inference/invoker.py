"""Serialized access to the single shared compute engine.

The engine is stateful: set-input, compute, and get-output for one request
must never interleave with another request's sequence. Request tasks queue
on an ``asyncio.Lock`` (natural wake order, no fairness policy) and the
sequence itself runs in a worker thread so the event loop keeps serving
uploads while the engine is busy.
"""

from __future__ import annotations

import asyncio
import json
import threading
import time
from typing import TYPE_CHECKING, Any

import numpy as np

from hark._types import Task, TensorType
from hark.exceptions import (
    EngineComputeError,
    EngineContextError,
    EngineError,
    EngineInputError,
    EngineOutputError,
    OutputDecodeError,
)
from hark.inference.interface import AUDIO_INPUT_INDEX, OPTIONS_INPUT_INDEX, OUTPUT_INDEX
from hark.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from hark.inference.interface import ComputeEngine

logger = get_logger("inference.invoker")


class _Input:
    __slots__ = ("data", "dims", "index", "tensor_type")

    def __init__(self, index: int, tensor_type: TensorType, dims: Sequence[int], data: Any) -> None:
        self.index = index
        self.tensor_type = tensor_type
        self.dims = list(dims)
        self.data = data


def _options_input(options: dict[str, Any]) -> _Input:
    payload = json.dumps(options, separators=(",", ":")).encode("utf-8")
    return _Input(OPTIONS_INPUT_INDEX, TensorType.U8, [len(payload)], payload)


class InferenceInvoker:
    """Owns the process-wide engine instance and serializes its use.

    Args:
        engine: Loaded compute engine (its context already initialized).
        max_output_bytes: Capacity of the output scratch buffer.
    """

    def __init__(self, engine: ComputeEngine, max_output_bytes: int = 1_000_000) -> None:
        self._engine = engine
        self._max_output_bytes = max_output_bytes
        self._buffer = bytearray(max_output_bytes)
        self._queue_lock = asyncio.Lock()
        # Held by the worker thread for the whole sequence. A cancelled
        # request releases the asyncio lock but its thread still runs to
        # completion, so exclusivity is enforced here as well.
        self._engine_lock = threading.Lock()

    @property
    def engine(self) -> ComputeEngine:
        return self._engine

    @property
    def capabilities(self) -> frozenset[Task]:
        return self._engine.capabilities

    @property
    def max_output_bytes(self) -> int:
        return self._max_output_bytes

    async def transcribe(
        self,
        waveform: np.ndarray,
        options: dict[str, Any],
        *,
        use_new_context: bool = False,
    ) -> str:
        """Run speech recognition (or translation, per ``options``) on a waveform.

        Returns:
            The engine output decoded as UTF-8 text.

        Raises:
            EngineError: On any engine failure, output overflow, or invalid UTF-8.
        """
        samples = np.ascontiguousarray(waveform, dtype=np.float32)
        inputs = [
            _Input(AUDIO_INPUT_INDEX, TensorType.F32, [1, samples.shape[0]], samples),
            _options_input(options),
        ]
        output = await self._invoke(inputs, use_new_context=use_new_context)
        try:
            return output.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise OutputDecodeError(
                f"Failed to decode the generated buffer to a utf-8 string. {exc}"
            ) from exc

    async def synthesize(self, text: str, options: dict[str, Any]) -> bytes:
        """Run speech synthesis and return the encoded audio bytes."""
        payload = text.encode("utf-8")
        inputs = [
            _Input(AUDIO_INPUT_INDEX, TensorType.U8, [len(payload)], payload),
            _options_input(options),
        ]
        return await self._invoke(inputs, use_new_context=False)

    async def _invoke(self, inputs: list[_Input], *, use_new_context: bool) -> bytes:
        queued_at = time.monotonic()
        logger.debug("engine_queued", use_new_context=use_new_context)
        async with self._queue_lock:
            wait_s = time.monotonic() - queued_at
            logger.info("engine_computing", queue_wait_s=round(wait_s, 3))
            return await asyncio.to_thread(self._run_sync, inputs, use_new_context)

    def _run_sync(self, inputs: list[_Input], use_new_context: bool) -> bytes:
        with self._engine_lock:
            engine = self._engine
            started = time.monotonic()

            if use_new_context:
                try:
                    engine.init_execution_context()
                except EngineError:
                    raise
                except Exception as exc:
                    raise EngineContextError(str(exc)) from exc
                logger.info("engine_context_rebuilt")

            for item in inputs:
                try:
                    engine.set_input(item.index, item.tensor_type, item.dims, item.data)
                except EngineError:
                    raise
                except Exception as exc:
                    raise EngineInputError(f"index {item.index}: {exc}") from exc

            try:
                engine.compute()
            except EngineError:
                raise
            except Exception as exc:
                raise EngineComputeError(str(exc)) from exc

            try:
                size = engine.get_output(OUTPUT_INDEX, self._buffer)
            except EngineError:
                raise
            except Exception as exc:
                raise EngineOutputError(str(exc)) from exc

            if size < 0 or size > len(self._buffer):
                raise OutputDecodeError(
                    f"output of {size} bytes exceeds the {len(self._buffer)} byte buffer"
                )

            output = bytes(self._buffer[:size])

        logger.info(
            "engine_output",
            output_bytes=size,
            compute_s=round(time.monotonic() - started, 3),
        )
        return output
