"""Tests for InferenceInvoker: exclusivity, context rebuild, output handling."""

from __future__ import annotations

import asyncio

import numpy as np
import pytest

from hark._types import TensorType
from hark.exceptions import (
    EngineComputeError,
    EngineContextError,
    EngineInputError,
    EngineOutputError,
    OutputDecodeError,
)
from hark.inference.invoker import InferenceInvoker
from tests.helpers import RecordingEngine

SEQUENCE = ["set_input:0", "set_input:1", "compute", "get_output"]


def _waveform(n: int = 1600) -> np.ndarray:
    return np.zeros(n, dtype=np.float32)


class TestTranscribe:
    async def test_returns_decoded_text(self) -> None:
        engine = RecordingEngine("bonjour à tous")
        invoker = InferenceInvoker(engine)

        text = await invoker.transcribe(_waveform(), {"task": "transcribe"})

        assert text == "bonjour à tous"
        assert engine.calls == SEQUENCE

    async def test_binds_waveform_and_options(self) -> None:
        engine = RecordingEngine()
        invoker = InferenceInvoker(engine)

        await invoker.transcribe(_waveform(800), {"task": "translate", "language": "de"})

        tensor_type, dims, data = engine.audio_inputs[0]
        assert tensor_type is TensorType.F32
        assert dims == [1, 800]
        assert data.dtype == np.float32
        assert engine.options == [{"task": "translate", "language": "de"}]

    async def test_new_context_rebuilt_before_inputs(self) -> None:
        engine = RecordingEngine()
        invoker = InferenceInvoker(engine)

        await invoker.transcribe(_waveform(), {}, use_new_context=True)

        assert engine.calls == ["init_context", *SEQUENCE]

    async def test_context_reused_by_default(self) -> None:
        engine = RecordingEngine()
        invoker = InferenceInvoker(engine)

        await invoker.transcribe(_waveform(), {})
        await invoker.transcribe(_waveform(), {})

        assert "init_context" not in engine.calls


class TestExclusiveAccess:
    async def test_concurrent_requests_never_interleave(self) -> None:
        engine = RecordingEngine("result", compute_delay=0.01)
        invoker = InferenceInvoker(engine)

        results = await asyncio.gather(
            *(
                invoker.transcribe(_waveform(), {"prompt": f"req-{i}"}, use_new_context=i % 3 == 0)
                for i in range(8)
            )
        )

        assert results == [f"result req-{i}" for i in range(8)]
        assert engine.max_in_flight == 1
        calls = [c for c in engine.calls if c != "init_context"]
        assert calls == SEQUENCE * 8

    async def test_context_rebuild_is_inside_critical_section(self) -> None:
        engine = RecordingEngine(compute_delay=0.01)
        invoker = InferenceInvoker(engine)

        await asyncio.gather(
            invoker.transcribe(_waveform(), {"prompt": "a"}),
            invoker.transcribe(_waveform(), {"prompt": "b"}, use_new_context=True),
        )

        index = engine.calls.index("init_context")
        assert engine.calls[index + 1 : index + 5] == SEQUENCE
        assert index in (0, 4)


class TestOutput:
    async def test_output_larger_than_buffer_is_decode_error(self) -> None:
        engine = RecordingEngine("x" * 100)
        invoker = InferenceInvoker(engine, max_output_bytes=16)

        with pytest.raises(OutputDecodeError, match="exceeds"):
            await invoker.transcribe(_waveform(), {})

    async def test_negative_size_is_decode_error(self) -> None:
        invoker = InferenceInvoker(RecordingEngine(reported_size=-1))

        with pytest.raises(OutputDecodeError):
            await invoker.transcribe(_waveform(), {})

    async def test_invalid_utf8_is_decode_error(self) -> None:
        invoker = InferenceInvoker(RecordingEngine(output=b"\xff\xfe\xfa"))

        with pytest.raises(OutputDecodeError, match="utf-8"):
            await invoker.transcribe(_waveform(), {})

    async def test_buffer_reused_without_stale_bytes(self) -> None:
        engine = RecordingEngine("a much longer first answer")
        invoker = InferenceInvoker(engine)
        await invoker.transcribe(_waveform(), {})

        engine.text = "short"
        assert await invoker.transcribe(_waveform(), {}) == "short"


class TestEngineFailures:
    @pytest.mark.parametrize(
        ("stage", "error"),
        [
            ("set_input", EngineInputError),
            ("compute", EngineComputeError),
            ("get_output", EngineOutputError),
        ],
    )
    async def test_stage_errors_are_typed(self, stage: str, error: type[Exception]) -> None:
        invoker = InferenceInvoker(RecordingEngine(fail_on=stage))

        with pytest.raises(error, match=f"simulated {stage} failure"):
            await invoker.transcribe(_waveform(), {})

    async def test_context_rebuild_failure(self) -> None:
        invoker = InferenceInvoker(RecordingEngine(fail_on="init_context"))

        with pytest.raises(EngineContextError):
            await invoker.transcribe(_waveform(), {}, use_new_context=True)

    async def test_failure_releases_engine(self) -> None:
        engine = RecordingEngine(fail_on="compute")
        invoker = InferenceInvoker(engine)
        with pytest.raises(EngineComputeError):
            await invoker.transcribe(_waveform(), {})

        engine.fail_on = None
        engine.calls.clear()
        assert await invoker.transcribe(_waveform(), {}) == "hello world"


class TestSynthesize:
    async def test_text_bound_as_u8(self) -> None:
        engine = RecordingEngine(output=b"RIFFwav")
        invoker = InferenceInvoker(engine)

        audio = await invoker.synthesize("hello", {"voice": "amy"})

        assert audio == b"RIFFwav"
        tensor_type, dims, data = engine.audio_inputs[0]
        assert tensor_type is TensorType.U8
        assert dims == [5]
        assert bytes(data) == b"hello"
        assert engine.options[0] == {"voice": "amy"}
