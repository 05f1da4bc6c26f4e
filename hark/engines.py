"""Engine availability checks and engine construction."""

from __future__ import annotations

import importlib.util
from typing import TYPE_CHECKING

from hark.exceptions import ConfigError

if TYPE_CHECKING:
    from hark.config.settings import EngineSettings
    from hark.inference.interface import ComputeEngine

# Engine name → Python package name (for importlib.util.find_spec).
ENGINE_PACKAGE: dict[str, str] = {
    "faster-whisper": "faster_whisper",
}


def is_engine_available(engine: str) -> bool:
    """Check whether the Python package for *engine* is importable.

    Returns ``False`` for unknown engines.
    """
    package = ENGINE_PACKAGE.get(engine)
    if package is None:
        return False
    return importlib.util.find_spec(package) is not None


def load_engine(settings: EngineSettings) -> ComputeEngine:
    """Load the configured engine and initialize its execution context.

    Raises:
        ConfigError: Unknown engine, engine package missing, or no model path.
        EngineLoadError: The engine failed to load the model.
    """
    if settings.engine not in ENGINE_PACKAGE:
        valid = ", ".join(sorted(ENGINE_PACKAGE))
        raise ConfigError(f"Unknown engine '{settings.engine}'. Available engines: {valid}")
    if not is_engine_available(settings.engine):
        raise ConfigError(
            f"Engine '{settings.engine}' is not installed. "
            f"Install with: pip install hark-gateway[{settings.engine}]"
        )
    if not settings.model_path:
        raise ConfigError("No model path configured. Pass --model or set HARK_MODEL_PATH.")

    from hark.inference.faster_whisper import FasterWhisperEngine

    engine = FasterWhisperEngine(
        settings.model_path,
        threads=settings.threads,
        processors=settings.processors,
        sample_rate=settings.sample_rate,
    )
    engine.init_execution_context()
    return engine
