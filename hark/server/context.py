"""Long-lived gateway state built once at startup.

One ``GatewayContext`` is created by ``hark serve`` (or by tests) and
stored on ``app.state.context``; routes reach it through dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

import hark
from hark._audio_constants import DEFAULT_ALLOWED_EXTENSIONS, ENGINE_SAMPLE_RATE
from hark._types import OperatingMode

if TYPE_CHECKING:
    from hark.archive.store import FileArchive
    from hark.config.settings import HarkSettings
    from hark.inference.interface import ComputeEngine
    from hark.inference.invoker import InferenceInvoker
    from hark.preprocessing.converter import AudioConverter
    from hark.server.task_gate import TaskGate

# Placeholder alias that is never published.
DEFAULT_MODEL_ALIAS = "default"


class ModelConfig(BaseModel):
    """Model published for one task."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    type: str


class ServerInfo(BaseModel):
    """Snapshot served verbatim by GET /v1/info."""

    model_config = ConfigDict(frozen=True)

    type: str = "whisper"
    version: str = Field(default_factory=lambda: hark.__version__)
    port: str
    translate_model: ModelConfig | None = None
    transcribe_model: ModelConfig | None = None
    extras: dict[str, str] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(exclude_none=True)


def build_server_info(
    mode: OperatingMode,
    model_name: str,
    port: int,
    model_alias: str | None = None,
) -> ServerInfo:
    """Publish the model under the tasks the operating mode enables.

    A model alias other than the placeholder ``"default"`` is published in
    ``extras``.
    """
    transcribe_model = None
    translate_model = None
    if mode in (OperatingMode.TRANSCRIBE, OperatingMode.FULL):
        transcribe_model = ModelConfig(name=model_name, type="transcribe")
    if mode in (OperatingMode.TRANSLATE, OperatingMode.FULL):
        translate_model = ModelConfig(name=model_name, type="translate")
    return ServerInfo(
        port=str(port),
        transcribe_model=transcribe_model,
        translate_model=translate_model,
        extras=_alias_extras(model_alias),
    )


def _alias_extras(model_alias: str | None) -> dict[str, str]:
    if not model_alias or model_alias == DEFAULT_MODEL_ALIAS:
        return {}
    return {"model_alias": model_alias}


def _default_extensions() -> tuple[str, ...]:
    return tuple(DEFAULT_ALLOWED_EXTENSIONS.split(","))


@dataclass(slots=True)
class GatewayContext:
    """Everything a request handler needs, owned for the process lifetime."""

    gate: TaskGate
    invoker: InferenceInvoker
    archive: FileArchive
    converter: AudioConverter
    server_info: ServerInfo
    sample_rate: int = ENGINE_SAMPLE_RATE
    allowed_extensions: tuple[str, ...] = ()
    max_file_size_bytes: int = 25 * 1024 * 1024
    api_key: str | None = None

    def __post_init__(self) -> None:
        if not self.allowed_extensions:
            self.allowed_extensions = _default_extensions()


def build_context(
    settings: HarkSettings,
    engine: ComputeEngine,
    *,
    mode: OperatingMode,
    port: int,
) -> GatewayContext:
    """Assemble the gateway context around a loaded engine.

    The operating mode is committed here, once, before the app can serve.
    """
    from hark.archive.store import FileSystemArchive
    from hark.inference.invoker import InferenceInvoker
    from hark.preprocessing.converter import PassthroughConverter, SoundfileConverter
    from hark.server.task_gate import TaskGate

    converter: AudioConverter = (
        SoundfileConverter() if settings.engine.audio_preprocessor else PassthroughConverter()
    )
    return GatewayContext(
        gate=TaskGate(mode),
        invoker=InferenceInvoker(engine, max_output_bytes=settings.engine.max_output_bytes),
        archive=FileSystemArchive(settings.server.archive_path),
        converter=converter,
        server_info=build_server_info(
            mode, settings.engine.model_name, port, settings.engine.model_alias
        ),
        sample_rate=settings.engine.sample_rate,
        allowed_extensions=settings.server.allowed_extensions_list,
        max_file_size_bytes=settings.server.max_file_size_bytes,
        api_key=settings.server.api_key,
    )
