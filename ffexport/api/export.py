"""WebSocket endpoint driving an export run.

One connection is one export run:
- text ``{"type": "start", "settings": {...}}`` creates the orchestrator
- text ``{"type": "scene", "sceneName": "..."}`` reports the current segment
- binary messages are raw RGBA frames
- text ``{"type": "end", "result": 0}`` finishes the run

Each handled message is acknowledged so the client can pace its frames.
"""

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ffexport.config import get_settings
from ffexport.render.encoder import EncoderError
from ffexport.render.exporter_server import ExportOrchestrator
from ffexport.schemas.export import ExportSettings, RendererResult, SegmentReport

router = APIRouter()
logger = logging.getLogger(__name__)


def create_ack_message(event: str, **extra: Any) -> dict[str, Any]:
    """Create a standardized acknowledgement message."""
    return {"type": "ack", "event": event, **extra}


def create_complete_message(output_dir: str, segment: Optional[str]) -> dict[str, Any]:
    """Create a standardized completion message."""
    return {
        "type": "complete",
        "status": "completed",
        "output_dir": output_dir,
        "segment": segment,
    }


def create_error_message(
    error_message: str,
    error_code: Optional[str] = None,
    segment: Optional[str] = None,
) -> dict[str, Any]:
    """Create a standardized error message."""
    return {
        "type": "error",
        "status": "failed",
        "error_message": error_message,
        "error_code": error_code,
        "segment": segment,
    }


class ExportSession:
    """Export state for one WebSocket connection."""

    def __init__(self):
        self.orchestrator: Optional[ExportOrchestrator] = None

    def start(self, payload: dict[str, Any]) -> ExportSettings:
        app_settings = get_settings()
        data = {
            "outputDir": app_settings.output_dir,
            "projectRoot": app_settings.project_root,
            "audioSampleRate": app_settings.audio_sample_rate,
            **payload,
        }
        settings = ExportSettings.model_validate(data)
        self.orchestrator = ExportOrchestrator(
            settings,
            ffmpeg_path=app_settings.ffmpeg_path,
            stderr_tail_lines=app_settings.stderr_tail_lines,
        )
        logger.info(
            f"[WS] Export started: {settings.name} {settings.frame_size[0]}x{settings.frame_size[1]} "
            f"@{settings.fps}fps, {len(settings.sounds)} sounds"
        )
        return settings

    def require(self) -> ExportOrchestrator:
        if self.orchestrator is None:
            raise LookupError("Export not started")
        return self.orchestrator

    async def abort(self) -> None:
        """End the active segment as aborted, if any."""
        if self.orchestrator is not None and self.orchestrator.exporter is not None:
            await self.orchestrator.end(RendererResult.ABORTED)


async def _handle_text(session: ExportSession, message: dict[str, Any]) -> dict[str, Any]:
    msg_type = message.get("type")

    if msg_type == "start":
        await session.abort()
        settings = session.start(message.get("settings") or {})
        return create_ack_message("start", name=settings.name)

    if msg_type == "scene":
        report = SegmentReport.model_validate(message)
        orchestrator = session.require()
        await orchestrator.report_scene(report)
        return create_ack_message("scene", segment=orchestrator.current_segment)

    if msg_type == "end":
        orchestrator = session.require()
        result = RendererResult(message.get("result", RendererResult.SUCCESS))
        segment = orchestrator.current_segment
        await orchestrator.end(result)
        return create_complete_message(orchestrator.settings.output_dir, segment)

    raise ValueError(f"Unknown message type: {msg_type!r}")


@router.websocket("/ws")
async def export_websocket(websocket: WebSocket) -> None:
    await websocket.accept()
    session = ExportSession()

    try:
        while True:
            received = await websocket.receive()
            if received["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(received.get("code", 1000))

            try:
                if received.get("bytes") is not None:
                    await session.require().handle_frame(received["bytes"])
                    reply = create_ack_message("frame")
                else:
                    reply = await _handle_text(session, json.loads(received.get("text") or "{}"))
            except ValidationError as e:
                reply = create_error_message(str(e), "INVALID_SETTINGS")
            except LookupError as e:
                reply = create_error_message(str(e), "EXPORT_NOT_STARTED")
            except EncoderError as e:
                logger.error(f"[WS] {e}")
                reply = create_error_message(str(e), "ENCODER_FAILED", segment=e.segment)
            except (ValueError, RuntimeError) as e:
                reply = create_error_message(str(e), "INVALID_MESSAGE")

            await websocket.send_json(reply)
    except WebSocketDisconnect:
        logger.info("[WS] Client disconnected")
        await session.abort()
