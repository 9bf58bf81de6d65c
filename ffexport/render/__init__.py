from ffexport.render.encoder import EncoderError, EncoderProcess
from ffexport.render.exporter_server import ExportOrchestrator
from ffexport.render.filters import AudioGraph, FilterOp, build_audio_graph
from ffexport.render.frame_stream import FrameStream
from ffexport.render.segment_exporter import SegmentExporter

__all__ = [
    "AudioGraph",
    "EncoderError",
    "EncoderProcess",
    "ExportOrchestrator",
    "FilterOp",
    "FrameStream",
    "SegmentExporter",
    "build_audio_graph",
]
