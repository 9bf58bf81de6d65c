"""
Audio filter graph construction for FFmpeg.

Turns a list of sounds into one labelled filter chain per sound plus a
final ``amix`` stage. Pure functions only: no I/O, no process handling.

Every sound is resampled to the target rate, so the mix always sees a
common sample rate even when no other processing is requested.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from ffexport.schemas.export import Sound

MIX_OUTPUT_LABEL = "a"

# Characters with structural meaning in a filter graph description
_RESERVED = set("[],;:=")


def format_value(value: object) -> str:
    """Render a parameter value the way FFmpeg expects it (``2`` not ``2.0``)."""
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class PositionalParams:
    """Parameters given by position: ``name=v1:v2``."""

    values: tuple[str, ...]


@dataclass(frozen=True)
class KeywordParams:
    """Parameters given by key: ``name=k1=v1:k2=v2``."""

    items: tuple[tuple[str, str], ...]


FilterParams = Union[PositionalParams, KeywordParams]


@dataclass(frozen=True)
class FilterOp:
    """A single named filter with its parameters."""

    name: str
    params: FilterParams

    def __post_init__(self) -> None:
        if not self.name or _RESERVED & set(self.name):
            raise ValueError(f"Invalid filter name: {self.name!r}")
        if isinstance(self.params, PositionalParams):
            values = list(self.params.values)
        else:
            values = [v for item in self.params.items for v in item]
        for value in values:
            if not value or _RESERVED & set(value):
                raise ValueError(f"Invalid option {value!r} for filter {self.name}")

    @classmethod
    def positional(cls, name: str, *values: object) -> "FilterOp":
        return cls(name, PositionalParams(tuple(format_value(v) for v in values)))

    @classmethod
    def keyword(cls, name: str, **items: object) -> "FilterOp":
        return cls(
            name,
            KeywordParams(tuple((k, format_value(v)) for k, v in items.items() if v is not None)),
        )

    def format(self) -> str:
        if isinstance(self.params, PositionalParams):
            options = list(self.params.values)
        else:
            options = [f"{k}={v}" for k, v in self.params.items]
        if not options:
            return self.name
        return f"{self.name}={':'.join(options)}"


@dataclass
class FilterChain:
    """Filters applied in order to labelled input streams, producing labelled outputs."""

    inputs: list[str]
    filters: list[FilterOp]
    outputs: list[str]

    def format(self) -> str:
        in_str = "".join(f"[{label}]" for label in self.inputs)
        out_str = "".join(f"[{label}]" for label in self.outputs)
        return in_str + ",".join(f.format() for f in self.filters) + out_str


@dataclass
class AudioInput:
    """An audio file fed to the encoder, optionally pre-seeked."""

    path: str
    seek: float | None = None

    def input_options(self) -> list[str]:
        if self.seek is None:
            return []
        return ["-ss", format_value(self.seek)]


@dataclass
class AudioGraph:
    """Result of :func:`build_audio_graph`.

    ``inputs[i]`` is encoder input ``i + 1``; input 0 is the raw video.
    """

    inputs: list[AudioInput] = field(default_factory=list)
    chains: list[FilterChain] = field(default_factory=list)
    mix: FilterChain | None = None

    @property
    def is_empty(self) -> bool:
        return self.mix is None

    def filter_complex(self) -> str | None:
        if self.mix is None:
            return None
        return ";".join(chain.format() for chain in [*self.chains, self.mix])

    def output_maps(self) -> list[str]:
        if self.mix is None:
            return []
        return ["-map", "0:v", "-map", f"[{MIX_OUTPUT_LABEL}]"]


def trimmed_start(sound: Sound) -> float:
    """Source position (seconds) the sound must be read from.

    A negative offset means the sound began before the segment, so the read
    pointer moves forward by the skipped time scaled by the playback rate.
    """
    start = sound.start or 0
    if sound.offset < 0:
        start -= sound.offset * sound.real_playback_rate
    return start


def build_sound_filters(sound: Sound, sample_rate: int, seek: float) -> list[FilterOp]:
    """Build the ordered filter list for one sound."""
    filters: list[FilterOp] = []

    if sound.end is not None:
        filters.append(FilterOp.keyword("atrim", end=sound.end - seek))

    filters.append(FilterOp.positional("aresample", sample_rate))

    if sound.gain:
        filters.append(FilterOp.keyword("volume", volume=f"{format_value(sound.gain)}dB"))

    if sound.real_playback_rate != 1:
        rate = round(sample_rate * sound.real_playback_rate)
        filters.append(FilterOp.keyword("asetrate", r=rate))
        filters.append(FilterOp.positional("aresample", sample_rate))

    if sound.offset > 0:
        delay = round(sound.offset * 1000)
        filters.append(FilterOp.keyword("adelay", delays=delay, all=1))

    return filters


def build_audio_graph(
    sounds: list[Sound],
    sample_rate: int,
    resolve_path: Optional[Callable[[str], str]] = None,
) -> AudioGraph:
    """
    Build the audio inputs and filter graph for a segment.

    Args:
        sounds: Sounds already filtered and re-baselined to the segment
        sample_rate: Target sample rate shared by every chain
        resolve_path: Maps a sound's audio reference to a file path

    Returns:
        AudioGraph; empty (no mix) when there are no sounds
    """
    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")
    resolve_path = resolve_path or (lambda ref: ref)

    graph = AudioGraph()
    streams: list[str] = []

    for i, sound in enumerate(sounds):
        index = i + 1
        seek = trimmed_start(sound)
        graph.inputs.append(AudioInput(path=resolve_path(sound.audio), seek=seek if seek != 0 else None))

        filters = build_sound_filters(sound, sample_rate, seek)
        if filters:
            label = f"a{index}"
            graph.chains.append(FilterChain(inputs=[f"{index}:a"], filters=filters, outputs=[label]))
            streams.append(label)
        else:
            streams.append(f"{index}:a")

    if sounds:
        graph.mix = FilterChain(
            inputs=streams,
            filters=[
                FilterOp.keyword("amix", inputs=len(sounds), dropout_transition=0, normalize=0),
            ],
            outputs=[MIX_OUTPUT_LABEL],
        )

    return graph
