"""FFmpeg command construction for the RTMP relay."""
from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Sequence

from .destination import StreamDestination


@dataclass(slots=True)
class VideoEncodingOptions:
    """Settings for how the inbound video stream is re-encoded."""

    codec: str = "libx264"
    preset: str = "ultrafast"
    tune: str = "zerolatency"
    frame_rate: int = 25
    crf: int = 25
    pixel_format: str = "yuv420p"
    sc_threshold: int = 0
    profile: str = "main"
    level: str = "3.1"
    extra_args: Sequence[str] = field(default_factory=tuple)

    @property
    def gop_size(self) -> int:
        return self.frame_rate * 2

    @property
    def keyint_min(self) -> int:
        return self.frame_rate


@dataclass(slots=True)
class AudioEncodingOptions:
    """Settings for how the inbound audio stream is re-encoded."""

    codec: str = "aac"
    bitrate: str = "128k"
    sample_rate: int = 32_000
    extra_args: Sequence[str] = field(default_factory=tuple)


@dataclass(slots=True)
class EncoderSettings:
    """Everything needed to launch one FFmpeg relay process.

    The destination is the only per-run input; everything else is fixed
    service configuration.
    """

    ffmpeg_binary: str = "ffmpeg"
    video: VideoEncodingOptions = field(default_factory=VideoEncodingOptions)
    audio: AudioEncodingOptions = field(default_factory=AudioEncodingOptions)
    output_format: str = "flv"
    input_args: Sequence[str] = field(default_factory=tuple)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "EncoderSettings":
        video = VideoEncodingOptions(
            codec=str(config.get("RELAY_VIDEO_CODEC", "libx264")),
            preset=str(config.get("RELAY_VIDEO_PRESET", "ultrafast")),
            tune=str(config.get("RELAY_VIDEO_TUNE", "zerolatency")),
            frame_rate=int(config.get("RELAY_FRAME_RATE", 25)),
            crf=int(config.get("RELAY_VIDEO_CRF", 25)),
            pixel_format=str(config.get("RELAY_PIXEL_FORMAT", "yuv420p")),
            profile=str(config.get("RELAY_VIDEO_PROFILE", "main")),
            level=str(config.get("RELAY_VIDEO_LEVEL", "3.1")),
        )
        audio = AudioEncodingOptions(
            codec=str(config.get("RELAY_AUDIO_CODEC", "aac")),
            bitrate=str(config.get("RELAY_AUDIO_BITRATE", "128k")),
            sample_rate=int(config.get("RELAY_AUDIO_SAMPLE_RATE", 32_000)),
        )
        return cls(
            ffmpeg_binary=str(config.get("RELAY_FFMPEG_BINARY", "ffmpeg")),
            video=video,
            audio=audio,
        )

    def build_command(self, destination: StreamDestination) -> List[str]:
        """Construct the FFmpeg CLI command that relays stdin to ``destination``."""

        cmd: List[str] = [self.ffmpeg_binary]
        cmd.extend(str(arg) for arg in self.input_args)
        cmd.extend(["-i", "-"])
        cmd.extend(self._build_video_args())
        cmd.extend(self._build_audio_args())
        cmd.extend(["-f", self.output_format, destination.url])
        return cmd

    def dry_run(self, destination: StreamDestination) -> str:
        """Return a shell-escaped command string with the stream key masked."""

        command = self.build_command(destination)
        command[-1] = destination.masked_url
        return shlex.join(command)

    def _build_video_args(self) -> List[str]:
        opts = self.video
        args = [
            "-c:v", opts.codec,
            "-preset", opts.preset,
            "-tune", opts.tune,
            "-r", str(opts.frame_rate),
            "-g", str(opts.gop_size),
            "-keyint_min", str(opts.keyint_min),
            "-crf", str(opts.crf),
            "-pix_fmt", opts.pixel_format,
            "-sc_threshold", str(opts.sc_threshold),
            "-profile:v", opts.profile,
            "-level", opts.level,
        ]
        args.extend(opts.extra_args)
        return args

    def _build_audio_args(self) -> List[str]:
        opts = self.audio
        args = [
            "-c:a", opts.codec,
            "-b:a", opts.bitrate,
            "-ar", str(opts.sample_rate),
        ]
        args.extend(opts.extra_args)
        return args


__all__ = ["AudioEncodingOptions", "EncoderSettings", "VideoEncodingOptions"]
