"""FFmpeg muxer: PNG frames on stdin plus positioned audio tracks into one MP4."""

from __future__ import annotations

import asyncio
import contextlib
import shutil
from collections.abc import AsyncIterable, Sequence
from pathlib import Path

from shared.config import config
from shared.errors import EncoderUnavailable, EncodingFailed
from shared.logging_utils import setup_logging
from shared.timeline_models import AudioTrack, VideoFile

logger = setup_logging("ffmpeg-muxer")

VIDEO_CODEC = "libx264"
PIXEL_FORMAT = "yuv420p"
AUDIO_CODEC = "aac"
DEFAULT_CRF = 18
DEFAULT_AUDIO_BITRATE = "192k"
DEFAULT_QUEUE_SIZE = 8


def _seconds(ms: float) -> str:
    """Milliseconds as a compact seconds literal for filter arguments."""
    text = f"{ms / 1000:.3f}".rstrip("0").rstrip(".")
    return text or "0"


def audio_end_ms(tracks: Sequence[AudioTrack]) -> float:
    return max((t.start_time_ms + t.duration_ms for t in tracks), default=0.0)


def output_duration_ms(tracks: Sequence[AudioTrack], total_duration_ms: float = 0) -> float:
    """Length of the encoded output when audio is present."""
    return max(audio_end_ms(tracks), total_duration_ms)


def build_track_filter(track: AudioTrack) -> list[str]:
    """Filter chain for one track: volume, fade in, fade out, trim, delay."""
    duration_ms = track.duration_ms
    parts = [f"volume={track.volume:g}"]

    if track.fade_in_ms > 0:
        parts.append(f"afade=t=in:st=0:d={_seconds(min(track.fade_in_ms, duration_ms))}")

    if track.fade_out_ms > 0:
        fade_ms = min(track.fade_out_ms, duration_ms)
        parts.append(
            f"afade=t=out:st={_seconds(duration_ms - fade_ms)}:d={_seconds(fade_ms)}"
        )

    parts.append(f"atrim=0:{_seconds(duration_ms)}")

    delay_ms = round(track.start_time_ms)
    if delay_ms > 0:
        parts.append(f"adelay=delays={delay_ms}:all=1")

    return parts


def build_ffmpeg_args(
    fps: int,
    tracks: Sequence[AudioTrack],
    output_path: str | Path,
    crf: int = DEFAULT_CRF,
    audio_bitrate: str = DEFAULT_AUDIO_BITRATE,
    total_duration_ms: float = 0,
) -> list[str]:
    """Build the ffmpeg argument list (without the binary).

    With audio, the mix is padded with silence and the output is cut at
    max(audio end, total_duration_ms), so a deck never loses slides that
    outlast the last clip.
    """
    tracks = [t for t in tracks if t.duration_ms > 0]
    args = [
        "-y",
        "-framerate", str(fps),
        "-f", "image2pipe",
        "-c:v", "png",
        "-i", "-",
    ]

    for track in tracks:
        if track.loop:
            args.extend(["-stream_loop", "-1"])
        args.extend(["-i", track.source])

    if tracks:
        filters: list[str] = []
        labels: list[str] = []
        for input_index, track in enumerate(tracks, start=1):
            label = f"a{input_index}"
            chain = ",".join(build_track_filter(track))
            filters.append(f"[{input_index}:a]{chain}[{label}]")
            labels.append(f"[{label}]")

        if len(labels) > 1:
            filters.append(
                f"{''.join(labels)}amix=inputs={len(labels)}:duration=longest"
                f":dropout_transition=0:normalize=0[amix]"
            )
            mixed = "[amix]"
        else:
            mixed = labels[0]
        filters.append(f"{mixed}apad[aout]")
        audio_map = "[aout]"

        args.extend(["-filter_complex", ";".join(filters), "-map", "0:v", "-map", audio_map])
        args.extend(["-c:a", AUDIO_CODEC, "-b:a", audio_bitrate])

    args.extend(["-c:v", VIDEO_CODEC, "-pix_fmt", PIXEL_FORMAT, "-crf", str(crf)])
    if tracks:
        args.extend(["-t", _seconds(output_duration_ms(tracks, total_duration_ms))])
    args.append(str(output_path))
    return args


def find_ffmpeg(explicit: str | None = None) -> str:
    """Locate the ffmpeg binary or raise EncoderUnavailable."""
    candidate = explicit or config.tool_path("ffmpeg")
    if candidate:
        resolved = shutil.which(candidate)
        if resolved:
            return resolved
        if Path(candidate).is_file():
            return str(candidate)
        raise EncoderUnavailable(f"FFmpeg not found at {candidate}")

    resolved = shutil.which("ffmpeg")
    if not resolved:
        raise EncoderUnavailable("FFmpeg not found on PATH")
    return resolved


class MuxJob:
    """A running ffmpeg process fed through a bounded frame queue.

    ``push`` blocks once ``queue_size`` frames are waiting, which holds the
    capture loop back while ffmpeg catches up.
    """

    _EOF = None

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        output_path: Path,
        fps: int,
        expected_duration_ms: float,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        self.process = process
        self.output_path = output_path
        self.fps = fps
        self.expected_duration_ms = expected_duration_ms
        self.frames_written = 0
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=max(1, queue_size))
        self._stderr_chunks: list[bytes] = []
        self._closed = False
        self._writer = asyncio.create_task(self._write_frames())
        self._stderr_reader = asyncio.create_task(self._read_stderr())

    async def push(self, frame: bytes) -> None:
        if self._closed:
            raise RuntimeError("Cannot push frames after close()")
        await self._queue.put(frame)

    async def close(self) -> None:
        """Signal end of the frame stream."""
        if not self._closed:
            self._closed = True
            await self._queue.put(self._EOF)

    async def wait(self) -> VideoFile:
        """Wait for ffmpeg to finish; raises EncodingFailed on a non-zero exit."""
        await self.close()
        await self._writer
        await self._stderr_reader
        returncode = await self.process.wait()
        stderr = b"".join(self._stderr_chunks).decode(errors="replace")
        if returncode != 0:
            raise EncodingFailed(returncode, stderr)

        frame_duration_ms = self.frames_written * 1000 / self.fps
        return VideoFile(
            path=str(self.output_path),
            size_bytes=self.output_path.stat().st_size,
            frame_count=self.frames_written,
            duration_ms=self.expected_duration_ms or frame_duration_ms,
        )

    async def abort(self) -> None:
        """Kill ffmpeg and stop the helper tasks."""
        self._closed = True
        if self.process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                self.process.kill()
        tasks = (self._writer, self._stderr_reader)
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.process.wait()

    async def _write_frames(self) -> None:
        stdin = self.process.stdin
        broken = False
        while True:
            frame = await self._queue.get()
            if frame is self._EOF:
                break
            if broken:
                # ffmpeg is gone; keep draining so push() never blocks forever
                continue
            try:
                stdin.write(frame)
                await stdin.drain()
                self.frames_written += 1
            except (BrokenPipeError, ConnectionResetError):
                logger.warning("FFmpeg closed its input after %d frames", self.frames_written)
                broken = True

        with contextlib.suppress(BrokenPipeError, ConnectionResetError):
            stdin.close()
            await stdin.wait_closed()

    async def _read_stderr(self) -> None:
        stream = self.process.stderr
        while True:
            chunk = await stream.read(65536)
            if not chunk:
                break
            self._stderr_chunks.append(chunk)


class FFmpegMuxer:
    """Spawns ffmpeg jobs with the fixed codec settings."""

    def __init__(
        self,
        ffmpeg_path: str | None = None,
        crf: int | None = None,
        audio_bitrate: str | None = None,
        queue_size: int | None = None,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.crf = int(crf if crf is not None else config.get_pipeline_value("encoder.crf", DEFAULT_CRF))
        self.audio_bitrate = audio_bitrate or config.get_pipeline_value(
            "encoder.audio_bitrate", DEFAULT_AUDIO_BITRATE
        )
        self.queue_size = int(
            queue_size
            if queue_size is not None
            else config.get_pipeline_value("capture.frame_queue_size", DEFAULT_QUEUE_SIZE)
        )

    async def start(
        self,
        fps: int,
        tracks: Sequence[AudioTrack],
        output_path: str | Path,
        expected_duration_ms: float = 0,
    ) -> MuxJob:
        binary = find_ffmpeg(self.ffmpeg_path)
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        args = build_ffmpeg_args(
            fps, tracks, output_path, self.crf, self.audio_bitrate, total_duration_ms=expected_duration_ms
        )
        logger.debug("ffmpeg %s", " ".join(args))

        try:
            process = await asyncio.create_subprocess_exec(
                binary,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise EncoderUnavailable(f"FFmpeg could not be started: {exc}") from exc

        duration_ms = output_duration_ms([t for t in tracks if t.duration_ms > 0], expected_duration_ms)
        return MuxJob(process, output_path, fps, duration_ms, self.queue_size)


async def mux(
    frame_stream: AsyncIterable[bytes],
    audio_tracks: Sequence[AudioTrack],
    fps: int,
    output_path: str | Path,
    muxer: FFmpegMuxer | None = None,
    total_duration_ms: float = 0,
) -> VideoFile:
    """Encode an async stream of PNG frames together with the audio tracks."""
    muxer = muxer or FFmpegMuxer()
    job = await muxer.start(fps, audio_tracks, output_path, expected_duration_ms=total_duration_ms)
    try:
        async for frame in frame_stream:
            await job.push(frame)
        return await job.wait()
    except BaseException:
        await job.abort()
        raise
