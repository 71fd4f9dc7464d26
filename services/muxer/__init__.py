"""Audio/video muxer built on an external ffmpeg process."""

from services.muxer.ffmpeg import (
    FFmpegMuxer,
    MuxJob,
    build_ffmpeg_args,
    build_track_filter,
    find_ffmpeg,
    mux,
)

__all__ = ["FFmpegMuxer", "MuxJob", "build_ffmpeg_args", "build_track_filter", "find_ffmpeg", "mux"]
