"""
Codec Mapping Layer: translate (format, quality) to FFmpeg arguments.

This is the ONLY place where a declared output format and quality are
translated to encoder arguments. The extractor never interprets them.

Rules:
1. Mapping is a pure function: same input, same arguments
2. Every supported format names its muxer and its audio codec
3. Each quality tier maps to the setting that codec actually uses:
   constant bitrate for lossy codecs, VBR scale for Vorbis,
   compression level for FLAC, nothing for PCM
4. An unknown quality uses the medium tier
5. An unknown format falls back to stream copy (no re-encode)
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple


DEFAULT_FORMAT = "mp3"
DEFAULT_QUALITY = "medium"

QUALITY_TIERS: Tuple[str, ...] = ("low", "medium", "high", "original")


@dataclass(frozen=True)
class AudioCodecSpec:
    """Encoder settings for one output format."""

    muxer: str
    codec: str
    extension: str

    # quality tier -> extra arguments
    quality_args: Dict[str, List[str]] = field(default_factory=dict)

    def args_for(self, quality: str) -> List[str]:
        tier = quality if quality in self.quality_args else DEFAULT_QUALITY
        return list(self.quality_args.get(tier, []))


# ============================================================================
# FFMPEG AUDIO CODEC MAPPINGS
# ============================================================================

FFMPEG_AUDIO_CODEC_MAP: Dict[str, AudioCodecSpec] = {
    # MP3 (LAME): CBR tiers, "original" is best-quality VBR
    "mp3": AudioCodecSpec(
        muxer="mp3",
        codec="libmp3lame",
        extension="mp3",
        quality_args={
            "low": ["-b:a", "96k"],
            "medium": ["-b:a", "192k"],
            "high": ["-b:a", "320k"],
            "original": ["-q:a", "0"],
        },
    ),

    # AAC in an ADTS stream
    "aac": AudioCodecSpec(
        muxer="adts",
        codec="aac",
        extension="aac",
        quality_args={
            "low": ["-b:a", "96k"],
            "medium": ["-b:a", "192k"],
            "high": ["-b:a", "320k"],
            "original": ["-b:a", "384k"],
        },
    ),

    # PCM is lossless and has no quality knob
    "wav": AudioCodecSpec(
        muxer="wav",
        codec="pcm_s16le",
        extension="wav",
    ),

    # FLAC: quality only changes compression effort
    "flac": AudioCodecSpec(
        muxer="flac",
        codec="flac",
        extension="flac",
        quality_args={
            "low": ["-compression_level", "8"],
            "medium": ["-compression_level", "8"],
            "high": ["-compression_level", "12"],
            "original": ["-compression_level", "12"],
        },
    ),

    # Vorbis: VBR quality scale
    "ogg": AudioCodecSpec(
        muxer="ogg",
        codec="libvorbis",
        extension="ogg",
        quality_args={
            "low": ["-qscale:a", "2"],
            "medium": ["-qscale:a", "5"],
            "high": ["-qscale:a", "8"],
            "original": ["-qscale:a", "8"],
        },
    ),
}

SUPPORTED_FORMATS: Tuple[str, ...] = tuple(FFMPEG_AUDIO_CODEC_MAP)

PASSTHROUGH_ARGS: List[str] = ["-codec:a", "copy"]


def _clean(value: str) -> str:
    return (value or "").strip().lower()


def codec_and_quality_args(format: str, quality: str) -> List[str]:
    """
    Map a declared format and quality to FFmpeg output arguments.

    Args:
        format: Output format (mp3, aac, wav, flac, ogg). Empty means mp3.
        quality: Quality tier (low, medium, high, original)

    Returns:
        Arguments placed between the input and the output path.
        Unknown formats get a stream-copy passthrough.
    """
    fmt = _clean(format) or DEFAULT_FORMAT
    spec = FFMPEG_AUDIO_CODEC_MAP.get(fmt)
    if spec is None:
        return list(PASSTHROUGH_ARGS)

    args = ["-f", spec.muxer, "-codec:a", spec.codec]
    args.extend(spec.args_for(_clean(quality)))
    return args


def output_extension(format: str) -> str:
    """File extension for a format (unknown formats keep their own name)."""
    fmt = _clean(format).lstrip(".") or DEFAULT_FORMAT
    spec = FFMPEG_AUDIO_CODEC_MAP.get(fmt)
    return spec.extension if spec else fmt


def output_file_name(job_id: str, format: str) -> str:
    """Name of the extracted audio file for a job: <job_id>.<ext>."""
    return f"{job_id}.{output_extension(format)}"
