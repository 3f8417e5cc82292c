"""
Request parameter validation.

Everything here runs before any job state changes and raises
ValidationError on bad input.
"""

import re

from audio_extractor.execution.codec_mapping import (
    DEFAULT_FORMAT,
    DEFAULT_QUALITY,
    QUALITY_TIERS,
    SUPPORTED_FORMATS,
)
from .errors import ValidationError


JOB_ID_PATTERN = re.compile(r"^[0-9a-f]{16}$")
UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")

DEFAULT_FILE_NAME = "video.bin"


def validate_job_id(job_id: str) -> str:
    """
    Raises:
        ValidationError: If the id is not 16 lowercase hex chars
    """
    if not JOB_ID_PATTERN.match(job_id or ""):
        raise ValidationError(f"Invalid job id: {job_id!r}")
    return job_id


def sanitize_file_name(name: str) -> str:
    """
    Reduce an uploaded file name to a safe basename.

    Directory parts are dropped, spaces and any char outside
    [A-Za-z0-9._-] become '_'. Empty results fall back to video.bin.
    """
    name = (name or "").strip().replace("\\", "/")
    name = name.rsplit("/", 1)[-1]
    name = name.replace(" ", "_")
    name = UNSAFE_CHARS.sub("_", name)
    if name in ("", ".", ".."):
        return DEFAULT_FILE_NAME
    return name


def normalize_format(value: str) -> str:
    """
    Raises:
        ValidationError: If the format is not supported
    """
    fmt = (value or "").strip().lower() or DEFAULT_FORMAT
    if fmt not in SUPPORTED_FORMATS:
        raise ValidationError(
            f"Unsupported format '{value}'. Expected one of: {', '.join(SUPPORTED_FORMATS)}"
        )
    return fmt


def normalize_quality(value: str) -> str:
    """
    Raises:
        ValidationError: If the quality tier is unknown
    """
    quality = (value or "").strip().lower() or DEFAULT_QUALITY
    if quality not in QUALITY_TIERS:
        raise ValidationError(
            f"Unsupported quality '{value}'. Expected one of: {', '.join(QUALITY_TIERS)}"
        )
    return quality
