"""
Audio extractor backend.

Uploads a video, extracts its audio with FFmpeg, optionally transcribes
it with whisper.cpp, and streams progress to observers.
"""

__version__ = "0.1.0"
