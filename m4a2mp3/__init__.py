"""
m4a2mp3 - single-endpoint M4A to MP3 conversion service

The transcoding core lives in ``m4a2mp3.transcoding``; the HTTP adapter in
``m4a2mp3.api``. ``m4a2mp3.client`` is a small standalone client.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
