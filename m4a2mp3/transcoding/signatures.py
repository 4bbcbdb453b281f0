"""
Byte signature checks for produced audio.

The declared strategy container is only a request; what ffmpeg actually
wrote is decided from the first bytes of the file.
"""

from typing import Optional

MPEG_CONTENT_TYPE = "audio/mpeg"

EXTENSIONS = {
    "audio/mpeg": "mp3",
    "audio/aac": "aac",
    "audio/wav": "wav",
    "audio/mp4": "m4a",
}


def is_adts(data: bytes) -> bool:
    """AAC ADTS frame sync: 12 bits set, layer bits zero."""
    return len(data) >= 2 and data[0] == 0xFF and (data[1] & 0xF6) == 0xF0


def is_mp3(data: bytes) -> bool:
    """
    True for an ID3v2 tag or an MPEG audio frame sync.

    Frame sync is 11 set bits with a non-zero layer field, which excludes
    ADTS headers sharing the same leading byte.
    """
    if len(data) >= 3 and data[:3] == b"ID3":
        return True
    if len(data) >= 2 and data[0] == 0xFF and (data[1] & 0xE0) == 0xE0:
        return (data[1] & 0x06) != 0
    return False


def is_wav(data: bytes) -> bool:
    return len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WAVE"


def is_mp4(data: bytes) -> bool:
    return len(data) >= 8 and data[4:8] == b"ftyp"


def sniff_content_type(data: bytes) -> Optional[str]:
    """Return the audio MIME type of ``data`` or None when unrecognized."""
    # ADTS before MP3: both start with 0xFF
    if is_adts(data):
        return "audio/aac"
    if is_mp3(data):
        return MPEG_CONTENT_TYPE
    if is_wav(data):
        return "audio/wav"
    if is_mp4(data):
        return "audio/mp4"
    return None


def extension_for(content_type: str) -> Optional[str]:
    return EXTENSIONS.get(content_type)
