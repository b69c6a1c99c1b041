"""
Helpers for the application extensions that control animation playback.

NETSCAPE2.0 (and its ANIMEXTS1.0 twin) store sub-blocks tagged by their first byte: id 1 is a
16-bit loop count, where 0 means loop forever, and id 2 is a 32-bit buffer size hint.
"""

__all__ = (
    "LOOPING_APPLICATIONS",
    "animation_extension",
    "loop_count",
    "buffer_size",
    "loops"
)

import struct
import typing as t

from .gif import ApplicationExtension, GifDocument

LOOPING_APPLICATIONS = {
    (b"NETSCAPE", b"2.0"),
    (b"ANIMEXTS", b"1.0")
}

LOOP_SUBBLOCK_ID = 1
BUFFER_SUBBLOCK_ID = 2


def animation_extension(document: GifDocument) -> t.Optional[ApplicationExtension]:
    """Return the first looping application extension in the document, if any."""
    for block in document.blocks:
        if isinstance(block, ApplicationExtension) and \
                (block.identifier, block.auth_code) in LOOPING_APPLICATIONS:
            return block

    return None


def _find_subblock(document: GifDocument, subblock_id: int, fmt: str) -> t.Optional[int]:
    ext = animation_extension(document)
    if ext is None:
        return None

    for subblock in ext.data:
        if subblock and subblock[0] == subblock_id and len(subblock) == struct.calcsize(fmt):
            (value,) = struct.unpack(fmt, subblock)
            return value

    return None


def loop_count(document: GifDocument) -> t.Optional[int]:
    """
    Number of times the animation should repeat, 0 for forever, None if the file doesn't say.
    """
    return _find_subblock(document, LOOP_SUBBLOCK_ID, "<xH")


def buffer_size(document: GifDocument) -> t.Optional[int]:
    return _find_subblock(document, BUFFER_SUBBLOCK_ID, "<xI")


def loops(document: GifDocument) -> bool:
    return loop_count(document) is not None
