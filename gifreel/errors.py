"""
Exceptions raised while decoding a GIF. These are part of the public API.

Anything raised after the header has been read carries the blocks decoded so far in its `document`
attribute, so a viewer can still show whatever decoded successfully.
"""

__all__ = (
    "GifStreamException",
    "UnsupportedFormat",
    "MalformedBlock",
    "UnrecognizedExtension",
    "TruncatedStream",
    "TruncatedCode",
    "FrameError",
    "FrameSizeMismatch",
    "DictionaryOverflow",
    "InvalidCode"
)


class GifStreamException(Exception):
    """
    Raised on errors parsing a GIF file.
    """
    def __init__(self, message: str, document=None):
        super().__init__(message)
        self.document = document


class UnsupportedFormat(GifStreamException):
    """Bad or missing GIF87a/GIF89a signature. Nothing is parsed."""


class MalformedBlock(GifStreamException):
    """Unknown block introducer, or a block whose fixed fields are inconsistent."""


class UnrecognizedExtension(MalformedBlock):
    """Extension introducer followed by a label we don't know how to skip."""


class TruncatedStream(GifStreamException):
    """Ran out of bytes in the middle of a structure."""


class TruncatedCode(TruncatedStream):
    """Ran out of bits in the LZW code stream before the end-of-information code."""


class FrameError(GifStreamException):
    """
    Errors confined to a single image. Whether they abort the document is decided by
    FrameErrorPolicy.
    """


class FrameSizeMismatch(FrameError):
    def __init__(self, expected: int, actual: int, document=None):
        msg = "image data decoded to {} indices, expected {}".format(actual, expected)
        super().__init__(msg, document)
        self.expected = expected
        self.actual = actual


class DictionaryOverflow(FrameError):
    """Undefined code seen while the LZW dictionary is full and no clear code came first."""


class InvalidCode(FrameError):
    """A code that can't be decoded in the current dictionary state."""
