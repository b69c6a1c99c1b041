"""
Data sub-blocks and the bit reader used by the LZW decoder.

See 15. Data Sub-blocks. in the GIF89a spec. A series of sub-blocks is a size byte followed by at
most 255 bytes of data, repeated, and terminated by a zero-length block.
"""

__all__ = (
    "read_subblocks",
    "read_data",
    "BitReader"
)

import typing as t

from .errors import TruncatedCode, TruncatedStream

# Widest LZW code a GIF can contain.
MAX_CODE_BITS = 12


def read_subblocks(data: bytes, offset: int) -> t.Tuple[t.List[bytes], int]:
    """
    Read a series of data sub-blocks starting at `offset`.

    Returns the list of sub-block payloads (without size bytes), and the offset just past the
    zero-length terminator.
    """
    subblocks = []
    end = len(data)

    while True:
        if offset >= end:
            raise TruncatedStream("missing data sub-block size at offset {}".format(offset))

        size = data[offset]
        offset += 1

        if size == 0:
            return subblocks, offset

        if offset + size > end:
            msg = "data sub-block at offset {} wants {} bytes, only {} left"
            raise TruncatedStream(msg.format(offset - 1, size, end - offset))

        subblocks.append(bytes(data[offset:offset + size]))
        offset += size


def read_data(data: bytes, offset: int) -> t.Tuple[bytes, int]:
    """
    Like read_subblocks(), but concatenates the payloads into one buffer.
    """
    subblocks, offset = read_subblocks(data, offset)
    return b"".join(subblocks), offset


class BitReader:
    """
    Reads variable width codes from a byte buffer. Bits are consumed least significant first within
    each byte, bytes in stream order, which is how GIF packs its LZW codes.
    """
    def __init__(self, data: bytes):
        self.data = data
        self.byte_pos = 0
        self.bit_pos = 0

    @property
    def position(self) -> t.Tuple[int, int]:
        return self.byte_pos, self.bit_pos

    def bits_remaining(self) -> int:
        return (len(self.data) - self.byte_pos) * 8 - self.bit_pos

    def read_code(self, n_bits: int) -> int:
        if not 1 <= n_bits <= MAX_CODE_BITS:
            raise ValueError("code width must be between 1 and {}, got {}".format(MAX_CODE_BITS, n_bits))

        if self.bits_remaining() < n_bits:
            msg = "wanted a {}-bit code, only {} bits left"
            raise TruncatedCode(msg.format(n_bits, self.bits_remaining()))

        data = self.data
        code = 0
        shift = 0

        while shift < n_bits:
            take = min(8 - self.bit_pos, n_bits - shift)
            bits = (data[self.byte_pos] >> self.bit_pos) & ((1 << take) - 1)
            code |= bits << shift
            shift += take

            self.bit_pos += take
            if self.bit_pos == 8:
                self.bit_pos = 0
                self.byte_pos += 1

        return code
