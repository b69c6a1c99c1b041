"""
GIF flavoured LZW decompression.

The dictionary is a fixed table of 4096 entries addressed by code. Each entry is stored as the code
of its prefix plus one suffix index, so adding an entry is O(1) and a sequence is rebuilt by walking
the prefix chain backwards.
"""

__all__ = (
    "LZWDecoder",
    "decode"
)

import typing as t

from .errors import DictionaryOverflow, InvalidCode
from .subblocks import MAX_CODE_BITS, BitReader

DICT_SIZE = 1 << MAX_CODE_BITS

# GIF89a allows 2..8: color tables hold at most 256 entries, and bilevel images still use 2.
MIN_MIN_CODE_SIZE = 2
MAX_MIN_CODE_SIZE = 8


class LZWDecoder:
    """
    Decodes one image's worth of LZW codes into color indices.

    After a reset the dictionary holds the literals 0..clear_code-1, followed by the reserved clear
    and end-of-information codes, and the code width is min_code_size + 1.
    """
    def __init__(self, min_code_size: int):
        if not MIN_MIN_CODE_SIZE <= min_code_size <= MAX_MIN_CODE_SIZE:
            msg = "LZW minimum code size must be between {} and {}, got {}"
            raise ValueError(msg.format(MIN_MIN_CODE_SIZE, MAX_MIN_CODE_SIZE, min_code_size))

        self.min_code_size = min_code_size
        self.clear_code = 1 << min_code_size
        self.eoi_code = self.clear_code + 1

        self.prefix = [0] * DICT_SIZE
        self.suffix = bytearray(DICT_SIZE)
        self.first = bytearray(DICT_SIZE)
        self.length = [0] * DICT_SIZE

        # literals never change, only the entries above eoi_code are rewritten
        for i in range(self.clear_code):
            self.suffix[i] = i
            self.first[i] = i
            self.length[i] = 1

        self.next_code = 0
        self.code_size = 0
        self.reset()

    def reset(self) -> None:
        self.next_code = self.eoi_code + 1
        self.code_size = self.min_code_size + 1

    def _add(self, prefix_code: int, index: int) -> None:
        code = self.next_code
        if code >= DICT_SIZE:
            # full, frozen until the next clear code
            return

        self.prefix[code] = prefix_code
        self.suffix[code] = index
        self.first[code] = self.first[prefix_code]
        self.length[code] = self.length[prefix_code] + 1

        self.next_code += 1
        if self.next_code == 1 << self.code_size and self.code_size < MAX_CODE_BITS:
            self.code_size += 1

    def _emit(self, code: int, out: bytearray) -> None:
        n = self.length[code]
        start = len(out)
        out.extend(bytes(n))

        prefix = self.prefix
        suffix = self.suffix
        for pos in range(start + n - 1, start - 1, -1):
            out[pos] = suffix[code]
            code = prefix[code]

    def decode(self, reader: BitReader) -> bytes:
        """
        Read codes until the end-of-information code and return the decoded indices.

        A stream that doesn't open with a clear code is accepted, since the decoder already starts
        from a reset state. Raises TruncatedCode if the reader runs dry first.
        """
        out = bytearray()
        prev: t.Optional[int] = None
        self.reset()

        while True:
            code = reader.read_code(self.code_size)

            if code == self.clear_code:
                self.reset()
                prev = None
                continue

            if code == self.eoi_code:
                break

            if prev is None:
                if code >= self.clear_code:
                    msg = "first code after a reset must be a literal, got {}"
                    raise InvalidCode(msg.format(code))
                self._emit(code, out)
            elif code < self.next_code:
                self._emit(code, out)
                self._add(prev, self.first[code])
            elif code == self.next_code:
                # KwK: the code being defined is prev + first index of prev
                self._add(prev, self.first[prev])
                self._emit(code, out)
            elif self.next_code >= DICT_SIZE:
                raise DictionaryOverflow("code {} seen with a full dictionary".format(code))
            else:
                msg = "code {} is past the next free dictionary entry {}"
                raise InvalidCode(msg.format(code, self.next_code))

            prev = code

        return bytes(out)


def decode(data: bytes, min_code_size: int) -> bytes:
    """Decode a concatenated LZW payload (sub-block framing already removed)."""
    return LZWDecoder(min_code_size).decode(BitReader(data))
