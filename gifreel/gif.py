import logging
import struct
import typing as t
from enum import Enum

from .constants import *
from .errors import *
from .lzw import MAX_MIN_CODE_SIZE, MIN_MIN_CODE_SIZE, LZWDecoder
from .subblocks import BitReader, read_data, read_subblocks

__all__ = (
    "Colortable",
    "Block",
    "GifDocument",
    "ScreenDescriptor",
    "ImageFrame",
    "GraphicsControl",
    "ApplicationExtension",
    "CommentExtension",
    "parse",
    "load"
)

logger = logging.getLogger(__name__)

# A type alias for color tables.
Colortable = t.Tuple[t.Tuple[int, int, int], ...]

# Internal constants for reading GIF files.

# Introduces an extension block. Always comes first. The byte after this is the extension label.
EXT_INTRODUCER = 0x21

# Extension labels.
EXT_GRAPHIC_CONTROL_LABEL = 0xF9
EXT_COMMENT_LABEL = 0xFE
EXT_PLAINTEXT_LABEL = 0x01
EXT_APPLICATION_LABEL = 0xFF

# Terminates a GIF file.
TRAILER_LABEL = 0x3B

# Introduces a new image.
IMAGE_SEPARATOR = 0x2C

# GIF versions.
GIF_87a = b"87a"
GIF_89a = b"89a"
VALID_GIF_REVS = {
    GIF_87a: GifVersion.GIF87a,
    GIF_89a: GifVersion.GIF89a
}

GRAPHIC_CONTROL_BLOCK_SIZE = 4
APPLICATION_BLOCK_SIZE = 11
PLAINTEXT_BLOCK_SIZE = 12


# Formatting helpers
def _yesno(pred: bool) -> str:
    return "yes" if pred else "no"


def _sortyesno(is_sorted: bool) -> str:
    return "sorted" if is_sorted else "unsorted"


def _print_colortable(
    table: Colortable,
    title: str = "Local Color Table",
    verbose: bool = False
) -> None:
    """
    Prints a color table.
    """
    print("-- {}".format(title))

    if verbose:
        for (r, g, b) in table:
            print("    ({}, {}, {})".format(r, g, b))
    else:
        print("    (omitting {} entries because no --verbose)".format(len(table)))


# Built-in formats for pretty printing blocks
GLOBAL_COLORTABLE_TEMPLATE = """present, {colortable_size} colors, {sort}
    background index: {bg}"""

SCREEN_DESCRIPTOR_TEMPLATE = """
-- Logical Screen Descriptor
screen size:        {d.width}x{d.height}
pixel aspect ratio: {d.pixel_aspect_ratio}
color resolution:   {d.color_resolution}
global colortable:  {colortable_string}"""

IMAGE_TEMPLATE = """
-- Image
image coords:     {d.width}x{d.height}@({d.left}, {d.top})
interlaced:       {yesno_interlaced}
local colortable: {colortable_string}
indices:          {num_indices}"""

GRAPHIC_CONTROL_EXTENSION_TEMPLATE = """
-- Graphic Control Extension Block
disposal method: {d.disposal_method.name}
delay time:      {delay_ms}
transparency:    {transparency_string}
user input flag: {yesno_userinput}"""

APPLICATION_EXTENSION_TEMPLATE = """
-- Application Extension Block
identifier: {identifier}
auth code:  {auth_code}
sub-blocks: {num_subblocks}"""

COMMENT_EXTENSION_TEMPLATE = """
-- Comment Extension Block"""


class ScreenDescriptor(t.NamedTuple):
    """
    Model of the logical screen descriptor. Controls the size of
    the canvas, BG color, and global color table properties.

    This block is required, and will be available in all GIF versions.
    """
    width: int
    height: int
    colortable_exists: bool
    color_resolution: int
    colortable_is_sorted: bool
    colortable_size: int
    background_color_index: int
    pixel_aspect_ratio: int

    def num_colors(self) -> int:
        return 2 ** (self.colortable_size + 1)

    def pretty_print(self) -> None:
        if self.colortable_exists:
            colortable_string = GLOBAL_COLORTABLE_TEMPLATE.format(
                colortable_size=self.num_colors(),
                sort=_sortyesno(self.colortable_is_sorted),
                bg=self.background_color_index)
        else:
            colortable_string = "absent"

        print(SCREEN_DESCRIPTOR_TEMPLATE.format(
            d=self,
            colortable_string=colortable_string))


class ImageFrame(t.NamedTuple):
    """
    One image from the block stream, already run through the LZW decoder.

    `indices` holds exactly width * height color indices in stream order, so for interlaced
    images the rows are still in pass order. `colortable` is the local color table, or None if
    the global one applies.
    """
    left: int
    top: int
    width: int
    height: int
    interlaced: bool
    colortable: t.Optional[Colortable]
    indices: bytes

    def pretty_print(self, verbose: bool = False) -> None:
        if self.colortable is not None:
            colortable_string = "present, {} colors".format(len(self.colortable))
        else:
            colortable_string = "absent"

        print(IMAGE_TEMPLATE.format(
            d=self,
            yesno_interlaced=_yesno(self.interlaced),
            colortable_string=colortable_string,
            num_indices=len(self.indices)))

        if self.colortable is not None:
            _print_colortable(self.colortable, title="Local Color Table", verbose=verbose)


class GraphicsControl(t.NamedTuple):
    """
    Model of a graphic control extension block. This contains control parameters for animation and
    applies to the next image only. GIF89a only. May not be present even in GIF89a.

    Note that this means each frame gets its own transparency, delay, and disposal method, which can greatly
    complicate processing depending on what you want to do.
    """
    disposal_method: DisposalMethod
    user_input: bool
    transparent_flag: bool
    transparent_index: int
    delay: int  # specified in 1/100ths of a second

    def delay_ms(self) -> int:
        return self.delay * 10

    def pretty_print(self, verbose: bool = False) -> None:
        transparency_string = _yesno(self.transparent_flag)

        if self.transparent_flag:
            transparency_string += " (index {})".format(self.transparent_index)

        print(GRAPHIC_CONTROL_EXTENSION_TEMPLATE.format(
            d=self,
            delay_ms=self.delay_ms(),
            transparency_string=transparency_string,
            yesno_userinput=_yesno(self.user_input)))


class ApplicationExtension(t.NamedTuple):
    """
    Application specific data. The sub-blocks are kept raw; see gifreel.animation for the
    looping extensions.
    """
    identifier: bytes
    auth_code: bytes
    data: t.Tuple[bytes, ...]

    def pretty_print(self, verbose: bool = False) -> None:
        print(APPLICATION_EXTENSION_TEMPLATE.format(
            identifier=self.identifier.decode("latin-1"),
            auth_code=self.auth_code.decode("latin-1"),
            num_subblocks=len(self.data)))

        if verbose:
            for subblock in self.data:
                print("    {!r}".format(subblock))


class CommentExtension(t.NamedTuple):
    comments: t.Tuple[str, ...]

    def pretty_print(self, verbose: bool = False) -> None:
        print(COMMENT_EXTENSION_TEMPLATE)
        for comment in self.comments:
            print("    {!r}".format(comment))


Block = t.Union[ImageFrame, GraphicsControl, ApplicationExtension, CommentExtension]


class GifDocument(t.NamedTuple):
    """
    A parsed GIF: screen descriptor, global color table, and the block stream in file order.

    `truncated` is set when the input ended before the trailer. `frame_errors` lists
    (block position, error) for images dropped under FrameErrorPolicy.SKIP, where the position is
    where the image would have been in `blocks`.
    """
    version: GifVersion
    screen: ScreenDescriptor
    colortable: t.Optional[Colortable]
    blocks: t.Tuple[Block, ...]
    truncated: bool = False
    frame_errors: t.Tuple[t.Tuple[int, FrameError], ...] = ()

    @property
    def width(self) -> int:
        return self.screen.width

    @property
    def height(self) -> int:
        return self.screen.height

    @property
    def background_color_index(self) -> int:
        return self.screen.background_color_index

    def images(self) -> t.List[ImageFrame]:
        return [block for block in self.blocks if isinstance(block, ImageFrame)]

    def comments(self) -> t.List[str]:
        return [comment for block in self.blocks if isinstance(block, CommentExtension)
                for comment in block.comments]

    def pretty_print(self, verbose: bool = False) -> None:
        print("{} ({} blocks{}):".format(
            self.version, len(self.blocks), ", truncated" if self.truncated else ""))
        self.screen.pretty_print()

        if self.colortable:
            print()
            _print_colortable(self.colortable, title="Global Color Table",
                              verbose=verbose)

        for block in self.blocks:
            block.pretty_print(verbose)

        for position, err in self.frame_errors:
            print()
            print("-- Skipped image at block {}: {}".format(position, err))


class _BlockType(Enum):
    """
    Internal block type enum. Used by _GifStream to signal what type of block is next in the stream.
    """
    IMAGE_DATA = 0
    EXT_GRAPHIC_CONTROL = 1
    EXT_COMMENT = 2
    EXT_PLAINTEXT = 3
    EXT_APPLICATION = 4
    TRAILER = 5
    END_OF_INPUT = 6


_EXTENSION_TYPES = {
    EXT_GRAPHIC_CONTROL_LABEL: _BlockType.EXT_GRAPHIC_CONTROL,
    EXT_COMMENT_LABEL: _BlockType.EXT_COMMENT,
    EXT_PLAINTEXT_LABEL: _BlockType.EXT_PLAINTEXT,
    EXT_APPLICATION_LABEL: _BlockType.EXT_APPLICATION
}


class _GifStream:
    """
    Internal utility class that walks along the GIF bytes and returns the higher level block models.
    """
    def __init__(self, data: bytes):
        self.data = data
        self.position = 0

    def remaining(self) -> int:
        return len(self.data) - self.position

    def next(self, n: int) -> bytes:
        if self.remaining() < n:
            msg = "wanted {} bytes at offset {}, only {} left"
            raise TruncatedStream(msg.format(n, self.position, self.remaining()))

        chunk = self.data[self.position:self.position + n]
        self.position += n
        return bytes(chunk)

    def next_byte(self) -> int:
        return self.next(1)[0]

    def unpack(self, fmt: str) -> tuple:
        # gif is little endian
        return struct.unpack("<" + fmt, self.next(struct.calcsize("<" + fmt)))

    def consume_header(self) -> GifVersion:
        """
        Consume the GIF header, and return the GIF revision. Also validates signature and version.
        """
        header = bytes(self.data[:6])

        if len(header) < 6 or header[:3] != b"GIF":
            raise UnsupportedFormat("Bad signature {!r}".format(header[:3]))

        version = header[3:]

        if version not in VALID_GIF_REVS:
            raise UnsupportedFormat("Invalid GIF version {!r}".format(version))

        self.position = 6
        return VALID_GIF_REVS[version]

    def consume_screen_descriptor(self) -> ScreenDescriptor:
        """
        Consume and return the required logical screen descriptor block. If desc.colortable_exists is True,
        it's expected the color table will be consumed next, with consume_color_table().
        """
        width, height, packed_fields, background, aspect = self.unpack("HHBBB")

        return ScreenDescriptor(
            width=width,
            height=height,
            colortable_exists=bool((packed_fields >> 7) & 0x1),
            color_resolution=(packed_fields >> 4) & 0x7,
            colortable_is_sorted=bool((packed_fields >> 3) & 0x1),
            colortable_size=packed_fields & 0x7,
            background_color_index=background,
            pixel_aspect_ratio=aspect)

    def consume_color_table(self, num_colors: int) -> Colortable:
        """
        Consume and return a color table. Works for both global and local tables.
        """
        raw = self.next(num_colors * 3)
        return tuple((raw[i], raw[i + 1], raw[i + 2]) for i in range(0, len(raw), 3))

    def check_blocktype(self) -> _BlockType:
        """
        Determine what type of block the cursor is pointing at, without consuming it.
        """
        if self.remaining() < 1:
            return _BlockType.END_OF_INPUT

        introducer = self.data[self.position]

        if introducer == TRAILER_LABEL:
            return _BlockType.TRAILER

        if introducer == IMAGE_SEPARATOR:
            return _BlockType.IMAGE_DATA

        if introducer == EXT_INTRODUCER:
            if self.remaining() < 2:
                raise TruncatedStream("Unexpected end of file while reading extension label")

            label = self.data[self.position + 1]
            if label not in _EXTENSION_TYPES:
                msg = "Unrecognized extension label {:02X} at offset {}"
                raise UnrecognizedExtension(msg.format(label, self.position + 1))

            return _EXTENSION_TYPES[label]

        msg = "fatal: Unknown block introducer {:02X} at offset {}"
        raise MalformedBlock(msg.format(introducer, self.position))

    def consume_image(self) -> ImageFrame:
        """
        Consume an image descriptor, its optional local color table and the image data, and return
        the decoded image.

        The cursor is always moved past the image data before a FrameError is raised, so parsing
        can carry on with the next block.
        """
        self.position += 1  # skip separator

        left, top, width, height, packed_fields = self.unpack("HHHHB")

        colortable = None
        if (packed_fields >> 7) & 0x1:
            colortable = self.consume_color_table(2 ** ((packed_fields & 0x7) + 1))

        interlaced = bool((packed_fields >> 6) & 0x1)

        min_code_size = self.next_byte()
        if not MIN_MIN_CODE_SIZE <= min_code_size <= MAX_MIN_CODE_SIZE:
            msg = "LZW minimum code size {} at offset {} out of range"
            raise MalformedBlock(msg.format(min_code_size, self.position - 1))

        payload, self.position = read_data(self.data, self.position)

        indices = LZWDecoder(min_code_size).decode(BitReader(payload))

        if len(indices) != width * height:
            raise FrameSizeMismatch(width * height, len(indices))

        return ImageFrame(
            left=left,
            top=top,
            width=width,
            height=height,
            interlaced=interlaced,
            colortable=colortable,
            indices=indices)

    def consume_graphic_control_extension(self) -> GraphicsControl:
        """
        Consume and return the graphic control extension.
        """
        self.position += 2  # skip introducer and label

        block_size = self.next_byte()
        if block_size != GRAPHIC_CONTROL_BLOCK_SIZE:
            msg = "Bad graphic control block size {} at offset {}"
            raise MalformedBlock(msg.format(block_size, self.position - 1))

        packed_fields, delay, transparent_index = self.unpack("BHB")

        terminator = self.next_byte()
        if terminator != 0:
            msg = "Graphic control extension not terminated at offset {}"
            raise MalformedBlock(msg.format(self.position - 1))

        return GraphicsControl(
            disposal_method=DisposalMethod.from_field((packed_fields >> 2) & 0x7),
            user_input=bool((packed_fields >> 1) & 0x1),
            transparent_flag=bool(packed_fields & 0x1),
            transparent_index=transparent_index,
            delay=delay)

    def consume_application_extension(self) -> ApplicationExtension:
        start = self.position
        self.position += 2  # skip introducer and label

        subblocks, self.position = read_subblocks(self.data, self.position)

        if not subblocks or len(subblocks[0]) != APPLICATION_BLOCK_SIZE:
            msg = "Application extension at offset {} has a bad header block"
            raise MalformedBlock(msg.format(start))

        header = subblocks[0]
        return ApplicationExtension(
            identifier=header[:8],
            auth_code=header[8:],
            data=tuple(subblocks[1:]))

    def consume_comment_extension(self) -> CommentExtension:
        self.position += 2  # skip introducer and label

        subblocks, self.position = read_subblocks(self.data, self.position)
        return CommentExtension(tuple(s.decode("latin-1") for s in subblocks))

    def skip_plaintext_extension(self) -> int:
        """
        Skip a plain text extension. The fixed header sub-block and the text are thrown away,
        plain text isn't rendered.

        Returns the number of text bytes skipped.
        """
        start = self.position
        self.position += 2  # skip introducer and label

        block_size = self.next_byte()
        if block_size != PLAINTEXT_BLOCK_SIZE:
            msg = "Bad plain text block size {} at offset {}"
            raise MalformedBlock(msg.format(block_size, self.position - 1))

        self.next(PLAINTEXT_BLOCK_SIZE)
        text, self.position = read_data(self.data, self.position)

        logger.debug("skipped plain text extension at offset %d (%d bytes)", start, len(text))
        return len(text)


def parse(data: bytes, frame_errors: FrameErrorPolicy = FrameErrorPolicy.RAISE) -> GifDocument:
    """
    Parse a complete GIF from a bytes-like object.

    Raises UnsupportedFormat for anything without a GIF87a/GIF89a signature. Other errors carry the
    blocks decoded before the failure in their `document` attribute.
    """
    gifstream = _GifStream(data)

    # Consume one-time header info
    version = gifstream.consume_header()

    screen: t.Optional[ScreenDescriptor] = None
    colortable: t.Optional[Colortable] = None
    blocks: t.List[Block] = []
    skipped: t.List[t.Tuple[int, FrameError]] = []

    def partial(truncated: bool) -> t.Optional[GifDocument]:
        if screen is None:
            return None
        return GifDocument(version, screen, colortable, tuple(blocks), truncated, tuple(skipped))

    try:
        screen = gifstream.consume_screen_descriptor()

        if screen.colortable_exists:
            colortable = gifstream.consume_color_table(screen.num_colors())
        else:
            logger.warning("no global color table")

        # Parse remaining blocks. Mostly image data and extension data.
        while True:
            offset = gifstream.position
            blocktype = gifstream.check_blocktype()
            logger.debug("%s at offset %d", blocktype.name, offset)

            if blocktype == _BlockType.END_OF_INPUT:
                logger.warning("input ended after %d blocks without a trailer", len(blocks))
                return partial(truncated=True)
            elif blocktype == _BlockType.TRAILER:
                gifstream.position += 1
                if gifstream.remaining():
                    logger.debug("ignoring %d bytes after the trailer", gifstream.remaining())
                return partial(truncated=False)
            elif blocktype == _BlockType.IMAGE_DATA:
                try:
                    blocks.append(gifstream.consume_image())
                except FrameError as err:
                    if frame_errors is FrameErrorPolicy.RAISE:
                        raise
                    logger.warning("skipping image at offset %d: %s", offset, err)
                    skipped.append((len(blocks), err))
            elif blocktype == _BlockType.EXT_GRAPHIC_CONTROL:
                blocks.append(gifstream.consume_graphic_control_extension())
            elif blocktype == _BlockType.EXT_APPLICATION:
                blocks.append(gifstream.consume_application_extension())
            elif blocktype == _BlockType.EXT_COMMENT:
                blocks.append(gifstream.consume_comment_extension())
            elif blocktype == _BlockType.EXT_PLAINTEXT:
                gifstream.skip_plaintext_extension()
            else:
                raise Exception("Unexpected blocktype returned!")
    except GifStreamException as err:
        if err.document is None:
            err.document = partial(truncated=True)
        raise


def load(path: str, frame_errors: FrameErrorPolicy = FrameErrorPolicy.RAISE) -> GifDocument:
    """Read and parse a GIF file."""
    with open(path, "rb") as f:
        return parse(f.read(), frame_errors)
