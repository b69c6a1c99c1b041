"""
Turns a parsed GifDocument into fully composited RGBA frames.

Each image is drawn over whatever the previous images left on the canvas, after that previous
image's disposal method has been applied. This is why frames can only be produced in order:
there is no way to jump to frame N without drawing frames 0..N-1 first.
"""

__all__ = (
    "Frame",
    "FrameCompositor",
    "interlace_rows",
    "iter_frames",
    "frames",
    "prefetch_frames"
)

import logging
import queue
import threading
import typing as t

from .animation import loops
from .constants import DisposalMethod, FrameErrorPolicy
from .gif import (ApplicationExtension, Block, CommentExtension, GifDocument,
                  GraphicsControl, ImageFrame, parse)

logger = logging.getLogger(__name__)

# Canvas color when the file has no usable background color.
DEFAULT_BACKGROUND = (255, 255, 255)

# Drawn for color indices the color table doesn't cover.
MISSING_COLOR = b"\x00\x00\x00\xff"

# Row order of the four interlace passes, as (first row, step).
INTERLACE_PASSES = (
    (0, 8),
    (4, 8),
    (2, 4),
    (1, 2)
)


class Frame(t.NamedTuple):
    """
    One displayable frame. `rgba` is the whole canvas, width * height * 4 bytes, row-major.
    """
    rgba: bytes
    width: int
    height: int
    delay_ms: int
    loop: bool
    transparent: bool
    index: int


def interlace_rows(height: int) -> t.List[int]:
    """
    Destination row for each source row of an interlaced image, so rows[r] is where the r-th row
    in the data stream goes.
    """
    rows = []
    for first, step in INTERLACE_PASSES:
        rows.extend(range(first, height, step))

    return rows


def _rgba(color: t.Tuple[int, int, int]) -> bytes:
    r, g, b = color
    return bytes((r, g, b, 0xFF))


class FrameCompositor:
    """
    Replays a document's blocks against a persistent canvas.

    Feed it blocks in order with advance(). Graphics control blocks are held until the next image,
    which consumes them. Not safe to drive from more than one thread.
    """
    def __init__(self, document: GifDocument):
        self.document = document
        self.width = document.width
        self.height = document.height
        self.loop = loops(document)

        self.background = _rgba(self.background_color())
        self.canvas = bytearray(self.background * (self.width * self.height))

        # Canvas as it was before the current image was drawn, for RESTORE_PREVIOUS.
        self.previous: t.Optional[bytes] = None

        self.pending: t.Optional[GraphicsControl] = None
        self.frame_count = 0
        self._warned_no_colortable = False

    def background_color(self) -> t.Tuple[int, int, int]:
        colortable = self.document.colortable
        index = self.document.background_color_index

        if colortable and index < len(colortable):
            return colortable[index]

        return DEFAULT_BACKGROUND

    def advance(self, block: Block) -> t.Optional[Frame]:
        """
        Apply one block. Returns the composited frame for images, None for everything else.
        """
        if isinstance(block, GraphicsControl):
            # a second control block before an image replaces the first
            self.pending = block
            return None
        elif isinstance(block, ImageFrame):
            return self._draw(block)
        elif isinstance(block, CommentExtension):
            for comment in block.comments:
                logger.info("comment: %s", comment)
            return None
        elif isinstance(block, ApplicationExtension):
            return None
        else:
            raise TypeError("Unexpected block {!r}".format(block))

    def _palette(self, image: ImageFrame) -> t.List[bytes]:
        colortable = image.colortable if image.colortable is not None else self.document.colortable

        if colortable is None:
            colortable = ()
            if not self._warned_no_colortable:
                logger.warning("image without any color table, drawing it black")
                self._warned_no_colortable = True

        palette = [_rgba(color) for color in colortable]
        palette.extend([MISSING_COLOR] * (256 - len(palette)))
        return palette

    def _visible(self, image: ImageFrame) -> t.Tuple[int, int]:
        """Width and height of the part of the image that lands on the canvas."""
        visible_w = max(0, min(image.width, self.width - image.left))
        visible_h = max(0, min(image.height, self.height - image.top))
        return visible_w, visible_h

    def _draw(self, image: ImageFrame) -> Frame:
        control = self.pending
        disposal = control.disposal_method if control else DisposalMethod.NONE
        transparent = control.transparent_flag if control else False
        delay_ms = control.delay_ms() if control else 0

        self.previous = bytes(self.canvas)

        palette = self._palette(image)
        canvas = self.canvas
        stride = self.width * 4
        visible_w, _ = self._visible(image)
        rows = interlace_rows(image.height) if image.interlaced else range(image.height)

        for src_row, dst_row in enumerate(rows):
            y = image.top + dst_row
            if y >= self.height or visible_w == 0:
                continue

            start = src_row * image.width
            indices = image.indices[start:start + visible_w]
            offset = y * stride + image.left * 4

            if transparent:
                skip = control.transparent_index
                for x, index in enumerate(indices):
                    if index != skip:
                        pos = offset + x * 4
                        canvas[pos:pos + 4] = palette[index]
            else:
                canvas[offset:offset + visible_w * 4] = b"".join([palette[i] for i in indices])

        frame = Frame(
            rgba=bytes(canvas),
            width=self.width,
            height=self.height,
            delay_ms=delay_ms,
            loop=self.loop,
            transparent=transparent,
            index=self.frame_count)
        self.frame_count += 1

        self._dispose(image, disposal)
        self.pending = None

        return frame

    def _dispose(self, image: ImageFrame, disposal: DisposalMethod) -> None:
        """Prepare the canvas for the next image, once this one has been shown."""
        if disposal == DisposalMethod.RESTORE_BACKGROUND:
            visible_w, visible_h = self._visible(image)
            fill = self.background * visible_w
            stride = self.width * 4

            for y in range(image.top, image.top + visible_h):
                offset = y * stride + image.left * 4
                self.canvas[offset:offset + visible_w * 4] = fill
        elif disposal == DisposalMethod.RESTORE_PREVIOUS:
            self.canvas[:] = self.previous


def iter_frames(document: GifDocument) -> t.Iterator[Frame]:
    """
    Lazily composite a document. Every call starts over with a fresh canvas.
    """
    compositor = FrameCompositor(document)

    for block in document.blocks:
        frame = compositor.advance(block)
        if frame is not None:
            yield frame


def frames(data: bytes, frame_errors: FrameErrorPolicy = FrameErrorPolicy.RAISE) -> t.Iterator[Frame]:
    """Parse `data` and composite its frames."""
    return iter_frames(parse(data, frame_errors))


class _ProducerFailed(t.NamedTuple):
    error: Exception


_DONE = object()


def prefetch_frames(source: t.Iterable[Frame], maxsize: int = 4) -> t.Iterator[Frame]:
    """
    Decode frames on a background thread while the caller consumes them.

    One producer thread fills a bounded queue and blocks while it is full. An exception in the
    producer is raised again in the consumer. Closing the returned generator stops the producer at
    the next frame boundary.
    """
    frame_queue: "queue.Queue[t.Any]" = queue.Queue(maxsize)
    stop = threading.Event()

    def put(item: t.Any) -> bool:
        while not stop.is_set():
            try:
                frame_queue.put(item, timeout=0.05)
                return True
            except queue.Full:
                continue
        return False

    def produce() -> None:
        try:
            for frame in source:
                if not put(frame):
                    return
        except Exception as err:
            put(_ProducerFailed(err))
            return
        put(_DONE)

    producer = threading.Thread(target=produce, name="gifreel-prefetch", daemon=True)
    producer.start()

    try:
        while True:
            item = frame_queue.get()
            if item is _DONE:
                return
            if isinstance(item, _ProducerFailed):
                raise item.error
            yield item
    finally:
        stop.set()
        producer.join()
