import logging

import pytest

import gifbuilder as gb
from gifreel import (CommentExtension, Frame, FrameCompositor, GraphicsControl,
                     DisposalMethod, frames, interlace_rows, iter_frames, parse,
                     prefetch_frames)

WHITE = bytes((255, 255, 255, 255))
BLACK = bytes((0, 0, 0, 255))
RED = bytes((255, 0, 0, 255))
GREEN = bytes((0, 255, 0, 255))


def pixel(frame_or_canvas, width, x, y):
    data = frame_or_canvas.rgba if isinstance(frame_or_canvas, Frame) else frame_or_canvas
    offset = (y * width + x) * 4
    return bytes(data[offset:offset + 4])


def rect(frame_or_canvas, width, left, top, w, h):
    return {pixel(frame_or_canvas, width, x, y)
            for y in range(top, top + h) for x in range(left, left + w)}


def pass_of(row):
    if row % 8 == 0:
        return 1
    if row % 8 == 4:
        return 2
    if row % 4 == 2:
        return 3
    return 4


def test_interlace_rows_height_8():
    assert interlace_rows(8) == [0, 4, 2, 6, 1, 3, 5, 7]


@pytest.mark.parametrize("height", range(1, 41))
def test_interlace_rows_follow_passes(height):
    rows = interlace_rows(height)

    assert sorted(rows) == list(range(height))
    passes = [pass_of(row) for row in rows]
    assert passes == sorted(passes)
    for p in range(1, 5):
        in_pass = [row for row in rows if pass_of(row) == p]
        assert in_pass == sorted(in_pass)


def test_interlaced_image_is_drawn_in_display_order(palette4):
    pixels = [row % 4 for row in range(10) for _ in range(3)]
    data = gb.build(gb.header(3, 10, palette4),
                    gb.image(3, 10, pixels, interlaced=True, num_colors=4), gb.TRAILER)
    (frame,) = frames(data)

    colors = [WHITE, BLACK, RED, GREEN]
    for y in range(10):
        assert rect(frame, 3, 0, y, 3, 1) == {colors[y % 4]}


def test_background_from_global_table(palette4):
    data = gb.build(gb.header(4, 4, palette4, background=3), gb.TRAILER)
    compositor = FrameCompositor(parse(data))

    assert compositor.background_color() == (0, 255, 0)
    assert rect(compositor.canvas, 4, 0, 0, 4, 4) == {GREEN}


def test_background_defaults_to_white():
    data = gb.build(gb.header(2, 2), gb.TRAILER)
    assert FrameCompositor(parse(data)).background_color() == (255, 255, 255)

    data = gb.build(gb.header(2, 2, [(1, 1, 1), (2, 2, 2)], background=5), gb.TRAILER)
    assert FrameCompositor(parse(data)).background_color() == (255, 255, 255)


def test_restore_background_disposal(palette4):
    data = gb.build(gb.header(8, 8, palette4, background=0),
                    gb.graphic_control(disposal=2),
                    gb.image(4, 4, [1] * 16, num_colors=4),
                    gb.image(1, 1, [2], left=7, top=7, num_colors=4),
                    gb.TRAILER)
    doc = parse(data)
    compositor = FrameCompositor(doc)

    compositor.advance(doc.blocks[0])
    first = compositor.advance(doc.blocks[1])
    assert rect(first, 8, 0, 0, 4, 4) == {BLACK}

    # disposed after being shown, before the next image is drawn
    assert rect(compositor.canvas, 8, 0, 0, 4, 4) == {WHITE}

    second = compositor.advance(doc.blocks[2])
    assert rect(second, 8, 0, 0, 4, 4) == {WHITE}
    assert pixel(second, 8, 7, 7) == RED


def test_restore_previous_disposal(palette4):
    data = gb.build(gb.header(4, 4, palette4),
                    gb.image(4, 4, [3] * 16, num_colors=4),
                    gb.graphic_control(disposal=3),
                    gb.image(2, 2, [1] * 4, left=1, top=1, num_colors=4),
                    gb.image(1, 1, [2], num_colors=4),
                    gb.TRAILER)
    first, second, third = frames(data)

    assert rect(second, 4, 1, 1, 2, 2) == {BLACK}
    assert pixel(third, 4, 0, 0) == RED
    assert rect(third, 4, 1, 1, 3, 3) == {GREEN}
    assert third.rgba[4:] == first.rgba[4:]


@pytest.mark.parametrize("disposal", [0, 1])
def test_keep_disposal(palette4, disposal):
    data = gb.build(gb.header(4, 4, palette4),
                    gb.graphic_control(disposal=disposal),
                    gb.image(2, 2, [2] * 4, num_colors=4),
                    gb.image(1, 1, [1], left=3, top=3, num_colors=4),
                    gb.TRAILER)
    _, second = frames(data)

    assert rect(second, 4, 0, 0, 2, 2) == {RED}
    assert pixel(second, 4, 3, 3) == BLACK


def test_transparent_pixels_keep_canvas(palette4):
    pixels = [3, 1] * 8
    data = gb.build(gb.header(4, 4, palette4, background=0),
                    gb.image(4, 4, [2] * 16, num_colors=4),
                    gb.graphic_control(transparent=3),
                    gb.image(4, 4, pixels, num_colors=4),
                    gb.TRAILER)
    first, second = frames(data)

    assert rect(first, 4, 0, 0, 4, 4) == {RED}
    assert not first.transparent
    assert second.transparent
    for i, index in enumerate(pixels):
        expected = RED if index == 3 else BLACK
        assert pixel(second, 4, i % 4, i // 4) == expected


def test_transparency_is_one_shot(palette4):
    data = gb.build(gb.header(2, 1, palette4),
                    gb.image(2, 1, [2, 2], num_colors=4),
                    gb.graphic_control(transparent=3, delay=5),
                    gb.image(2, 1, [3, 1], num_colors=4),
                    gb.image(2, 1, [3, 3], num_colors=4),
                    gb.TRAILER)
    _, second, third = frames(data)

    assert (second.delay_ms, third.delay_ms) == (50, 0)
    assert pixel(second, 2, 0, 0) == RED
    assert pixel(third, 2, 0, 0) == GREEN
    assert not third.transparent


def test_last_graphic_control_wins(palette4):
    data = gb.build(gb.header(1, 1, palette4),
                    gb.graphic_control(delay=1),
                    gb.graphic_control(delay=9),
                    gb.image(1, 1, [1], num_colors=4),
                    gb.TRAILER)
    (frame,) = frames(data)
    assert frame.delay_ms == 90


def test_local_colortable_overrides_global(palette4):
    local = [(10, 20, 30), (40, 50, 60)]
    data = gb.build(gb.header(2, 1, palette4),
                    gb.image(2, 1, [0, 1], colortable=local),
                    gb.TRAILER)
    (frame,) = frames(data)

    assert frame.rgba == bytes((10, 20, 30, 255, 40, 50, 60, 255))


def test_image_is_clipped_to_canvas(palette4):
    data = gb.build(gb.header(4, 4, palette4),
                    gb.image(4, 4, [1] * 16, left=2, top=3, num_colors=4),
                    gb.image(2, 2, [2] * 4, left=9, top=0, num_colors=4),
                    gb.TRAILER)
    first, second = frames(data)

    assert len(first.rgba) == 4 * 4 * 4
    assert rect(first, 4, 2, 3, 2, 1) == {BLACK}
    assert rect(first, 4, 0, 0, 4, 3) == {WHITE}
    assert second.rgba == first.rgba


def test_index_outside_colortable_is_black():
    data = gb.build(gb.header(2, 1, [(9, 9, 9), (8, 8, 8)]),
                    gb.image(2, 1, [3, 0], lzw_min=2),
                    gb.TRAILER)
    (frame,) = frames(data)

    assert pixel(frame, 2, 0, 0) == BLACK
    assert pixel(frame, 2, 1, 0) == bytes((9, 9, 9, 255))


def test_no_colortable_at_all(caplog):
    data = gb.build(gb.header(2, 1), gb.image(2, 1, [1, 1], lzw_min=2),
                    gb.image(2, 1, [0, 0], lzw_min=2), gb.TRAILER)
    first, second = frames(data)

    assert first.rgba == BLACK * 2
    assert caplog.text.count("without any color table") == 1


def test_frame_fields(palette4):
    data = gb.build(gb.header(3, 2, palette4),
                    gb.netscape_loop(0),
                    gb.graphic_control(delay=12),
                    gb.image(3, 2, [0] * 6, num_colors=4),
                    gb.image(3, 2, [1] * 6, num_colors=4),
                    gb.TRAILER)
    first, second = frames(data)

    assert (first.width, first.height) == (3, 2)
    assert (first.index, second.index) == (0, 1)
    assert first.delay_ms == 120
    assert first.loop and second.loop


def test_no_loop_without_extension(simple_gif):
    (frame,) = frames(simple_gif)
    assert not frame.loop


def test_non_image_blocks(palette4, caplog):
    doc = parse(gb.build(gb.header(1, 1, palette4), gb.TRAILER))
    compositor = FrameCompositor(doc)

    with caplog.at_level(logging.INFO, logger="gifreel.compositor"):
        assert compositor.advance(CommentExtension(("hi there",))) is None
    assert "hi there" in caplog.text

    gce = GraphicsControl(DisposalMethod.NONE, False, False, 0, 3)
    assert compositor.advance(gce) is None
    assert compositor.pending == gce

    with pytest.raises(TypeError):
        compositor.advance("not a block")


def test_iteration_restarts_from_scratch(palette4):
    data = gb.build(gb.header(2, 2, palette4),
                    gb.graphic_control(disposal=2),
                    gb.image(1, 1, [1], num_colors=4),
                    gb.image(1, 1, [2], left=1, top=1, num_colors=4),
                    gb.TRAILER)
    doc = parse(data)

    assert list(iter_frames(doc)) == list(iter_frames(doc))


def test_prefetch_frames_matches_direct(palette4):
    data = gb.build(gb.header(2, 2, palette4),
                    *[gb.image(2, 2, [i % 4] * 4, num_colors=4) for i in range(10)],
                    gb.TRAILER)

    assert list(prefetch_frames(frames(data), maxsize=1)) == list(frames(data))


def test_prefetch_frames_reraises():
    def broken():
        yield Frame(b"", 0, 0, 0, False, False, 0)
        raise RuntimeError("boom")

    received = []
    with pytest.raises(RuntimeError, match="boom"):
        for frame in prefetch_frames(broken()):
            received.append(frame)

    assert len(received) == 1


def test_prefetch_frames_stops_producer():
    produced = []

    def source():
        for i in range(1000):
            produced.append(i)
            yield Frame(b"", 0, 0, 0, False, False, i)

    stream = prefetch_frames(source(), maxsize=2)
    assert next(stream).index == 0
    stream.close()

    assert len(produced) < 10
