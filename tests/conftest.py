import io

import pytest
from PIL import Image

import gifbuilder as gb

# white, black, red, green
PALETTE4 = [(255, 255, 255), (0, 0, 0), (255, 0, 0), (0, 255, 0)]


@pytest.fixture
def palette4():
    return list(PALETTE4)


@pytest.fixture
def simple_gif(palette4):
    """A 4x2 single image GIF with a global color table and a trailer."""
    return gb.build(
        gb.header(4, 2, palette4),
        gb.image(4, 2, [0, 1, 2, 3, 3, 2, 1, 0], num_colors=4),
        gb.TRAILER
    )


@pytest.fixture
def pillow_gif():
    """Encode a GIF with Pillow, tall enough that Pillow interlaces it."""
    def make(width=20, height=20, colors=16):
        img = Image.new("P", (width, height))
        palette = []
        for i in range(colors):
            palette += [i * 15 % 256, 255 - i * 13 % 256, i * 7 % 256]
        img.putpalette(palette)
        img.putdata([(x * 3 + y * 5) % colors for y in range(height) for x in range(width)])

        buf = io.BytesIO()
        img.save(buf, format="GIF")
        return buf.getvalue()

    return make
