"""
gifreel is a small pure Python GIF decoder. It parses GIF87a/89a files, decompresses the LZW image
data, and composites the images into full RGBA frames, handling transparency, interlacing and
disposal methods.

Based on the GIF89a spec, currently hosted here:

https://www.w3.org/Graphics/GIF/spec-gif89a.txt
"""

from .gif import *
from .constants import *
from .errors import *
from .animation import *
from .compositor import *

__version__ = "0.1.0"
