import argparse
import logging
import math
import os

from gifreel import (FrameErrorPolicy, GifDocument, GifStreamException,
                     UnsupportedFormat, iter_frames, load, loop_count)
from PIL import Image


VALID_MODES = [
    "info",
    "frames",
    "help"
]


def prepare_argparser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=(
        "A tool for decoding GIF files. Set mode with --mode/-m. Any "
        "arguments given that do not apply to the current mode will be "
        "ignored."
    ))

    parser.add_argument("--mode", "-m", type=str, choices=VALID_MODES, default="info", help=(
        "Set operation mode. Default is \"info\". Use mode \"help\" for more "
        "information on each mode."
    ))

    parser.add_argument("--path", "-i", type=str, default=None, help=(
        "The path to the GIF file to operate on."
    ))

    parser.add_argument("--verbose", "-v", action="store_true", help=(
        "Explicitly print long lists of data, which are otherwise omitted for "
        "brevity. Also turns on debug logging."
    ))
    parser.add_argument("--skip-bad-frames", dest="skip_bad_frames", action="store_true", help=(
        "Drop images whose data fails to decode instead of stopping at the "
        "first one."
    ))
    parser.add_argument("--output", "-o", type=str, default=None, help=(
        "Directory to write frames to in frames mode. Defaults to "
        "<name>_frames next to the working directory."
    ))

    return parser


MODE_HELP = """Available modes:
help -
    Print this help text.

info -
    The default mode. Prints the blocks parsed from the GIF file passed
    through --path.

frames -
    Composite every frame of the GIF and write each one as a PNG into a
    new directory. Frame delays are printed as they are written.
"""


def mode_help() -> None:
    print(MODE_HELP)


def gif_name(path: str) -> str:
    return ".".join(os.path.basename(path).split(".")[:-1])


def mode_info(gif: GifDocument, args: argparse.Namespace) -> None:
    print("{}:".format(args.path))
    gif.pretty_print(verbose=args.verbose)

    loops = loop_count(gif)
    if loops is not None:
        print()
        print("loop count: {}".format("forever" if loops == 0 else loops))


def mode_frames(gif: GifDocument, parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    output_dir = args.output or gif_name(args.path) + "_frames"

    try:
        os.makedirs(output_dir)
    except FileExistsError:
        msg = "{} already exists, please delete or move and try again"
        parser.error(msg.format(output_dir))

    numzeros = int(math.log(max(len(gif.images()), 1), 10)) + 1

    for frame in iter_frames(gif):
        img = Image.frombytes("RGBA", (frame.width, frame.height), frame.rgba)

        frame_name = str(frame.index).zfill(numzeros) + ".png"
        img.save(os.path.join(output_dir, frame_name))

        print("{} ({} ms)".format(frame_name, frame.delay_ms))

    print("Frames written to {}".format(output_dir))


def main() -> None:
    parser = prepare_argparser()
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s: %(name)s: %(message)s")

    if args.mode == "help":
        mode_help()
        parser.exit()

    if args.path is None:
        parser.error("Must specify --path for non-help mode.")

    policy = FrameErrorPolicy.SKIP if args.skip_bad_frames else FrameErrorPolicy.RAISE

    try:
        gif = load(args.path, frame_errors=policy)
    except UnsupportedFormat as err:
        parser.error("{} is not a GIF: {}".format(args.path, err))
    except GifStreamException as err:
        if err.document is None:
            parser.error("{}: {}".format(args.path, err))
        print("error: {} (showing what decoded before it)".format(err))
        gif = err.document

    if args.mode == "info":
        mode_info(gif, args)
    elif args.mode == "frames":
        mode_frames(gif, parser, args)
    else:
        raise Exception("internal error: invalid mode")


if __name__ == "__main__":
    main()
