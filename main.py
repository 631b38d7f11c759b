"""
Frame conversion tool.

Converts a single image file to the standardized CV resolution and format,
on the CPU or on a headless GPU context, and remaps the matching camera
intrinsics.
"""
import argparse
import json
import logging
import sys
from pathlib import Path

import numpy as np
from PIL import Image

import settings
from converter_config import get_config
from image_types import (
    ConversionStatus, CpuImage, FilterMode, Intrinsics, PixelFormat, Plane, Resolution,
    ScreenOrientation, parse_resolution,
)
from image_converter import convert_on_cpu_and_write_to_memory, get_converted_data_size
from intrinsics import MATRIX_SIZE, convert_camera_intrinsics

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ["r8", "rgb24", "rgba32", "bgra32"]


def setup_logging(log_level: str = "INFO") -> None:
    """Setup logging configuration."""
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler()]
    )


# -----------------------------------------------------------------------------
# FILE IO
# -----------------------------------------------------------------------------
def load_image(path: Path) -> CpuImage:
    with Image.open(path) as im:
        rgba = np.asarray(im.convert("RGBA"))
    h, w = rgba.shape[:2]
    return CpuImage(
        width=w,
        height=h,
        format=PixelFormat.RGBA32,
        planes=(Plane(rgba.tobytes(), row_stride=w * 4),),
    )


def load_intrinsics(path: Path) -> Intrinsics:
    with open(path, "r") as f:
        data = json.load(f)
    try:
        return Intrinsics(
            focal_length=(float(data["fx"]), float(data["fy"])),
            principal_point=(float(data["cx"]), float(data["cy"])),
            resolution=Resolution(int(data["width"]), int(data["height"])),
        )
    except KeyError as e:
        raise ValueError(f"Intrinsics file {path} is missing {e}") from None


def save_image(path: Path, data, resolution: Resolution, output_format: PixelFormat) -> None:
    size = tuple(resolution)
    if output_format is PixelFormat.R8:
        im = Image.frombytes("L", size, bytes(data))
    elif output_format is PixelFormat.RGB24:
        im = Image.frombytes("RGB", size, bytes(data))
    elif output_format is PixelFormat.BGRA32:
        im = Image.frombytes("RGBA", size, bytes(data), "raw", "BGRA")
    else:
        im = Image.frombytes("RGBA", size, bytes(data))
    im.save(path)


def write_intrinsics(path: Path, intrinsics: Intrinsics, resolution: Resolution) -> list:
    matrix = np.zeros(MATRIX_SIZE, dtype=np.float32)
    convert_camera_intrinsics(intrinsics, resolution, matrix)
    values = [float(v) for v in matrix]
    with open(path, "w") as f:
        json.dump({"resolution": [resolution.width, resolution.height], "matrix": values}, f, indent=2)
    logger.info("Wrote intrinsics for %s to %s", resolution, path)
    return values


# -----------------------------------------------------------------------------
# CONVERSION PATHS
# -----------------------------------------------------------------------------
def convert_cpu(image: CpuImage, resolution: Resolution, output_format: PixelFormat, mirror_x) -> bytearray:
    destination = bytearray(get_converted_data_size(resolution, output_format))
    status = convert_on_cpu_and_write_to_memory(image, resolution, destination, output_format, mirror_x)
    if status is not ConversionStatus.CONVERTED:
        raise RuntimeError(f"CPU conversion skipped: {status.value}")
    return destination


def convert_gpu(image: CpuImage, resolution: Resolution, orientation: ScreenOrientation,
                filter_mode: FilterMode, mirror_x: bool) -> bytes:
    # GL is only needed on this path
    import renderer
    from headless_context import create_headless_context

    ctx = create_headless_context()
    try:
        pixels = np.frombuffer(image.planes[0].data, dtype=np.uint8).reshape(image.height, image.width, 4)
        source = renderer.create_texture(ctx, pixels)
        output = renderer.create_output_texture(ctx, resolution.width, resolution.height, components=4)
        if not renderer.convert_on_gpu_and_copy(ctx, source, output, orientation, filter_mode, mirror_x):
            raise RuntimeError("GPU conversion skipped: conversion shader unavailable")
        return renderer.read_texture(output).tobytes()
    finally:
        ctx.release()


# -----------------------------------------------------------------------------
# CONFIGURATION OVERRIDE LOGIC
# -----------------------------------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Convert a camera frame for CV consumers")
    parser.add_argument("input", type=Path, help="Source image file")
    parser.add_argument("output", type=Path, help="Converted image file (format from extension)")
    parser.add_argument("--resolution", help="Target WIDTHxHEIGHT, landscape (default from settings.py)")
    parser.add_argument("--format", choices=OUTPUT_FORMATS, help="Output pixel format")
    parser.add_argument("--gpu", action="store_true", help="Convert on a headless GL context")
    parser.add_argument(
        "--orientation",
        choices=[o.value for o in ScreenOrientation],
        help="Target orientation (GPU only)"
    )
    parser.add_argument("--filter", choices=[f.value for f in FilterMode], help="Sampling filter (GPU only)")
    parser.add_argument(
        "--mirror",
        action="store_true",
        help="Mirror the output. The CPU path reverses rows (flip across the X axis), with --gpu columns are reversed"
    )
    parser.add_argument("--intrinsics", type=Path, help="JSON file with fx, fy, cx, cy, width, height")
    parser.add_argument("--intrinsics-out", type=Path, help="Where to write the remapped intrinsics")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="Logging level (default: %(default)s)")
    return parser


def configure_runtime(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(args.log_level)
        defaults = get_config().configure(
            output_resolution=parse_resolution(args.resolution) if args.resolution else None,
            output_format=PixelFormat(args.format) if args.format else None,
            output_orientation=ScreenOrientation(args.orientation) if args.orientation else None,
            filter_mode=FilterMode(args.filter) if args.filter else None,
        )
    except ValueError as e:
        parser.error(str(e))

    if args.gpu and defaults.output_format is not PixelFormat.RGBA32:
        parser.error("--gpu only produces rgba32 output")
    if not args.input.is_file():
        parser.error(f"Input file not found: {args.input}")
    return args, defaults


def main(argv=None) -> int:
    args, defaults = configure_runtime(argv)
    resolution = defaults.output_resolution

    try:
        image = load_image(args.input)
        logger.info("Converting %s (%dx%d) to %s %s", args.input, image.width, image.height,
                    resolution, defaults.output_format.name)

        if args.gpu:
            data = convert_gpu(image, resolution, defaults.output_orientation, defaults.filter_mode, args.mirror)
        else:
            # Without --mirror the configured platform default applies
            data = convert_cpu(image, resolution, defaults.output_format, True if args.mirror else None)
        save_image(args.output, data, resolution, defaults.output_format)
        logger.info("Wrote %s", args.output)

        if args.intrinsics:
            intrinsics_out = args.intrinsics_out or args.output.with_name(args.output.stem + "_intrinsics.json")
            write_intrinsics(intrinsics_out, load_intrinsics(args.intrinsics), resolution)
    except Exception as e:
        logger.error("Conversion failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
