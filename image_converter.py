"""
image_converter.py – CPU conversion of camera frames.

Crops the frame to the output aspect ratio (see crop_planner), scales it with
a nearest-neighbour filter, converts the pixel format and optionally mirrors
it, writing the result into a caller owned buffer.
"""
import logging
from typing import Optional

import cv2
import numpy as np
from numpy.lib.stride_tricks import as_strided

from converter_config import get_defaults
from crop_planner import calculate_crop_rect
from image_types import ConversionStatus, CpuImage, PixelFormat, Plane, Resolution

logger = logging.getLogger(__name__)

_R8 = PixelFormat.R8
_RGB = PixelFormat.RGB24
_RGBA = PixelFormat.RGBA32
_BGRA = PixelFormat.BGRA32

# (source layout, output format) -> OpenCV conversion code
_COLOR_CODES = {
    (_RGBA, _RGB): cv2.COLOR_RGBA2RGB,
    (_RGBA, _BGRA): cv2.COLOR_RGBA2BGRA,
    (_RGBA, _R8): cv2.COLOR_RGBA2GRAY,
    (_RGB, _RGBA): cv2.COLOR_RGB2RGBA,
    (_RGB, _BGRA): cv2.COLOR_RGB2BGRA,
    (_RGB, _R8): cv2.COLOR_RGB2GRAY,
    (_BGRA, _RGBA): cv2.COLOR_BGRA2RGBA,
    (_BGRA, _RGB): cv2.COLOR_BGRA2RGB,
    (_BGRA, _R8): cv2.COLOR_BGRA2GRAY,
    (_R8, _RGB): cv2.COLOR_GRAY2RGB,
    (_R8, _RGBA): cv2.COLOR_GRAY2RGBA,
    (_R8, _BGRA): cv2.COLOR_GRAY2BGRA,
}


def get_converted_data_size(output_resolution: Resolution, output_format: PixelFormat) -> int:
    if output_format.is_yuv:
        raise ValueError(f"{output_format.name} is not supported as an output format")
    return output_resolution.width * output_resolution.height * output_format.channels


def _plane_view(plane: Plane, width: int, height: int, channels: int = 1) -> np.ndarray:
    """Strided (height, width[, channels]) view over a plane, row padding skipped."""
    buf = np.frombuffer(plane.data, dtype=np.uint8)
    pixel_stride = plane.pixel_stride or channels
    needed = plane.row_stride * (height - 1) + pixel_stride * (width - 1) + channels
    if buf.size < needed:
        raise ValueError(f"Plane holds {buf.size} bytes, {width}x{height} needs at least {needed}")

    view = as_strided(
        buf,
        shape=(height, width, channels),
        strides=(plane.row_stride, pixel_stride, 1),
        writeable=False,
    )
    return view if channels > 1 else view[..., 0]


def _decode_yuv(image: CpuImage) -> np.ndarray:
    w, h = image.width, image.height
    if w % 2 or h % 2:
        raise ValueError(f"YUV 4:2:0 frames need even dimensions, got {w}x{h}")

    packed = np.empty((h * 3 // 2, w), dtype=np.uint8)
    packed[:h] = _plane_view(image.planes[0], w, h)

    if image.format is PixelFormat.IOS_YUV_420_BIPLANAR:
        packed[h:] = _plane_view(image.planes[1], w // 2, h // 2, channels=2).reshape(h // 2, w)
        return cv2.cvtColor(packed, cv2.COLOR_YUV2RGBA_NV12)

    # Android planes may interleave U and V (pixel stride 2); repack as I420
    chroma = packed[h:].reshape(-1)
    quarter = (w // 2) * (h // 2)
    chroma[:quarter] = _plane_view(image.planes[1], w // 2, h // 2).ravel()
    chroma[quarter:] = _plane_view(image.planes[2], w // 2, h // 2).ravel()
    return cv2.cvtColor(packed, cv2.COLOR_YUV2RGBA_I420)


def _source_pixels(image: CpuImage, output_format: PixelFormat):
    """Returns the frame as an array plus the packed layout it is in."""
    if image.format.is_yuv:
        if output_format is _R8:
            # Luminance only, no colour decode needed
            return _plane_view(image.planes[0], image.width, image.height), _R8
        return _decode_yuv(image), _RGBA

    channels = image.format.channels
    return _plane_view(image.planes[0], image.width, image.height, channels), image.format


def _destination_view(destination, expected_size: int) -> np.ndarray:
    try:
        view = memoryview(destination).cast("B")
    except TypeError as e:
        raise ValueError(f"Destination must be a contiguous buffer: {e}") from None
    if view.readonly:
        raise ValueError("Destination buffer is read-only")
    if view.nbytes != expected_size:
        raise ValueError(f"Destination holds {view.nbytes} bytes, conversion writes {expected_size}")
    return np.frombuffer(view, dtype=np.uint8)


def convert_on_cpu_and_write_to_memory(
    image: CpuImage,
    output_resolution: Resolution,
    destination,
    output_format: PixelFormat = PixelFormat.RGBA32,
    mirror_x: Optional[bool] = None,
) -> ConversionStatus:
    """
    Converts a camera image to output_resolution and output_format.

    The frame is cropped to the output aspect ratio, scaled and converted in
    one go and written into destination, which must be a writable buffer of
    exactly get_converted_data_size() bytes.

    Args:
        image: frame from the frame source; invalid frames are skipped
        output_resolution: landscape target resolution
        destination: bytearray, writable memoryview or contiguous numpy array
        output_format: packed output pixel format
        mirror_x: mirror across the X axis (rows reversed); None uses the
            configured default

    Returns:
        ConversionStatus.SKIPPED_INVALID when the image is not valid (the
        destination is left untouched), ConversionStatus.CONVERTED otherwise.

    Raises:
        ValueError: portrait output, unsupported format, wrong buffer size
            or an input too small to leave any pixel after cropping
    """
    if not image.valid:
        logger.debug("[CPU] Skipping invalid %s image", image.format.name)
        return ConversionStatus.SKIPPED_INVALID

    rect = calculate_crop_rect(image.width, image.height, output_resolution)
    if rect.width == 0 or rect.height == 0:
        raise ValueError(f"Cropping {image.resolution} to the aspect of {output_resolution} leaves no pixels")
    dst = _destination_view(destination, get_converted_data_size(output_resolution, output_format))

    if mirror_x is None:
        mirror_x = get_defaults().mirror_cpu_output

    pixels, layout = _source_pixels(image, output_format)
    region = np.ascontiguousarray(pixels[rect.y_min:rect.y_max, rect.x_min:rect.x_max])

    out = cv2.resize(region, tuple(output_resolution), interpolation=cv2.INTER_NEAREST)
    if layout is not output_format:
        out = cv2.cvtColor(out, _COLOR_CODES[(layout, output_format)])
    if mirror_x:
        out = cv2.flip(out, 0)

    np.copyto(dst.reshape(out.shape), out)
    return ConversionStatus.CONVERTED
