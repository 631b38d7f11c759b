"""
crop_planner.py – centred crop that brings an input frame to a target aspect.

Every component that needs to know which axis gets cropped (the CPU path,
the display transform and the intrinsics remapping) asks crop_axis(), so the
pixels and the calibration can never disagree.
"""
import math

from image_types import CropAxis, CropRect, Resolution


def require_landscape(resolution: Resolution) -> None:
    # Downscaling must not change the orientation
    if not resolution.is_landscape:
        raise ValueError(f"Output resolution must be landscape (width > height), got {resolution}")


def crop_axis(input_width: int, input_height: int, output_width: int, output_height: int) -> CropAxis:
    # in_w / in_h > out_w / out_h, without float rounding
    if input_width * output_height > output_width * input_height:
        return CropAxis.X
    return CropAxis.Y


def calculate_crop_rect(input_width: int, input_height: int, output_resolution: Resolution) -> CropRect:
    require_landscape(output_resolution)
    out_w, out_h = output_resolution

    x_min, x_max = 0, input_width
    y_min, y_max = 0, input_height

    if crop_axis(input_width, input_height, out_w, out_h) is CropAxis.X:
        scale = (out_w * input_height / out_h) / input_width
        translate = (1.0 - scale) * 0.5
        x_min = math.floor(translate * input_width)
        x_max = math.floor((translate + scale) * input_width)
    else:
        scale = (out_h * input_width / out_w) / input_height
        translate = (1.0 - scale) * 0.5
        y_min = math.floor(translate * input_height)
        y_max = math.floor((translate + scale) * input_height)

    return CropRect(x_min, x_max, y_min, y_max)


def calculate_height(width: int, aspect: Resolution) -> int:
    height = (aspect.height * width) // aspect.width
    height -= height & 1  # nearest smaller multiple of two
    return height


def calculate_width(height: int, aspect: Resolution) -> int:
    width = (aspect.width * height) // aspect.height
    width -= width & 1
    return width
