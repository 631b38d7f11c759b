"""
intrinsics.py – keeps the camera calibration consistent with the resampled frame.

Resizes intrinsics doing first the crop, then the scale. The crop decision is
taken by crop_planner.crop_axis(), the same one the pixel paths use.

(F is focal length, C is principal point)

    | Fx  0  Cx |
    | 0  Fy  Cy |
    | 0  0   1  |
"""
from crop_planner import calculate_height, calculate_width, crop_axis, require_landscape
from image_types import CropAxis, Intrinsics, Resolution

MATRIX_SIZE = 9


def remap_intrinsics(intrinsics: Intrinsics, output_resolution: Resolution) -> Intrinsics:
    require_landscape(output_resolution)

    input_width, input_height = intrinsics.resolution
    out_w, out_h = output_resolution
    fx, fy = intrinsics.focal_length
    cx, cy = intrinsics.principal_point

    if crop_axis(input_width, input_height, out_w, out_h) is CropAxis.Y:
        # Crop from top/bottom
        new_height = calculate_height(input_width, output_resolution)
        offset = (input_height - new_height) // 2
        cy -= offset

        width_ratio = out_w / input_width
        height_ratio = out_h / new_height
    else:
        # Crop from left/right
        new_width = calculate_width(input_height, output_resolution)
        offset = (input_width - new_width) // 2
        cx -= offset

        width_ratio = out_w / new_width
        height_ratio = out_h / input_height

    return Intrinsics(
        focal_length=(fx * width_ratio, fy * height_ratio),
        principal_point=(cx * width_ratio, cy * height_ratio),
        resolution=output_resolution,
    )


def convert_camera_intrinsics(intrinsics: Intrinsics, output_resolution: Resolution, destination_buffer) -> None:
    """
    Writes the remapped intrinsics into destination_buffer as a flattened,
    column-major 3x3 matrix.

    Only indices 0 (fx), 4 (fy), 6 (cx), 7 (cy) and 8 (1) are written; the
    caller zeroes the buffer beforehand if it needs the full matrix.
    """
    if len(destination_buffer) < MATRIX_SIZE:
        raise ValueError(f"Intrinsics buffer needs {MATRIX_SIZE} elements, got {len(destination_buffer)}")

    remapped = remap_intrinsics(intrinsics, output_resolution)

    destination_buffer[0] = remapped.fx
    destination_buffer[4] = remapped.fy
    destination_buffer[6] = remapped.cx
    destination_buffer[7] = remapped.cy
    destination_buffer[8] = 1

