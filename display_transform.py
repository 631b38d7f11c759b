"""
display_transform.py – affine transform used by the GPU conversion.

The matrix maps destination texture coordinates [u, v, 1] to source texture
coordinates. It combines, applied to the destination coordinate in order:

    1. an optional horizontal mirror,
    2. a uniform scale and centred crop of the orientation-rotated source,
    3. the rotation from the requested orientation back to the sensor.

The sensor is natively LANDSCAPE_LEFT. The crop axis is taken from
crop_planner.crop_axis() so the GPU crop matches the CPU crop and the
remapped intrinsics.
"""
import numpy as np

from crop_planner import crop_axis
from image_types import CropAxis, MatrixLayout, ScreenOrientation

# Rotated-source UV -> sensor UV
_ROTATIONS = {
    ScreenOrientation.LANDSCAPE_LEFT: np.eye(3),
    ScreenOrientation.LANDSCAPE_RIGHT: np.array([[-1.0, 0.0, 1.0], [0.0, -1.0, 1.0], [0.0, 0.0, 1.0]]),
    ScreenOrientation.PORTRAIT: np.array([[0.0, 1.0, 0.0], [-1.0, 0.0, 1.0], [0.0, 0.0, 1.0]]),
    ScreenOrientation.PORTRAIT_UPSIDE_DOWN: np.array([[0.0, -1.0, 1.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]]),
}

_MIRROR_X = np.array([[-1.0, 0.0, 1.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])


def fit_matrix(source_width: int, source_height: int, destination_width: int, destination_height: int) -> np.ndarray:
    """Scale + centred crop so the destination aspect is filled without distortion."""
    fit = np.eye(3)
    if crop_axis(source_width, source_height, destination_width, destination_height) is CropAxis.X:
        scale = (destination_width * source_height / destination_height) / source_width
        fit[0, 0] = scale
        fit[0, 2] = (1.0 - scale) * 0.5
    else:
        scale = (destination_height * source_width / destination_width) / source_height
        fit[1, 1] = scale
        fit[1, 2] = (1.0 - scale) * 0.5
    return fit


def calculate_display_matrix(
    source_width: int,
    source_height: int,
    destination_width: int,
    destination_height: int,
    orientation: ScreenOrientation = ScreenOrientation.LANDSCAPE_LEFT,
    mirror_x: bool = False,
    layout: MatrixLayout = MatrixLayout.ROW_MAJOR,
) -> np.ndarray:
    """
    Returns the 3x3 destination-to-source UV transform.

    ROW_MAJOR gives the matrix to multiply column vectors with (translation
    in the last column); COLUMN_MAJOR gives its transpose.
    """
    if orientation.is_portrait:
        rotated_width, rotated_height = source_height, source_width
    else:
        rotated_width, rotated_height = source_width, source_height

    matrix = _ROTATIONS[orientation] @ fit_matrix(rotated_width, rotated_height, destination_width, destination_height)
    if mirror_x:
        matrix = matrix @ _MIRROR_X

    if layout is MatrixLayout.COLUMN_MAJOR:
        return matrix.T.copy()
    return matrix
