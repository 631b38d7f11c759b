"""
image_types.py – value objects shared by the CPU, GPU and intrinsics paths.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Resolution:
    width: int
    height: int

    @property
    def is_landscape(self) -> bool:
        return self.width > self.height

    def __iter__(self):
        yield self.width
        yield self.height

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class CropAxis(Enum):
    X = "x"
    Y = "y"


@dataclass(frozen=True)
class CropRect:
    """Crop window in input pixel coordinates, max bounds exclusive."""
    x_min: int
    x_max: int
    y_min: int
    y_max: int

    @property
    def width(self) -> int:
        return self.x_max - self.x_min

    @property
    def height(self) -> int:
        return self.y_max - self.y_min


class PixelFormat(Enum):
    R8 = "r8"
    RGB24 = "rgb24"
    RGBA32 = "rgba32"
    BGRA32 = "bgra32"
    # Camera formats, accepted as input only
    ANDROID_YUV_420_888 = "android_yuv_420_888"
    IOS_YUV_420_BIPLANAR = "ios_yuv_420_biplanar"

    @property
    def is_yuv(self) -> bool:
        return self in (PixelFormat.ANDROID_YUV_420_888, PixelFormat.IOS_YUV_420_BIPLANAR)

    @property
    def channels(self) -> int:
        if self.is_yuv:
            raise ValueError(f"{self.name} is planar and has no packed channel count")
        return _CHANNELS[self]


_CHANNELS = {
    PixelFormat.R8: 1,
    PixelFormat.RGB24: 3,
    PixelFormat.RGBA32: 4,
    PixelFormat.BGRA32: 4,
}


@dataclass(frozen=True)
class Plane:
    data: object  # any bytes-like object
    row_stride: int
    pixel_stride: Optional[int] = None  # None: tightly packed pixels


@dataclass
class CpuImage:
    """A camera frame as handed over by the frame source."""
    width: int
    height: int
    format: PixelFormat
    planes: tuple = field(default_factory=tuple)
    valid: bool = True

    @property
    def resolution(self) -> Resolution:
        return Resolution(self.width, self.height)


@dataclass(frozen=True)
class Intrinsics:
    focal_length: tuple[float, float]
    principal_point: tuple[float, float]
    resolution: Resolution

    @property
    def fx(self) -> float:
        return self.focal_length[0]

    @property
    def fy(self) -> float:
        return self.focal_length[1]

    @property
    def cx(self) -> float:
        return self.principal_point[0]

    @property
    def cy(self) -> float:
        return self.principal_point[1]


class ScreenOrientation(Enum):
    PORTRAIT = "portrait"
    PORTRAIT_UPSIDE_DOWN = "portrait_upside_down"
    LANDSCAPE_LEFT = "landscape_left"
    LANDSCAPE_RIGHT = "landscape_right"

    @property
    def is_portrait(self) -> bool:
        return self in (ScreenOrientation.PORTRAIT, ScreenOrientation.PORTRAIT_UPSIDE_DOWN)


class FilterMode(Enum):
    POINT = "point"
    BILINEAR = "bilinear"


class MatrixLayout(Enum):
    ROW_MAJOR = "row_major"
    COLUMN_MAJOR = "column_major"


class ConversionStatus(Enum):
    CONVERTED = "converted"
    SKIPPED_INVALID = "skipped_invalid"


def parse_resolution(value: str) -> Resolution:
    """Parses 'WIDTHxHEIGHT' (e.g. '640x480')."""
    try:
        w, h = value.lower().split("x")
        return Resolution(int(w), int(h))
    except ValueError:
        raise ValueError(f"Invalid resolution '{value}', expected WIDTHxHEIGHT") from None
