"""
Centralized conversion configuration.

Resolves the defaults used by the CPU and GPU paths once, from settings.py
(and the environment overrides it reads), so platform specific behaviour such
as mirroring the CPU output is a runtime choice instead of a code branch.
"""
from dataclasses import dataclass, replace
from typing import Optional

import settings
from image_types import FilterMode, PixelFormat, Resolution, ScreenOrientation


@dataclass(frozen=True)
class ConversionDefaults:
    """Defaults applied when a caller does not pass an explicit value."""
    output_resolution: Resolution
    output_format: PixelFormat
    output_orientation: ScreenOrientation
    filter_mode: FilterMode
    mirror_cpu_output: bool
    shader_name: str


class ConverterConfig:
    """
    Conversion configuration manager.

    Built lazily from settings.py on first access; main.py may call
    configure() once at startup to apply command line overrides.
    """

    def __init__(self):
        self._defaults: Optional[ConversionDefaults] = None

    @staticmethod
    def _from_settings() -> ConversionDefaults:
        return ConversionDefaults(
            output_resolution=Resolution(
                getattr(settings, "OUTPUT_WIDTH", 256),
                getattr(settings, "OUTPUT_HEIGHT", 144),
            ),
            output_format=PixelFormat(getattr(settings, "OUTPUT_FORMAT", "rgba32")),
            output_orientation=ScreenOrientation(getattr(settings, "OUTPUT_ORIENTATION", "landscape_left")),
            filter_mode=FilterMode(getattr(settings, "FILTER_MODE", "point")),
            mirror_cpu_output=bool(getattr(settings, "MIRROR_CPU_OUTPUT", False)),
            shader_name=getattr(settings, "CONVERSION_SHADER_NAME", "Unlit/ImageConversion"),
        )

    def configure(self, **overrides) -> ConversionDefaults:
        """
        Resolve the defaults, applying keyword overrides.

        Args:
            overrides: any ConversionDefaults field; None values are ignored

        Raises:
            ValueError: for an unknown field or a portrait output resolution
        """
        base = self._from_settings()
        unknown = set(overrides) - set(ConversionDefaults.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

        defaults = replace(base, **{k: v for k, v in overrides.items() if v is not None})
        if not defaults.output_resolution.is_landscape:
            raise ValueError(f"Output resolution must be landscape, got {defaults.output_resolution}")

        self._defaults = defaults
        return defaults

    def get_defaults(self) -> ConversionDefaults:
        if self._defaults is None:
            return self.configure()
        return self._defaults

    def reset(self) -> None:
        """Drop resolved values so the next access re-reads settings."""
        self._defaults = None


# Global instance - configured by main.py
_config = ConverterConfig()


def get_config() -> ConverterConfig:
    """Get the global ConverterConfig instance."""
    return _config


def get_defaults() -> ConversionDefaults:
    """Convenience function to get the resolved defaults."""
    return _config.get_defaults()
