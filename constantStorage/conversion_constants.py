#conversion_constants.py

# -------------------------
# Output Frame Defaults
# -------------------------
# Our CV consumers always expect a landscape frame
OUTPUT_WIDTH = 256
OUTPUT_HEIGHT = 144
OUTPUT_FORMAT = "rgba32"      # r8, rgb24, rgba32, bgra32

# -------------------------
# GPU Conversion Settings
# -------------------------
OUTPUT_ORIENTATION = "landscape_left"
FILTER_MODE = "point"         # point or bilinear
CONVERSION_SHADER_NAME = "Unlit/ImageConversion"

# Some headsets deliver the camera image upside down, which a MirrorX
# of the CPU conversion corrects. Overridable via FRAMECONV_MIRROR_CPU.
MIRROR_CPU_OUTPUT = False
