# settings.py
import os

from constantStorage.conversion_constants import *
from constantStorage.context_constants import *

_TRUTHY = {"1", "true", "TRUE", "yes", "YES"}

# -------------------------
# Environment Overrides (resolved once at startup)
# -------------------------
if "FRAMECONV_MIRROR_CPU" in os.environ:
    MIRROR_CPU_OUTPUT = os.environ["FRAMECONV_MIRROR_CPU"] in _TRUTHY

LOG_LEVEL = os.environ.get("FRAMECONV_LOG_LEVEL", LOG_LEVEL)
