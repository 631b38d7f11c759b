#context_constants.py
import sys

if sys.platform == "darwin":
    HEADLESS_BACKEND = None
else:
    HEADLESS_BACKEND = "egl"

# Minimum GL version required by the conversion shader (3.3 core)
REQUIRED_GL_VERSION = 330

LOG_LEVEL = "INFO"
