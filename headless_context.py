"""
headless_context.py – offscreen moderngl context for the GPU conversion path.

Tries the configured backend first, then falls back through the others
moderngl knows about, and reports what it ended up with.
"""
import logging
from typing import Optional

import moderngl

import settings

logger = logging.getLogger(__name__)


class HeadlessContextError(RuntimeError):
    """No backend could provide a GL context."""


def _backends_to_try(preferred: Optional[str]) -> list:
    backends = []
    if preferred:
        backends.append(preferred)
    for backend in ("egl", "osmesa", None):
        if backend not in backends:
            backends.append(backend)
    return backends


def _log_renderer_info(ctx) -> None:
    try:
        renderer_name = ctx.info.get("GL_RENDERER", "unknown")
    except (AttributeError, KeyError, TypeError):
        return
    logger.info("[CONTEXT] GL renderer: %s", renderer_name)
    if "llvmpipe" in renderer_name.lower() or "softpipe" in renderer_name.lower():
        logger.info("[CONTEXT] Using a software rasterizer")


def create_headless_context(preferred_backend: Optional[str] = None, require: Optional[int] = None):
    """
    Create a standalone context able to run the conversion shader.

    Raises:
        HeadlessContextError: when every backend fails
    """
    preferred = preferred_backend or getattr(settings, "HEADLESS_BACKEND", None)
    require = require or getattr(settings, "REQUIRED_GL_VERSION", 330)
    last_error = None

    for backend in _backends_to_try(preferred):
        attempt_backend = backend or "auto"
        kwargs = {"standalone": True, "require": require}
        if backend:
            kwargs["backend"] = backend
        try:
            ctx = moderngl.create_context(**kwargs)
        except Exception as e:
            last_error = e
            logger.debug("[CONTEXT] Headless attempt failed (%s): %s", attempt_backend, e)
            continue
        logger.info("[CONTEXT] Headless GL ready (backend=%s, version=%s)", attempt_backend, ctx.version_code)
        _log_renderer_info(ctx)
        return ctx

    raise HeadlessContextError(f"All headless GL backends failed, last error: {last_error}")
