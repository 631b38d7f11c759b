"""
renderer.py – GPU conversion of camera textures (crop, scale, rotate, mirror).

The conversion program is compiled on first use and kept until a different
context asks for it. Everything here must run on the thread that owns the GL
context; only the lazy creation of the material is locked.
"""
import logging
import threading
from typing import Optional

import moderngl
import numpy as np

from converter_config import get_defaults
from display_transform import calculate_display_matrix
from image_types import FilterMode, MatrixLayout, ScreenOrientation
import shaders

logger = logging.getLogger(__name__)

DISPLAY_TRANSFORM_UNIFORM = "u_DisplayTransform"

_FILTERS = {
    FilterMode.POINT: (moderngl.NEAREST, moderngl.NEAREST),
    FilterMode.BILINEAR: (moderngl.LINEAR, moderngl.LINEAR),
}

# Full-screen triangle strip: position.xy, texcoord.uv
_QUAD = np.array([
    -1.0, -1.0, 0.0, 0.0,
     1.0, -1.0, 1.0, 0.0,
    -1.0,  1.0, 0.0, 1.0,
     1.0,  1.0, 1.0, 1.0,
], dtype="f4")


class ConversionMaterial:
    """
    Lazily compiled conversion program plus the quad it draws.

    The program belongs to the context it was compiled on. A request from
    another context recompiles it there; objects of the previous context are
    left to that context's release.

    compile_count counts program builds, access_count counts requests.
    """

    def __init__(self, shader_name: Optional[str] = None):
        self.shader_name = shader_name or get_defaults().shader_name
        self.ctx = None
        self.program = None
        self.vbo = None
        self.vao = None
        self.compile_count = 0
        self.access_count = 0
        self._lock = threading.Lock()

    def acquire(self, ctx) -> bool:
        """Compiles the program for ctx if needed. Returns False if the shader is missing."""
        with self._lock:
            self.access_count += 1
            if self.program is not None and self.ctx is ctx:
                return True

            source = shaders.find_shader(self.shader_name, getattr(ctx, "version_code", 330))
            if source is None:
                logger.error("[GPU] Could not locate %s shader", self.shader_name)
                return False

            if self.program is not None:
                logger.debug("[GPU] Context changed, recompiling %s", self.shader_name)
            self.program = ctx.program(vertex_shader=source.vertex, fragment_shader=source.fragment)
            self.vbo = ctx.buffer(_QUAD.tobytes())
            self.vao = ctx.vertex_array(self.program, [(self.vbo, "2f 2f", "position", "texcoord")])
            self.program["u_Source"].value = 0
            self.ctx = ctx
            self.compile_count += 1
            logger.info("[GPU] Compiled %s shader", self.shader_name)
            return True


_default_material: Optional[ConversionMaterial] = None
_default_lock = threading.Lock()


def get_material() -> ConversionMaterial:
    """The process-wide conversion material, created on first request."""
    global _default_material
    with _default_lock:
        if _default_material is None:
            _default_material = ConversionMaterial()
        return _default_material


def convert_on_gpu_and_copy(
    ctx,
    image,
    output,
    output_orientation: ScreenOrientation = ScreenOrientation.LANDSCAPE_LEFT,
    filter_mode: FilterMode = FilterMode.POINT,
    mirror_x: bool = False,
    material: Optional[ConversionMaterial] = None,
) -> bool:
    """
    Writes the conversion of the input texture into the output texture.

    The conversion crops to the output aspect, scales with filter_mode and
    rotates to output_orientation. The image's own filter, the bound
    framebuffer and the viewport are restored afterwards, also when drawing
    fails.

    Returns False, leaving output untouched, when the conversion shader
    cannot be found.

    Raises:
        ValueError: output is not a 4-component texture.
    """
    if output.components != 4:
        raise ValueError(f"Output texture must have 4 components, got {output.components}")

    material = material or get_material()
    if not material.acquire(ctx):
        return False

    original_filter = image.filter
    image.filter = _FILTERS[filter_mode]
    try:
        display_transform = calculate_display_matrix(
            image.width,
            image.height,
            output.width,
            output.height,
            output_orientation,
            mirror_x,
            layout=MatrixLayout.ROW_MAJOR,
        )
        # GLSL matrices are column-major
        material.program[DISPLAY_TRANSFORM_UNIFORM].write(display_transform.T.astype("f4").tobytes())

        fbo = ctx.framebuffer(color_attachments=[output])
        # None on standalone contexts that never bound a framebuffer
        previous_fbo = getattr(ctx, "fbo", None)
        previous_viewport = ctx.viewport
        try:
            fbo.use()
            ctx.viewport = (0, 0, output.width, output.height)
            image.use(location=0)
            material.vao.render(mode=moderngl.TRIANGLE_STRIP)
        finally:
            if previous_fbo is not None:
                previous_fbo.use()
            ctx.viewport = previous_viewport
            fbo.release()
    finally:
        image.filter = original_filter
    return True


def create_texture(ctx, image: np.ndarray):
    """Uploads an (h, w[, c]) uint8 array; row 0 becomes texture row v=0."""
    h, w = image.shape[:2]
    components = 1 if image.ndim == 2 else image.shape[2]
    tex = ctx.texture((w, h), components, data=np.ascontiguousarray(image).tobytes())
    tex.filter = _FILTERS[get_defaults().filter_mode]
    return tex


def create_output_texture(ctx, width: int, height: int, components: int = 4):
    return ctx.texture((width, height), components)


def read_texture(texture) -> np.ndarray:
    w, h = texture.size
    data = np.frombuffer(texture.read(), dtype=np.uint8)
    if texture.components == 1:
        return data.reshape(h, w)
    return data.reshape(h, w, texture.components)
