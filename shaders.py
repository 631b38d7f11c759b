"""
shaders.py – named shader programs available to the GPU path.

Shaders are looked up by name, the way the conversion material finds its
program on first use. Sources are templates completed with the GLSL header
matching the context (desktop 3.3 core or GLES 3.0).
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ShaderSource:
    vertex: str
    fragment: str


_CONVERSION_VERTEX = """
    {header}
    in vec2 position;
    in vec2 texcoord;
    out vec2 v_texcoord;
    void main() {{
        gl_Position = vec4(position, 0.0, 1.0);
        v_texcoord = texcoord;
    }}
"""

# u_DisplayTransform maps destination UV to source UV (crop, rotate, mirror)
_CONVERSION_FRAGMENT = """
    {header}
    uniform sampler2D u_Source;
    uniform mat3 u_DisplayTransform;

    in vec2 v_texcoord;
    out vec4 fragColor;

    void main() {{
        vec3 uv = u_DisplayTransform * vec3(v_texcoord, 1.0);
        fragColor = texture(u_Source, uv.xy);
    }}
"""

_LIBRARY = {
    "Unlit/ImageConversion": (_CONVERSION_VERTEX, _CONVERSION_FRAGMENT),
}


def glsl_header(version_code: int) -> str:
    if version_code < 330:
        return "#version 300 es\nprecision mediump float;"
    return "#version 330 core"


def find_shader(name: str, version_code: int = 330) -> Optional[ShaderSource]:
    """Returns the sources of the named shader, or None when it does not exist."""
    entry = _LIBRARY.get(name)
    if entry is None:
        return None
    header = glsl_header(version_code)
    vertex, fragment = entry
    return ShaderSource(vertex=vertex.format(header=header), fragment=fragment.format(header=header))
