import unittest
from unittest import mock

import moderngl
import numpy as np

import renderer
import shaders
from display_transform import calculate_display_matrix
from image_types import FilterMode, ScreenOrientation

LINEAR = (moderngl.LINEAR, moderngl.LINEAR)
NEAREST = (moderngl.NEAREST, moderngl.NEAREST)


class FakeTexture:
    def __init__(self, width, height, filter=LINEAR, components=4):
        self.width = width
        self.height = height
        self.components = components
        self.filter = filter
        self.use = mock.Mock()


def _fake_context():
    ctx = mock.MagicMock()
    ctx.version_code = 330
    return ctx


class ShaderLibraryTest(unittest.TestCase):

    def test_conversion_shader_is_available(self):
        source = shaders.find_shader("Unlit/ImageConversion")
        self.assertIn("#version 330 core", source.vertex)
        self.assertIn("u_DisplayTransform", source.fragment)

    def test_gles_header(self):
        source = shaders.find_shader("Unlit/ImageConversion", version_code=300)
        self.assertIn("#version 300 es", source.fragment)

    def test_unknown_shader(self):
        self.assertIsNone(shaders.find_shader("Unlit/Missing"))


class ConvertOnGpuTest(unittest.TestCase):

    def setUp(self):
        self.ctx = _fake_context()
        self.material = renderer.ConversionMaterial("Unlit/ImageConversion")
        self.image = FakeTexture(1280, 720)
        self.output = FakeTexture(640, 480)

    def test_shader_compiled_only_once(self):
        self.assertTrue(renderer.convert_on_gpu_and_copy(self.ctx, self.image, self.output, material=self.material))
        self.assertTrue(renderer.convert_on_gpu_and_copy(self.ctx, self.image, self.output, material=self.material))

        self.assertEqual(self.material.compile_count, 1)
        self.assertEqual(self.material.access_count, 2)
        self.ctx.program.assert_called_once()

    def test_display_transform_uploaded_column_major(self):
        renderer.convert_on_gpu_and_copy(
            self.ctx, self.image, self.output, ScreenOrientation.LANDSCAPE_RIGHT, mirror_x=True,
            material=self.material,
        )
        uniform = self.material.program[renderer.DISPLAY_TRANSFORM_UNIFORM]
        data = uniform.write.call_args[0][0]
        uploaded = np.frombuffer(data, dtype="f4").reshape(3, 3)

        expected = calculate_display_matrix(1280, 720, 640, 480, ScreenOrientation.LANDSCAPE_RIGHT, True)
        np.testing.assert_allclose(uploaded.T, expected, rtol=1e-6)

    def test_draws_into_output_framebuffer(self):
        renderer.convert_on_gpu_and_copy(self.ctx, self.image, self.output, material=self.material)

        self.ctx.framebuffer.assert_called_once_with(color_attachments=[self.output])
        fbo = self.ctx.framebuffer.return_value
        fbo.use.assert_called_once()
        fbo.release.assert_called_once()
        self.image.use.assert_called_once_with(location=0)
        self.material.vao.render.assert_called_once_with(mode=moderngl.TRIANGLE_STRIP)

    def test_viewport_set_for_draw_and_restored(self):
        self.ctx.viewport = (0, 0, 1920, 1080)
        previous_fbo = self.ctx.fbo
        seen = []
        self.ctx.vertex_array.return_value.render.side_effect = lambda **kwargs: seen.append(self.ctx.viewport)

        renderer.convert_on_gpu_and_copy(self.ctx, self.image, self.output, material=self.material)

        self.assertEqual(seen, [(0, 0, 640, 480)])
        self.assertEqual(self.ctx.viewport, (0, 0, 1920, 1080))
        previous_fbo.use.assert_called_once()

    def test_previous_framebuffer_rebound_when_draw_fails(self):
        self.ctx.viewport = (0, 0, 1920, 1080)
        self.ctx.vertex_array.return_value.render.side_effect = RuntimeError("device lost")

        with self.assertRaises(RuntimeError):
            renderer.convert_on_gpu_and_copy(self.ctx, self.image, self.output, material=self.material)

        self.ctx.fbo.use.assert_called_once()
        self.assertEqual(self.ctx.viewport, (0, 0, 1920, 1080))

    def test_program_rebuilt_for_new_context(self):
        renderer.convert_on_gpu_and_copy(self.ctx, self.image, self.output, material=self.material)
        other = _fake_context()
        renderer.convert_on_gpu_and_copy(other, self.image, self.output, material=self.material)

        self.assertEqual(self.material.compile_count, 2)
        self.ctx.program.assert_called_once()
        other.program.assert_called_once()
        self.assertIs(self.material.program, other.program.return_value)
        other.program.return_value[renderer.DISPLAY_TRANSFORM_UNIFORM].write.assert_called_once()
        other.framebuffer.assert_called_once_with(color_attachments=[self.output])

    def test_output_must_have_four_components(self):
        output = FakeTexture(640, 480, components=1)

        with self.assertRaises(ValueError):
            renderer.convert_on_gpu_and_copy(self.ctx, self.image, output, material=self.material)

        self.ctx.program.assert_not_called()
        self.assertEqual(self.image.filter, LINEAR)

    def test_filter_overridden_during_draw_and_restored(self):
        seen = []
        self.ctx.vertex_array.return_value.render.side_effect = lambda **kwargs: seen.append(self.image.filter)

        renderer.convert_on_gpu_and_copy(self.ctx, self.image, self.output, filter_mode=FilterMode.POINT,
                                         material=self.material)

        self.assertEqual(seen, [NEAREST])
        self.assertEqual(self.image.filter, LINEAR)

    def test_filter_restored_when_draw_fails(self):
        self.ctx.vertex_array.return_value.render.side_effect = RuntimeError("device lost")

        with self.assertRaises(RuntimeError):
            renderer.convert_on_gpu_and_copy(self.ctx, self.image, self.output, material=self.material)

        self.assertEqual(self.image.filter, LINEAR)
        self.ctx.framebuffer.return_value.release.assert_called_once()

    def test_filter_restored_when_framebuffer_fails(self):
        self.ctx.framebuffer.side_effect = RuntimeError("incomplete framebuffer")
        self.image.filter = NEAREST

        with self.assertRaises(RuntimeError):
            renderer.convert_on_gpu_and_copy(self.ctx, self.image, self.output, filter_mode=FilterMode.BILINEAR,
                                             material=self.material)
        self.assertEqual(self.image.filter, NEAREST)

    def test_missing_shader_skips_conversion(self):
        material = renderer.ConversionMaterial("Unlit/DoesNotExist")

        with self.assertLogs("renderer", level="ERROR") as logs:
            converted = renderer.convert_on_gpu_and_copy(self.ctx, self.image, self.output, material=material)

        self.assertFalse(converted)
        self.assertIn("Unlit/DoesNotExist", logs.output[0])
        self.assertEqual(material.compile_count, 0)
        self.ctx.program.assert_not_called()
        self.ctx.framebuffer.assert_not_called()
        self.assertEqual(self.image.filter, LINEAR)

    def test_default_material_is_shared(self):
        self.assertIs(renderer.get_material(), renderer.get_material())


class HeadlessGpuTest(unittest.TestCase):
    """Runs the conversion on a real context when one can be created."""

    @classmethod
    def setUpClass(cls):
        from headless_context import create_headless_context
        try:
            cls.ctx = create_headless_context()
        except Exception as e:
            raise unittest.SkipTest(f"No headless GL context: {e}")
        cls.material = renderer.ConversionMaterial("Unlit/ImageConversion")

    @classmethod
    def tearDownClass(cls):
        cls.ctx.release()

    def _convert(self, pixels, width, height, mirror_x=False, ctx=None):
        ctx = ctx or self.ctx
        source = renderer.create_texture(ctx, pixels)
        output = renderer.create_output_texture(ctx, width, height)
        renderer.convert_on_gpu_and_copy(ctx, source, output, mirror_x=mirror_x, material=self.material)
        return renderer.read_texture(output)

    def test_same_size_point_copy(self):
        pixels = np.random.default_rng(1).integers(0, 256, (4, 8, 4), dtype=np.uint8)
        np.testing.assert_array_equal(self._convert(pixels, 8, 4), pixels)

    def test_mirror_reverses_columns(self):
        pixels = np.random.default_rng(2).integers(0, 256, (4, 8, 4), dtype=np.uint8)
        np.testing.assert_array_equal(self._convert(pixels, 8, 4, mirror_x=True), pixels[:, ::-1])

    def test_wide_source_keeps_centre_columns(self):
        pixels = np.random.default_rng(3).integers(0, 256, (4, 16, 4), dtype=np.uint8)
        np.testing.assert_array_equal(self._convert(pixels, 8, 4), pixels[:, 4:12])

    def test_conversion_on_a_second_context(self):
        from headless_context import create_headless_context
        pixels = np.random.default_rng(4).integers(0, 256, (4, 8, 4), dtype=np.uint8)
        for _ in range(2):
            ctx = create_headless_context()
            try:
                np.testing.assert_array_equal(self._convert(pixels, 8, 4, ctx=ctx), pixels)
            finally:
                ctx.release()


if __name__ == "__main__":
    unittest.main()
