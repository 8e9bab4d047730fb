import numpy as np
import pytest
import tifffile
from PIL import Image

from hdrstack import file_io
from hdrstack.errors import InvalidParameter


def test_float_tiff_is_loaded_unchanged(tmp_path, gradient_rgb):
    path = tmp_path / 'gradient.tif'
    tifffile.imwrite(str(path), gradient_rgb, photometric='rgb')

    descriptor = file_io.load_image(str(path))
    assert descriptor.name == 'gradient.tif'
    assert (descriptor.width, descriptor.height) == (6, 4)
    assert list(descriptor.channels) == ['R', 'G', 'B']
    np.testing.assert_array_equal(descriptor.channels['G'], gradient_rgb[:, :, 1])


def test_integer_tiff_is_scaled(tmp_path):
    path = tmp_path / 'grey.tiff'
    tifffile.imwrite(str(path), np.array([[0, 65535], [32768, 65535]], dtype=np.uint16), photometric='minisblack')

    descriptor = file_io.load_image(str(path))
    assert list(descriptor.channels) == ['Y']
    assert descriptor.channels['Y'][0].tolist() == [0.0, 1.0]


def test_custom_channel_names(tmp_path):
    path = tmp_path / 'depth.tif'
    tifffile.imwrite(str(path), np.ones((2, 2), dtype=np.float32))
    descriptor = file_io.load_image(str(path), channel_names=['Z'])
    assert list(descriptor.channels) == ['Z']


def test_png_round_trip_decodes_srgb(tmp_path):
    pixels = np.zeros((1, 3, 4), dtype=np.uint8)
    pixels[0, :, 0] = [0, 255, 255]
    pixels[0, :, 3] = [255, 128, 0]
    path = str(tmp_path / 'out.png')
    assert file_io.save_ldr(pixels, path)

    descriptor = file_io.load_image(path)
    assert list(descriptor.channels) == ['R', 'G', 'B', 'A']
    np.testing.assert_allclose(descriptor.channels['R'][0], [0.0, 1.0, 1.0], atol=1e-6)
    # alpha is not sRGB encoded
    np.testing.assert_allclose(descriptor.channels['A'][0], [1.0, 128 / 255, 0.0], atol=1e-6)


def test_jpeg_drops_alpha(tmp_path):
    path = str(tmp_path / 'out.jpg')
    assert file_io.save_ldr(np.full((4, 4, 4), 200, dtype=np.uint8), path)
    with Image.open(path) as img:
        assert img.mode == 'RGB'
    assert list(file_io.load_image(path).channels) == ['R', 'G', 'B']


def test_save_failure_returns_false(tmp_path):
    assert not file_io.save_ldr(np.zeros((2, 2, 4), dtype=np.uint8), str(tmp_path / 'missing' / 'out.png'))


def test_unsupported_format(tmp_path):
    with pytest.raises(InvalidParameter):
        file_io.load_image(str(tmp_path / 'image.exr'))
