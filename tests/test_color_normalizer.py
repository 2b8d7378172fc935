"""Pixel encoding detection, conversion and the two-tier normalization policy."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from backend.exceptions import ImageDecodeError
from backend.image_lib import convert_encoding, open_image, save_image
from backend.texture_classes import DecodedImage, PixelEncoding
from texture_materializer import normalize_color

from conftest import read_png, write_png, write_png16


def filled(encoding: PixelEncoding, value, size=(3, 2)) -> DecodedImage:
    width, height = size
    pixels = np.empty((height, width, encoding.channels), dtype=encoding.dtype)
    pixels[...] = value
    return DecodedImage(pixels)


@pytest.mark.parametrize(
    "encoding",
    [PixelEncoding.L8, PixelEncoding.LA8, PixelEncoding.RGB8, PixelEncoding.RGBA8,
     PixelEncoding.RGB32F, PixelEncoding.RGBA32F],
)
def test_broadly_compatible_encodings_are_left_alone(encoding: PixelEncoding) -> None:
    assert normalize_color(filled(encoding, 0)) is None


@pytest.mark.parametrize(
    "encoding",
    [PixelEncoding.L16, PixelEncoding.LA16, PixelEncoding.RGB16, PixelEncoding.RGBA16],
)
def test_16bit_encodings_collapse_to_rgba8(encoding: PixelEncoding) -> None:
    converted = normalize_color(filled(encoding, 0x1234))

    assert converted is not None
    assert converted.encoding is PixelEncoding.RGBA8
    assert converted.size == (3, 2)


def test_16bit_grayscale_keeps_high_byte_and_becomes_opaque() -> None:
    converted = normalize_color(filled(PixelEncoding.L16, 0x1234))

    assert converted.pixels[0, 0].tolist() == [0x12, 0x12, 0x12, 255]


def test_16bit_grayscale_alpha_keeps_alpha() -> None:
    converted = normalize_color(filled(PixelEncoding.LA16, (0x4000, 0x8000)))

    assert converted.pixels[1, 2].tolist() == [0x40, 0x40, 0x40, 0x80]


def test_normal_map_is_widened_to_16bit_rgb() -> None:
    converted = normalize_color(filled(PixelEncoding.RGBA8, (255, 128, 0, 10)), PixelEncoding.RGB16)

    assert converted.encoding is PixelEncoding.RGB16
    assert converted.pixels[0, 0].tolist() == [65535, 128 * 257, 0]


def test_grayscale_normal_map_is_replicated_into_rgb16() -> None:
    converted = normalize_color(filled(PixelEncoding.L8, 2), PixelEncoding.RGB16)

    assert converted.pixels[0, 0].tolist() == [514, 514, 514]


def test_matching_required_encoding_is_left_alone() -> None:
    assert normalize_color(filled(PixelEncoding.RGB16, 7), PixelEncoding.RGB16) is None


@pytest.mark.parametrize(
    ("encoding", "required"),
    [(PixelEncoding.RGBA16, None), (PixelEncoding.L16, None), (PixelEncoding.RGB8, PixelEncoding.RGB16),
     (PixelEncoding.LA8, PixelEncoding.RGB16)],
)
def test_normalization_is_idempotent(encoding: PixelEncoding, required) -> None:
    once = normalize_color(filled(encoding, 3), required)

    assert once is not None
    assert normalize_color(once, required) is None


def test_unrecognized_encoding_is_reported_not_raised(capsys: pytest.CaptureFixture[str]) -> None:
    image = DecodedImage(np.zeros((2, 2, 3), dtype=np.int32))

    assert image.encoding is None
    assert normalize_color(image) is None
    assert normalize_color(image, PixelEncoding.RGB16) is None
    assert "Unrecognized pixel encoding" in capsys.readouterr().out


def test_rgb16_to_grayscale16_uses_luma_weights() -> None:
    converted = convert_encoding(filled(PixelEncoding.RGB16, (1000, 2000, 3000)), PixelEncoding.L16)

    assert converted.pixels[0, 0].tolist() == [1815]


def test_float_to_8bit_scales_and_clips() -> None:
    converted = convert_encoding(filled(PixelEncoding.RGB32F, (0.0, 0.5, 2.0)), PixelEncoding.RGB8)

    assert converted.pixels[0, 0].tolist() == [0, 128, 255]


def test_open_image_reports_encoding_of_8bit_files(tmp_path: Path) -> None:
    write_png(tmp_path / "gray.png", "L", (5, 4), 9)
    write_png(tmp_path / "rgba.png", "RGBA", (5, 4), (1, 2, 3, 4))

    gray = open_image(str(tmp_path / "gray.png"))
    rgba = open_image(str(tmp_path / "rgba.png"))

    assert gray.encoding is PixelEncoding.L8
    assert gray.size == (5, 4)
    assert rgba.encoding is PixelEncoding.RGBA8
    assert rgba.pixels[0, 0].tolist() == [1, 2, 3, 4]


def test_16bit_rgb_survives_save_and_open_in_rgb_order(tmp_path: Path) -> None:
    path = tmp_path / "normal.png"
    save_image(filled(PixelEncoding.RGB16, (100, 200, 300)), str(path))

    reopened = open_image(str(path))

    assert reopened.encoding is PixelEncoding.RGB16
    assert reopened.pixels[0, 0].tolist() == [100, 200, 300]
    assert read_png(path)[0, 0].tolist() == [300, 200, 100]


def test_16bit_grayscale_file_is_detected(tmp_path: Path) -> None:
    path = tmp_path / "height.png"
    Image.fromarray(np.full((4, 4), 4660, dtype=np.uint16)).save(path)

    assert open_image(str(path)).encoding is PixelEncoding.L16


def test_16bit_rgba_file_is_detected(tmp_path: Path) -> None:
    path = write_png16(tmp_path / "color.png", (4, 4), (1, 2, 3, 4))

    image = open_image(str(path))

    assert image.encoding is PixelEncoding.RGBA16
    assert image.pixels[0, 0].tolist() == [1, 2, 3, 4]


def test_open_image_rejects_non_images(tmp_path: Path) -> None:
    path = tmp_path / "broken.png"
    path.write_text("not an image")

    with pytest.raises(ImageDecodeError):
        open_image(str(path))
