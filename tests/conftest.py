"""Shared fixtures: small synthetic texture sets written to tmp_path."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Tuple, Union

import cv2
import numpy as np
import pytest
from PIL import Image

PixelValue = Union[int, Tuple[int, ...]]


def write_png(path: Path, mode: str, size: Tuple[int, int], value: PixelValue) -> Path:
    """Writes an 8bit PNG filled with one value."""

    Image.new(mode, size, value).save(path)
    return path


def write_png16(path: Path, size: Tuple[int, int], value: Tuple[int, ...]) -> Path:
    """Writes a 16bit PNG; value is given in R, G, B(, A) order."""

    width, height = size
    pixels = np.empty((height, width, len(value)), dtype=np.uint16)
    pixels[...] = value
    if len(value) >= 3:
        order = [2, 1, 0, 3][: len(value)]
        pixels = pixels[..., order]
    encoded, buffer = cv2.imencode(".png", pixels)
    assert encoded
    buffer.tofile(str(path))
    return path


def read_png(path: Path) -> np.ndarray:
    """Reads a PNG as stored, in OpenCV channel order."""

    pixels = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    assert pixels is not None, f"could not read {path}"
    return pixels


@pytest.fixture
def make_texture_dir(tmp_path: Path) -> Callable[..., Path]:
    """Creates an extracted-archive folder with the given 8bit textures.

    ``textures`` maps file names to ``(mode, value)``; every file is 16x16
    unless ``sizes`` overrides it.
    """

    def factory(
        directory_name: str,
        textures: Dict[str, Tuple[str, PixelValue]],
        sizes: Dict[str, Tuple[int, int]] | None = None,
    ) -> Path:
        directory = tmp_path / directory_name
        directory.mkdir()
        sizes = sizes or {}
        for filename, (mode, value) in textures.items():
            write_png(directory / filename, mode, sizes.get(filename, (16, 16)), value)
        return directory

    return factory
