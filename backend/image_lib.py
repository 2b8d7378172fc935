""" Image processing backend. Pixels are numpy arrays; OpenCV decodes and encodes PNG files so 16bit data survives, Pillow handles 8bit conversions and writes."""



#                                           === Backend ===

from typing import Any, Optional, Tuple, TypeAlias

import cv2
import numpy as np
from PIL import Image as _PIL
from PIL.Image import Image as PILImage

from backend.exceptions import ImageDecodeError, UnderlyingIOError
from backend.texture_classes import DecodedImage, PixelEncoding

ImageObject: TypeAlias = DecodedImage

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114]) # ITU-R 601-2, the weights Pillow uses for "L".


def open_image(path: str) -> ImageObject:
# Decodes a PNG file keeping its bit depth and channel count.
# Reads through np.fromfile so non-ASCII paths also work on Windows.

    try:
        raw_bytes = np.fromfile(path, dtype=np.uint8)
    except OSError as error:
        raise UnderlyingIOError(f"Failed to read '{path}': {error}") from error

    try:
        pixels: Optional[np.ndarray] = cv2.imdecode(raw_bytes, cv2.IMREAD_UNCHANGED)
    except cv2.error as error:
        raise ImageDecodeError(f"Failed to decode '{path}': {error}") from error
    if pixels is None:
        raise ImageDecodeError(f"Failed to decode '{path}'")
    return DecodedImage(_swap_red_blue(pixels))


def save_image(image: ImageObject, path: str) -> None:
# Writes 8bit images with Pillow and 16bit images with OpenCV; PNG has no float storage.

    pixels = image.pixels
    if pixels.dtype == np.uint8:
        from_array_u8(pixels).save(path, format="PNG")
        return

    if pixels.dtype == np.uint16:
        encoded, buffer = cv2.imencode(".png", _swap_red_blue(pixels))
        if not encoded:
            raise UnderlyingIOError(f"Failed to encode '{path}'")
        buffer.tofile(path)
        return

    raise UnderlyingIOError(f"Cannot write {pixels.dtype} pixels to '{path}'")


def from_array_u8(data: Any) -> PILImage:
# Creates a Pillow image from a uint8 numpy array; the mode follows the channel count (L, LA, RGB, RGBA).

    data = np.ascontiguousarray(data)
    if data.ndim == 3 and data.shape[2] == 1:
        data = data[..., 0]
    return _PIL.fromarray(data)


def to_pixels(image: PILImage) -> np.ndarray:
# Converts a Pillow image back to an H x W x C array.

    pixels = np.asarray(image)
    if pixels.ndim == 2:
        pixels = pixels[..., None]
    return pixels


def get_encoding(image: ImageObject) -> Optional[PixelEncoding]:
    return image.encoding


def get_size(image: ImageObject) -> Tuple[int, int]:
# Returns the image size as (width, height)
    return image.size


def convert_encoding(image: ImageObject, encoding: PixelEncoding) -> ImageObject:
# Converts pixel depth first, then the channel layout.
# 8bit targets go through Pillow's convert, wider targets are reshaped with numpy.

    if encoding.dtype == np.uint8:
        pixels_u8 = rescale_depth(image.pixels, np.uint8)
        converted = from_array_u8(pixels_u8).convert(encoding.mode)
        return DecodedImage(to_pixels(converted))

    rescaled = rescale_depth(image.pixels, encoding.dtype)
    return DecodedImage(_change_layout(rescaled, encoding.channels))


def convert_to_grayscale(image: ImageObject) -> np.ndarray:
# Returns a single 8bit channel as an H x W array.
    return convert_encoding(image, PixelEncoding.L8).pixels[..., 0]


def convert_to_rgb(image: ImageObject) -> np.ndarray:
# Returns an 8bit H x W x 3 array.
    return convert_encoding(image, PixelEncoding.RGB8).pixels




#                                           === Utils ===



def rescale_depth(pixels: np.ndarray, dtype: Any) -> np.ndarray:
# Scales values between bit depths so the full range is kept instead of being clipped.
# 16 to 8bit keeps the high byte, 8 to 16bit multiplies by 257 so 255 maps to 65535.

    source_type = pixels.dtype
    target_type = np.dtype(dtype)
    if source_type == target_type:
        return pixels

    if source_type == np.uint16 and target_type == np.uint8:
        return (pixels >> 8).astype(np.uint8)
    if source_type == np.uint8 and target_type == np.uint16:
        return pixels.astype(np.uint16) * 257

    if np.issubdtype(source_type, np.floating):
        if np.issubdtype(target_type, np.floating):
            return pixels.astype(target_type)
        return np.rint(np.clip(pixels, 0.0, 1.0) * np.iinfo(target_type).max).astype(target_type)
    if np.issubdtype(target_type, np.floating) and source_type in (np.uint8, np.uint16):
        return (pixels.astype(np.float64) / np.iinfo(source_type).max).astype(target_type)

    raise ValueError(f"Unsupported pixel type conversion {source_type} > {target_type}")


def _max_value(dtype: np.dtype) -> Any:
    if np.issubdtype(dtype, np.floating):
        return 1.0
    return np.iinfo(dtype).max


def _luma(color: np.ndarray) -> np.ndarray:
# Collapses RGB to a single luminance channel, rounding for integer types.

    luminance = color[..., :3].astype(np.float64) @ LUMA_WEIGHTS
    if np.issubdtype(color.dtype, np.integer):
        luminance = np.clip(np.rint(luminance), 0, np.iinfo(color.dtype).max)
    return luminance.astype(color.dtype)[..., None]


def _change_layout(pixels: np.ndarray, channels: int) -> np.ndarray:
# Reshapes between L, LA, RGB and RGBA layouts.
# Grayscale is replicated into RGB, RGB collapses to luminance, missing alpha is opaque.

    source_channels: int = pixels.shape[2]
    if source_channels == channels:
        return pixels

    has_alpha: bool = source_channels in (2, 4)
    color: np.ndarray = pixels[..., :source_channels - 1] if has_alpha else pixels
    alpha: Optional[np.ndarray] = pixels[..., -1:] if has_alpha else None

    if channels in (1, 2):
        if color.shape[2] >= 3:
            color = _luma(color)
    elif color.shape[2] == 1:
        color = np.repeat(color, 3, axis=2)

    if channels in (2, 4):
        if alpha is None:
            alpha = np.full(color.shape[:2] + (1,), _max_value(pixels.dtype), dtype=pixels.dtype)
        return np.concatenate([color, alpha], axis=2)
    return np.ascontiguousarray(color)


def _swap_red_blue(pixels: np.ndarray) -> np.ndarray:
# OpenCV stores BGR(A); everything else in the project is RGB(A). The swap is its own inverse.

    if pixels.ndim == 2:
        return pixels[..., None]
    if pixels.shape[2] == 3:
        return np.ascontiguousarray(pixels[..., ::-1])
    if pixels.shape[2] == 4:
        return np.ascontiguousarray(pixels[..., [2, 1, 0, 3]])
    return pixels
