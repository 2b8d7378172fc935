""" Texture Materializer settings. """

import json
import os
from typing import Dict, Tuple

from backend.texture_classes import PixelEncoding, TextureRole, TextureRoleConfig


def _as_bool(v) -> bool:
# Converts .json input (bool/int/str/None) to a real bool;
# Avoids the case where a non-empty string like "False" is treated as True.

    if isinstance(v, bool): return v
    if isinstance(v, str):
        input_str = v.strip().lower()
        if input_str == "": return False
        return input_str in ("1","true","yes","on")
    return bool(v)


def _as_int(v, default: int) -> int:
# Converts .json input to a non-negative int, falls back to default on garbage.

    try:
        return max(0, int(v))
    except (TypeError, ValueError):
        return default



#                                           === Loading JSON file ===

_config_path = os.path.join(os.path.dirname(__file__), "config.json")
_config_data: dict = {}
if os.path.isfile(_config_path):
    with open(_config_path, "r", encoding="utf-8") as f:
        _config_data = json.load(f)


# Assigning config values:
INPUT_FOLDER: str = (_config_data.get("INPUT_FOLDER", "") or "").strip() # Folder containing .zip archives; the current working directory when empty.
CONFIRM_EXTRACTION: bool = _as_bool(_config_data.get("CONFIRM_EXTRACTION", True)) # Lists the archives and asks for Y/N before extracting anything.
MAX_WORKERS: int = _as_int(_config_data.get("MAX_WORKERS", 0), 0) # Number of archives processed in parallel; 0 uses the CPU count, 1 runs inline.

SHOW_DETAILS: bool = _as_bool(_config_data.get("SHOW_DETAILS", False)) # Shows details like discarded files and encoding conversions when printing logs.




#                                           === Constants ===

ACCEPTED_FILE_TYPE: str = "png" # The only raster format textures are read from and written to.
ARCHIVE_FILE_TYPE: str = "zip"

MANIFEST_FILENAME: str = "material.toml"
PACKED_TEXTURE_NAME: str = "combo_0rm" # Zero / roughness / metalness packed into R / G / B.
BASE_MANIFEST_LINE: str = "tile = true"
METAL_MANIFEST_LINE: str = "metal = 1.0"
ROUGH_MANIFEST_LINE: str = "rough = 1.0"

TEXTURE_ROLES: Dict[str, TextureRoleConfig] = {
    "AmbientOcclusion": {"role": TextureRole.AMBIENT_OCCLUSION, "rename": "ao", "config_lines": ("ao = true",), "encoding": None},
    "Color": {"role": TextureRole.COLOR, "rename": "color", "config_lines": (), "encoding": None},
    "Displacement": {"role": TextureRole.DISPLACEMENT, "rename": "depth", "config_lines": ("depth = 0.01", "depth_method = 8"), "encoding": None},
    "NormalGL": {"role": TextureRole.NORMAL, "rename": "normal", "config_lines": ('normal = "OpenGL"',), "encoding": PixelEncoding.RGB16},
    "Metalness": {"role": TextureRole.METALNESS, "rename": None, "config_lines": (), "encoding": None},
    "Roughness": {"role": TextureRole.ROUGHNESS, "rename": None, "config_lines": (), "encoding": None}}
# Keys are exact, case-sensitive suffixes; entries without "rename" are dependent maps buffered for channel packing.

COMPATIBLE_ENCODINGS: Tuple[PixelEncoding, ...] = (
    PixelEncoding.L8, PixelEncoding.LA8, PixelEncoding.RGB8, PixelEncoding.RGBA8, PixelEncoding.RGB32F, PixelEncoding.RGBA32F)
HIGH_PRECISION_ENCODINGS: Tuple[PixelEncoding, ...] = (
    PixelEncoding.L16, PixelEncoding.LA16, PixelEncoding.RGB16, PixelEncoding.RGBA16)
DEFAULT_TARGET_ENCODING: PixelEncoding = PixelEncoding.RGBA8
# Most engines sample 8bit textures everywhere; 16bit sources other than normal maps collapse to RGBA8.
