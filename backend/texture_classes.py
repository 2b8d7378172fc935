from enum import Enum
from typing import Dict, List, Optional, Tuple, TypedDict
from dataclasses import dataclass, field

import numpy as np


class PixelEncoding(Enum):
    L8 = ("L", 1, "uint8")
    LA8 = ("LA", 2, "uint8")
    RGB8 = ("RGB", 3, "uint8")
    RGBA8 = ("RGBA", 4, "uint8")
    L16 = ("L", 1, "uint16")
    LA16 = ("LA", 2, "uint16")
    RGB16 = ("RGB", 3, "uint16")
    RGBA16 = ("RGBA", 4, "uint16")
    RGB32F = ("RGB", 3, "float32")
    RGBA32F = ("RGBA", 4, "float32")

    @property
    def mode(self) -> str:
    # Pillow-style channel layout name: "L", "LA", "RGB", "RGBA".
        return self.value[0]

    @property
    def channels(self) -> int:
        return self.value[1]

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(self.value[2])

    @classmethod
    def from_layout(cls, dtype: np.dtype, channels: int) -> Optional["PixelEncoding"]:
    # Maps a numpy dtype and channel count to an encoding, None if the pair is not a known encoding.
        for encoding in cls:
            if encoding.dtype == dtype and encoding.channels == channels:
                return encoding
        return None


class TextureRole(Enum):
    AMBIENT_OCCLUSION = "AmbientOcclusion"
    COLOR = "Color"
    DISPLACEMENT = "Displacement"
    NORMAL = "Normal"
    METALNESS = "Metalness"
    ROUGHNESS = "Roughness"
    UNKNOWN = "Unknown"


class TextureRoleConfig(TypedDict):
    role: TextureRole # Semantic texture role the suffix stands for.
    rename: Optional[str] # Canonical output basename; None for dependent maps consumed by channel packing.
    config_lines: Tuple[str, ...] # Lines contributed to material.toml.
    encoding: Optional[PixelEncoding] # Required pixel encoding of the output; None applies the default normalization.


@dataclass
class DecodedImage:
    pixels: np.ndarray # Always H x W x C, channels ordered R, G, B, A.

    @property
    def encoding(self) -> Optional[PixelEncoding]:
        return PixelEncoding.from_layout(self.pixels.dtype, self.pixels.shape[2])

    @property
    def size(self) -> Tuple[int, int]:
    # Returns (width, height).
        height, width = self.pixels.shape[:2]
        return width, height


@dataclass
class CandidateFile:
    path: str # Absolute file path.
    filename: str # Original case-sensitive file name.
    stem: str # File name without the extension.
    suffix: str = "" # Stem minus the shared prefix, set once the prefix is known.


@dataclass(frozen=True)
class RoleBake:
# Independent texture: processed alone and written under its canonical name.
    role: TextureRole
    rename: str
    config_lines: Tuple[str, ...] = ()
    required_encoding: Optional[PixelEncoding] = None


@dataclass(frozen=True)
class DependentRole:
# Texture that needs its sibling maps; buffered until every file is classified.
    role: TextureRole


@dataclass
class ScanResult:
    texture_files: List[CandidateFile] = field(default_factory=list) # Files with the accepted extension, in directory order.
    files_to_delete: List[str] = field(default_factory=list) # Everything else found in the directory.


class MaterialManifest:
    """Unique material.toml lines; serialized sorted with a trailing newline."""

    def __init__(self, base_line: Optional[str] = None) -> None:
        self._lines: List[str] = []
        if base_line:
            self.add(base_line)

    def add(self, *lines: str) -> None:
        for line in lines:
            if line not in self._lines:
                self._lines.append(line)

    @property
    def lines(self) -> List[str]:
        return list(self._lines)

    def serialize(self) -> str:
        return "\n".join(sorted(self._lines)) + "\n"


@dataclass
class MaterialContext:
    work_directory: str # Absolute path of the extracted directory being materialized.
    manifest: MaterialManifest = field(default_factory=MaterialManifest)
    files_to_delete: Dict[str, None] = field(default_factory=dict) # Ordered set of source paths removed after all processing succeeded.
    dependent_maps: Dict[TextureRole, str] = field(default_factory=dict) # Role > path of maps buffered for channel packing, e.g., ROUGHNESS: ".../Tex_Roughness.png".
    claimed_outputs: Dict[str, str] = field(default_factory=dict) # Normalized output path > what produced it (source path or "channel packing").
    thumbnail_name_length: int = 0 # Length of the thumbnail file name, used to shorten the directory name.
    shared_prefix: str = ""

    def schedule_delete(self, path: str) -> None:
        self.files_to_delete.setdefault(path, None)


@dataclass
class ArchiveOutcome:
    archive_path: str # Source .zip archive.
    material_directory: Optional[str] = None # Final material directory on success.
    error: Optional[str] = None # Error description on failure.

    @property
    def ok(self) -> bool:
        return self.error is None
