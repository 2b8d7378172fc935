""" Texture utilities: logging, filename prefix analysis and directory name cleanup. """

import re
from functools import reduce
from typing import Iterable, Optional

from settings import ACCEPTED_FILE_TYPE


LOG_TYPES: list[str] = ["info", "warn", "error", "skip", "complete"]
# Defines log types printed to the CLI.

def log(message: str, message_kind: LOG_TYPES = "info") -> None:
# Maps different log types.

    if message == "":
        print("")
        return

    if message_kind not in LOG_TYPES:
        message_kind = "info"

    if message_kind == "info":
        print(f"   {message}")
    elif message_kind == "warn":
        print(f"⚠️ {message}")
    elif message_kind == "error":
        print(f"⛔ {message}")
    elif message_kind == "skip":
        print(f"❌ {message}")
    elif message_kind == "complete":
        print(f"✅ {message}")
    else:
        print(message)  # fallback

    # Print styles:
    # info: 3 whitespaces + message
    # warn: ⚠️ + message
    # error: ⛔ + message
    # skip: ❌ + message
    # complete: ✅ + message


RESOLUTION_TOKEN_PATTERN = re.compile(r"[0-9]+K")
# Size tag in vendor names, e.g., "2K", "16K". ASCII digits only, upper-case K.


def common_prefix(first: str, second: str) -> str:
# Longest common leading substring of two strings.

    length: int = 0
    for first_character, second_character in zip(first, second):
        if first_character != second_character:
            break
        length += 1
    return first[:length]


def shared_prefix(names: Iterable[str]) -> str:
# Pairwise reduction of common_prefix over all names, e.g., ["Tex_Color", "Tex_NormalGL"] > "Tex_".
# The result does not depend on the order of names.

    names = list(names)
    if not names:
        return ""
    return reduce(common_prefix, names)


def is_resolution_token(token: str) -> bool:
# Returns True for "2K", "8K", "16K"; "K", "2k" or "2KB" are not size tags.
    return RESOLUTION_TOKEN_PATTERN.fullmatch(token) is not None


def strip_resolution_suffix(name: str) -> str:
# Removes a trailing "_<digits>K" segment, e.g., "Bricks059_2K" > "Bricks059".

    underscore_index: int = name.rfind("_")
    if underscore_index == -1:
        return name
    if is_resolution_token(name[underscore_index + 1:]):
        return name[:underscore_index]
    return name


def finalize_directory_name(directory_name: str, thumbnail_name_length: int) -> str:
# Derives a short material folder name from the vendor archive name.
# Vendor archives embed the material id, whose length equals the thumbnail file name, e.g.,
# "Bricks059_2K-PNG" with thumbnail "Bricks059.png" (13) > "Bricks059_2K-" > "Bricks059_2K" > "Bricks059" > "bricks059"

    finished_name: str = directory_name[:thumbnail_name_length]

    file_extension: str = f".{ACCEPTED_FILE_TYPE}"
    if finished_name.endswith(file_extension):
        finished_name = finished_name[:-len(file_extension)]

    finished_name = finished_name.rstrip("-_")
    finished_name = strip_resolution_suffix(finished_name)
    finished_name = finished_name.rstrip("-_")
    return finished_name.lower()


def describe_size(size: Optional[tuple]) -> str:
# Formats (width, height) for logs.
    if not size:
        return "?x?"
    width, height = size
    return f"{width}x{height}"
