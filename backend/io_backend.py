""" Filesystem backend: scanning extracted directories, writing outputs, deleting sources and archive extraction, so the main materializer logic stays free of raw os calls. """

import os
import zipfile
from typing import Iterable, List

from backend.exceptions import (ExtractDirectoryError, InvalidFileNameError, UnderlyingIOError,
                                UnexpectedSubdirectoryError, UnsupportedExtensionError)
from backend.image_lib import ImageObject, save_image as save_image_file
from backend.texture_classes import CandidateFile, MaterialManifest, ScanResult

from settings import ACCEPTED_FILE_TYPE, ARCHIVE_FILE_TYPE, MANIFEST_FILENAME, SHOW_DETAILS
from utils import log




#                                     === Extracted directory scanning ===




def check_filename(filename: str, path: str) -> None:
# os.listdir escapes undecodable bytes as surrogates; such names cannot be matched against suffixes.

    try:
        filename.encode("utf-8")
    except UnicodeEncodeError as error:
        raise InvalidFileNameError(f"Failed to decode file name of '{path!r}' in extract directory") from error


def check_extension(path: str) -> None:
# Raises if the file is not the accepted raster format; the extension match is exact (".png", not ".PNG").

    file_extension: str = os.path.splitext(path)[1].lstrip(".")
    if file_extension != ACCEPTED_FILE_TYPE:
        raise UnsupportedExtensionError(f"Unsupported image file extension '{file_extension}' of '{path}'")


def scan_extract_directory(extract_directory: str) -> ScanResult:
# Collects every file of the extracted directory, in directory order.
# Accepted textures become candidates, all other files are marked for deletion. Subdirectories abort the scan.

    scan_result = ScanResult()

    with os.scandir(extract_directory) as entries:
        for entry in entries:
            file_path: str = os.path.abspath(entry.path)

            if entry.is_dir():
                raise UnexpectedSubdirectoryError(f"Unexpected sub-directory '{file_path}' in extract directory")

            check_filename(entry.name, file_path)

            try:
                check_extension(file_path)
            except UnsupportedExtensionError:
                scan_result.files_to_delete.append(file_path)
                if SHOW_DETAILS:
                    log(f"Discarding non-texture file '{entry.name}'", "info")
                continue

            stem, _ = os.path.splitext(entry.name)
            scan_result.texture_files.append(CandidateFile(path=file_path, filename=entry.name, stem=stem))

    return scan_result




#                                           === Outputs ===




def output_path(directory: str, name: str) -> str:
    return os.path.join(directory, f"{name}.{ACCEPTED_FILE_TYPE}")


def save_image(image: ImageObject, path: str) -> None:
    try:
        save_image_file(image, path)
    except OSError as error:
        raise UnderlyingIOError(f"Failed to write '{path}': {error}") from error


def rename_file(source_path: str, target_path: str) -> None:
    try:
        os.replace(source_path, target_path)
    except OSError as error:
        raise UnderlyingIOError(f"Failed to rename '{source_path}' to '{target_path}': {error}") from error


def write_manifest(directory: str, manifest: MaterialManifest) -> str:
# Writes material.toml, replacing any existing file.

    manifest_path: str = os.path.join(directory, MANIFEST_FILENAME)
    try:
        with open(manifest_path, "w", encoding="utf-8", newline="\n") as manifest_file:
            manifest_file.write(manifest.serialize())
    except OSError as error:
        raise UnderlyingIOError(f"Failed to write '{manifest_path}': {error}") from error
    return manifest_path


def remove_files(paths: Iterable[str]) -> None:
# Deletes source files in the given order. A file that is already gone is fine, anything else aborts.

    for path in paths:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as error:
            raise UnderlyingIOError(f"Failed to remove '{path}': {error}") from error


def rename_directory(source_directory: str, directory_name: str) -> str:
# Renames the finished material folder within its parent directory; returns the final path.

    source_directory = os.path.abspath(source_directory)
    if not directory_name:
        log(f"Could not derive a folder name for '{source_directory}', keeping it.", "warn")
        return source_directory

    target_directory: str = os.path.join(os.path.dirname(source_directory), directory_name)
    if target_directory == source_directory:
        return source_directory

    if os.path.exists(target_directory):
        raise UnderlyingIOError(f"Cannot rename '{source_directory}': '{target_directory}' already exists")

    try:
        os.rename(source_directory, target_directory)
    except OSError as error:
        raise UnderlyingIOError(f"Failed to rename '{source_directory}' to '{target_directory}': {error}") from error
    return target_directory




#                                           === Archives ===




def list_zip_archives(input_folder: str) -> List[str]:
# Lists .zip files directly inside input_folder, sorted by path.

    root_directory: str = os.path.abspath(input_folder)
    archive_paths: List[str] = []

    for filename in os.listdir(root_directory):
        absolute_path: str = os.path.join(root_directory, filename)
        if not os.path.isfile(absolute_path):
            continue
        if os.path.splitext(filename)[1] != f".{ARCHIVE_FILE_TYPE}":
            continue
        archive_paths.append(absolute_path)

    archive_paths.sort()
    return archive_paths


def extract_archive(archive_path: str) -> str:
# Extracts "<name>.zip" into a sibling "<name>" folder and returns its path.
# An existing empty folder is reused; an existing file or a folder with files is rejected.

    extract_directory: str = os.path.splitext(os.path.abspath(archive_path))[0]

    if os.path.exists(extract_directory):
        if not os.path.isdir(extract_directory):
            raise ExtractDirectoryError(f"Extract directory '{extract_directory}' already exists as a file")
        if os.listdir(extract_directory):
            raise ExtractDirectoryError(f"Extract directory '{extract_directory}' already has files")

    try:
        os.makedirs(extract_directory, exist_ok=True)
        with zipfile.ZipFile(archive_path) as archive:
            archive.extractall(extract_directory)
    except (OSError, zipfile.BadZipFile) as error:
        raise UnderlyingIOError(f"Failed to extract '{archive_path}': {error}") from error

    return extract_directory
