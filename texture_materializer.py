""" Materializes a PBR material from an extracted texture archive: classifies maps by suffix, normalizes pixel encodings, packs metalness/roughness and writes material.toml. """

import os
import sys
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from backend.exceptions import (DimensionMismatchError, DuplicateOutputError, IncompleteMaterialError,
                                MaterializerError, NoEligibleFilesError, UnderlyingIOError)

from backend.image_lib import (ImageObject, convert_encoding, convert_to_grayscale, convert_to_rgb,
                               get_encoding, get_size, open_image)

from backend.io_backend import (extract_archive, list_zip_archives, output_path, remove_files, rename_directory,
                                rename_file, save_image, scan_extract_directory, write_manifest)

from backend.texture_classes import (ArchiveOutcome, CandidateFile, DecodedImage, DependentRole, MaterialContext,
                                     MaterialManifest, PixelEncoding, RoleBake, ScanResult, TextureRole)

from settings import (BASE_MANIFEST_LINE, CONFIRM_EXTRACTION, DEFAULT_TARGET_ENCODING,
                      HIGH_PRECISION_ENCODINGS, INPUT_FOLDER, MAX_WORKERS, METAL_MANIFEST_LINE, PACKED_TEXTURE_NAME,
                      ROUGH_MANIFEST_LINE, SHOW_DETAILS, TEXTURE_ROLES)

from utils import describe_size, finalize_directory_name, log, shared_prefix


ProcessingMethod = Union[RoleBake, DependentRole]




# Basic flow for one extracted archive, e.g., "Bricks059_2K-PNG":
#   Bricks059.png                     thumbnail (shortest name) > deleted
#   Bricks059_2K-PNG_Color.png        suffix "Color"            > color.png
#   Bricks059_2K-PNG_NormalGL.png     suffix "NormalGL"         > normal.png (16bit RGB)
#   Bricks059_2K-PNG_NormalDX.png     suffix "NormalDX"         > deleted, unknown suffix
#   Bricks059_2K-PNG_Roughness.png    suffix "Roughness"        > combo_0rm.png (green channel)
#   material.toml                     sorted config lines
# and the folder is renamed to "bricks059".


#                                          === Classification ===

def classify_suffix(suffix: str) -> Optional[ProcessingMethod]:
# Maps a file suffix to how the file is processed. Exact, case-sensitive match.
# Returns None for unknown suffixes; those files are extraneous and get deleted.

    role_config = TEXTURE_ROLES.get(suffix)
    if role_config is None:
        return None

    if role_config["rename"] is None:
        return DependentRole(role=role_config["role"])
    # Dependent maps are only inputs for channel packing.

    return RoleBake(
        role=role_config["role"],
        rename=role_config["rename"],
        config_lines=tuple(role_config["config_lines"]),
        required_encoding=role_config["encoding"],
    )


def pick_thumbnail(texture_files: Sequence[CandidateFile]) -> int:
# Returns the index of the file with the shortest name; on ties the first one seen wins.

    shortest_index: int = 0
    shortest_length: Optional[int] = None
    for index, texture_file in enumerate(texture_files):
        if shortest_length is None or len(texture_file.filename) < shortest_length:
            shortest_index = index
            shortest_length = len(texture_file.filename)
    return shortest_index


def resolve_texture_files(scan_result: ScanResult, context: MaterialContext) -> List[CandidateFile]:
# Drops the thumbnail, computes the shared prefix from the original names and fills in each file's suffix.

    for path in scan_result.files_to_delete:
        context.schedule_delete(path)

    texture_files: List[CandidateFile] = list(scan_result.texture_files)
    if not texture_files:
        raise NoEligibleFilesError(f"No texture files to process in '{context.work_directory}'")

    thumbnail: CandidateFile = texture_files.pop(pick_thumbnail(texture_files))
    context.schedule_delete(thumbnail.path)
    context.thumbnail_name_length = len(thumbnail.filename)
    # The thumbnail is not a texture map, but its name length is used for the final folder name.

    if not texture_files:
        raise NoEligibleFilesError(f"No texture files besides the thumbnail '{thumbnail.filename}' in '{context.work_directory}'")

    context.shared_prefix = shared_prefix(texture_file.stem for texture_file in texture_files)
    for texture_file in texture_files:
        texture_file.suffix = texture_file.stem[len(context.shared_prefix):]
    return texture_files




#                                         === Color normalization ===

def normalize_color(image: ImageObject, required_encoding: Optional[PixelEncoding] = None) -> Optional[ImageObject]:
# Returns a converted image, or None when the image can be used as-is.
# With a required encoding (normal maps) anything else is converted; otherwise only 16bit images collapse to RGBA8.

    encoding: Optional[PixelEncoding] = get_encoding(image)

    if encoding is None:
        log(f"Unrecognized pixel encoding ({image.pixels.dtype}, {image.pixels.shape[2]} channels), leaving unchanged.", "warn")
        return None

    if required_encoding is not None:
        if encoding == required_encoding:
            return None
        return convert_encoding(image, required_encoding)

    if encoding in HIGH_PRECISION_ENCODINGS:
        return convert_encoding(image, DEFAULT_TARGET_ENCODING)
    return None
    # COMPATIBLE_ENCODINGS are used as-is.




#                                          === Channel packing ===

def fuse_metal_roughness(metalness: np.ndarray, roughness: np.ndarray) -> np.ndarray:
# Builds (0, roughness, metalness) per pixel from two H x W arrays.
# Every output pixel only reads the same pixel of both inputs, the inputs are never modified.

    return np.stack([np.zeros_like(roughness), roughness, metalness], axis=-1)


def isolate_roughness(roughness: np.ndarray) -> np.ndarray:
# Keeps only the green channel of an H x W x 3 array; red is unused and blue is reserved for metalness.

    packed = roughness.copy()
    packed[..., 0] = 0
    packed[..., 2] = 0
    return packed


def pack_dependent_maps(dependent_maps: Dict[TextureRole, str], manifest: MaterialManifest) -> Optional[ImageObject]:
# Combines buffered metalness/roughness maps into one texture:
#   metalness + roughness  > R: 0, G: roughness, B: metalness
#   roughness only         > roughness RGB with red and blue zeroed
#   metalness only         > error, not a valid material
#   neither                > nothing to pack

    metalness_path: Optional[str] = dependent_maps.get(TextureRole.METALNESS)
    roughness_path: Optional[str] = dependent_maps.get(TextureRole.ROUGHNESS)

    if metalness_path and roughness_path:
        manifest.add(METAL_MANIFEST_LINE, ROUGH_MANIFEST_LINE)

        metalness_image: ImageObject = open_image(metalness_path)
        roughness_image: ImageObject = open_image(roughness_path)

        if get_size(metalness_image) != get_size(roughness_image):
            raise DimensionMismatchError(
                f"Metal texture requires matching image sizes: '{metalness_path}' {describe_size(get_size(metalness_image))}, "
                f"'{roughness_path}' {describe_size(get_size(roughness_image))}")

        packed_pixels = fuse_metal_roughness(convert_to_grayscale(metalness_image), convert_to_grayscale(roughness_image))
        return DecodedImage(packed_pixels)
    # Metal material.

    if roughness_path:
        manifest.add(ROUGH_MANIFEST_LINE)
        return DecodedImage(isolate_roughness(convert_to_rgb(open_image(roughness_path))))
    # Rough material.

    if metalness_path:
        raise IncompleteMaterialError(f"Metalness image '{metalness_path}' without roughness map.")

    return None




#                                              === Pipeline ===

def _normalized(path: str) -> str:
    return os.path.normcase(os.path.abspath(path))


def _claim_output(context: MaterialContext, target_path: str, producer: str) -> None:
# Registers an output file; two producers writing the same file is an error instead of a silent overwrite.

    output_key: str = _normalized(target_path)
    previous_producer: Optional[str] = context.claimed_outputs.get(output_key)
    if previous_producer is not None:
        raise DuplicateOutputError(f"'{producer}' and '{previous_producer}' both map to '{os.path.basename(target_path)}'")
    context.claimed_outputs[output_key] = producer


def _bake_single_texture(texture_file: CandidateFile, image_bake: RoleBake, context: MaterialContext) -> str:
# Writes an independent texture under its canonical name, converting its pixel encoding if needed.

    target_path: str = output_path(context.work_directory, image_bake.rename)
    _claim_output(context, target_path, texture_file.path)
    context.manifest.add(*image_bake.config_lines)

    image: ImageObject = open_image(texture_file.path)
    corrected_image: Optional[ImageObject] = normalize_color(image, image_bake.required_encoding)

    if corrected_image is None:
        rename_file(texture_file.path, target_path)
    else:
        save_image(corrected_image, target_path)
        if _normalized(texture_file.path) != _normalized(target_path):
            context.schedule_delete(texture_file.path)
        if SHOW_DETAILS:
            log(f"Converted {texture_file.filename} {get_encoding(image).name} > {get_encoding(corrected_image).name}", "info")
    return target_path


def materialize_directory(extract_directory: str) -> str:
# Turns an extracted texture archive into a material folder; returns the final folder path.
# Raises a MaterializerError subclass on failure; stray filesystem errors surface as UnderlyingIOError.

    try:
        return _materialize_directory(extract_directory)
    except OSError as error:
        raise UnderlyingIOError(f"Failed to materialize '{extract_directory}': {error}") from error


def _materialize_directory(extract_directory: str) -> str:
    work_directory: str = os.path.abspath(extract_directory)
    context = MaterialContext(work_directory=work_directory, manifest=MaterialManifest(BASE_MANIFEST_LINE))


# Scanning the folder, removing the thumbnail and computing the shared prefix:
    scan_result: ScanResult = scan_extract_directory(work_directory)
    texture_files: List[CandidateFile] = resolve_texture_files(scan_result, context)


# Classifying every file; dependent maps are buffered until all files are seen:
    for texture_file in texture_files:
        processing_method: Optional[ProcessingMethod] = classify_suffix(texture_file.suffix)

        if processing_method is None:
            context.schedule_delete(texture_file.path)
            if SHOW_DETAILS:
                log(f"Discarding '{texture_file.filename}' (unknown suffix '{texture_file.suffix}')", "skip")
            continue
        # Extraneous map types, e.g., NormalDX.

        if isinstance(processing_method, DependentRole):
            if processing_method.role in context.dependent_maps:
                raise DuplicateOutputError(f"Two {processing_method.role.value} maps: '{context.dependent_maps[processing_method.role]}', '{texture_file.path}'")
            context.dependent_maps[processing_method.role] = texture_file.path
            context.schedule_delete(texture_file.path)
            continue

        _bake_single_texture(texture_file, processing_method, context)


# Packing dependent maps:
    packed_texture: Optional[ImageObject] = pack_dependent_maps(context.dependent_maps, context.manifest)
    if packed_texture is not None:
        packed_path: str = output_path(work_directory, PACKED_TEXTURE_NAME)
        _claim_output(context, packed_path, "channel packing")
        save_image(packed_texture, packed_path)


# Writing the manifest and removing used sources:
    manifest_path: str = write_manifest(work_directory, context.manifest)
    _claim_output(context, manifest_path, "material manifest")

    remove_files(path for path in context.files_to_delete if _normalized(path) not in context.claimed_outputs)
    # Outputs can replace a file scheduled for deletion, e.g., an archive that already shipped a "color.png".


# Renaming the folder:
    finished_name: str = finalize_directory_name(os.path.basename(work_directory), context.thumbnail_name_length)
    return rename_directory(work_directory, finished_name)




#                                              === Archives ===

def process_archive(archive_path: str) -> ArchiveOutcome:
# Extracts and materializes one archive. Runs in worker processes, so errors are returned, not raised.

    try:
        extract_directory: str = extract_archive(archive_path)
        material_directory: str = materialize_directory(extract_directory)
    except MaterializerError as error:
        return ArchiveOutcome(archive_path=archive_path, error=f"{type(error).__name__}: {error}")
    return ArchiveOutcome(archive_path=archive_path, material_directory=material_directory)


def _failed_outcome(archive_path: str, error: Exception) -> ArchiveOutcome:
    return ArchiveOutcome(archive_path=archive_path, error=f"{type(error).__name__}: {error}")


def _resolve_worker_count(max_workers: Optional[int], archive_count: int) -> int:
    workers: int = MAX_WORKERS if max_workers is None else max_workers
    if workers <= 0:
        workers = os.cpu_count() or 1
    return max(1, min(workers, archive_count))


def process_archives(archive_paths: Sequence[str], max_workers: Optional[int] = None, show_progress: bool = True) -> List[ArchiveOutcome]:
# Processes archives in parallel; a failing archive never stops the others.
# Returns one outcome per archive, in the order of archive_paths.

    archive_paths = list(archive_paths)
    if not archive_paths:
        return []

    workers: int = _resolve_worker_count(max_workers, len(archive_paths))
    outcomes: Dict[int, ArchiveOutcome] = {}

    progress_columns = (TextColumn("{task.description}"), BarColumn(), MofNCompleteColumn(), TimeElapsedColumn())
    with Progress(*progress_columns, disable=not show_progress) as progress:
        task_id = progress.add_task("Materializing", total=len(archive_paths))

        if workers <= 1:
            for index, archive_path in enumerate(archive_paths):
                try:
                    outcomes[index] = process_archive(archive_path)
                except Exception as error:  # noqa: BLE001
                    outcomes[index] = _failed_outcome(archive_path, error)
                progress.advance(task_id)
        else:
            with ProcessPoolExecutor(max_workers=workers) as executor:
                future_map = {executor.submit(process_archive, archive_path): index for index, archive_path in enumerate(archive_paths)}
                for future in as_completed(future_map):
                    index = future_map[future]
                    try:
                        outcomes[index] = future.result()
                    except Exception as error:  # noqa: BLE001
                        outcomes[index] = _failed_outcome(archive_paths[index], error)
                    progress.advance(task_id)

    return [outcomes[index] for index in range(len(archive_paths))]


def report_outcomes(outcomes: Sequence[ArchiveOutcome]) -> None:
# Prints one line per archive, in the order the archives were listed.

    for index, outcome in enumerate(outcomes):
        archive_name: str = os.path.basename(outcome.archive_path)
        if outcome.ok:
            details = f" > {outcome.material_directory}" if SHOW_DETAILS else ""
            log(f"{index}\t[  OK  ] {archive_name}{details}", "complete")
        else:
            log(f"{index}\t[FAILED] {archive_name}\n\t Error: {outcome.error}", "error")


def confirm_extraction(read_answer: Optional[Callable[[str], str]] = None) -> bool:
# Asks for Y/N; anything that does not start with "y" declines.

    try:
        answer: str = (read_answer or input)("Continue? (Y/N): ")
    except EOFError:
        return False
    return answer.strip()[:1].lower() == "y"




#                                         === CLI entry point ===

def main() -> None:
    cli_arg = " ".join(sys.argv[1:]).strip() or None
    # Allows a CLI path to override INPUT_FOLDER; falls back to the current directory.
    input_folder = (cli_arg or INPUT_FOLDER or os.getcwd()).strip()
    if not os.path.isdir(input_folder):
        log(f"Aborted: No valid input folder provided (CLI/config): '{input_folder}'", "error")
        # Prints error.
        sys.exit(1)

    archive_paths: List[str] = list_zip_archives(input_folder)
    if not archive_paths:
        log(f"No .zip archives found in: {os.path.abspath(input_folder)}", "info")
        return

    log("The following zip archives will be extracted:", "info")
    for index, archive_path in enumerate(archive_paths):
        log(f"{index} \t- {os.path.basename(archive_path)}", "info")

    if CONFIRM_EXTRACTION and not confirm_extraction():
        log("Aborted by user.", "skip")
        return


    start_time = time.time()
    outcomes: List[ArchiveOutcome] = process_archives(archive_paths)
    report_outcomes(outcomes)

    failed_count: int = sum(1 for outcome in outcomes if not outcome.ok)
    log("", "info")  # Visual separator
    if failed_count:
        log(f"{failed_count} of {len(outcomes)} archives failed.", "warn")
    else:
        log("All processing done.", "complete")

    if SHOW_DETAILS:
        elapsed_time = time.time() - start_time
        log(f"Execution time: {elapsed_time:.2f} seconds", "info")

    if failed_count:
        sys.exit(1)

if __name__ == "__main__":
    main()
