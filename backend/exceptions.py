""" Errors raised while materializing a texture set. Each one is fatal for the directory being processed. """


class MaterializerError(Exception):
    """Base error for a directory that could not be materialized."""


class InvalidFileNameError(MaterializerError):
    """A file name in the extracted directory is not valid UTF-8."""


class UnexpectedSubdirectoryError(MaterializerError):
    """The extracted directory contains a subdirectory."""


class UnsupportedExtensionError(MaterializerError):
    """The file is not in the accepted raster format."""


class NoEligibleFilesError(MaterializerError):
    """No texture files are left to process."""


class DimensionMismatchError(MaterializerError):
    """Maps packed into one texture have different sizes."""


class IncompleteMaterialError(MaterializerError):
    """A metalness map was found without a roughness map."""


class DuplicateOutputError(MaterializerError):
    """Two source textures would be written to the same output file."""


class UnderlyingIOError(MaterializerError):
    """Filesystem or image codec failure."""


class ImageDecodeError(UnderlyingIOError):
    """The image codec could not read a file."""


class ExtractDirectoryError(MaterializerError):
    """The archive cannot be extracted because its target directory is taken."""
