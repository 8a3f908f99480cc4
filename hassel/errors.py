from __future__ import annotations


class HasselError(Exception):
    """Base class for every error the compression core raises."""


class InvalidInput(HasselError):
    """The selected file is not an image. Raised before anything is decoded."""


class DecodeFailure(HasselError):
    """The source bytes could not be rasterized."""


class EncodingUnavailable(HasselError):
    """A rendering surface (or the requested codec) could not be set up."""


class MetadataServiceError(HasselError):
    """The external image-analysis call failed. Never touches compression state."""
