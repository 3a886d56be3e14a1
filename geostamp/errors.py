from __future__ import annotations


class GeostampError(Exception):
    """Base class for geostamp failures."""


class AssetLoadError(GeostampError):
    """A decorative asset (map tile, flag, icon) could not be fetched or decoded.

    The compositor recovers from it locally with a placeholder; it never
    reaches the caller of a render.
    """

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{reason}: {url}")
        self.url = url
        self.reason = reason


class PreconditionViolation(GeostampError, ValueError):
    """Required render input is missing or invalid (caller error)."""


class DecodeError(GeostampError):
    """The source photo could not be read."""
