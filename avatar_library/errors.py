"""Errors raised by the avatar pipeline.

Every failure carries a numeric ``code`` identifying the stage that failed
and a human readable ``msg``. The codes are not a stable public contract;
they only let a client (or a log reader) tell the stages apart. The API
turns any of these into a ``{"code": ..., "msg": ...}`` envelope with
HTTP 400.
"""

from __future__ import annotations


class AvatarError(Exception):
    """Base class for all pipeline failures."""

    code: int = 10000

    def __init__(self, msg: str, code: int | None = None) -> None:
        super().__init__(msg)
        self.msg = msg
        if code is not None:
            self.code = code

    def with_code(self, code: int) -> "AvatarError":
        """Return the same error re-tagged with an endpoint specific code."""
        self.code = code
        return self


class UploadRejected(AvatarError):
    """Missing ``file`` field or an extension outside png/jpg/jpeg."""

    code = 10050


class UnsupportedFormat(AvatarError):
    """Input is neither a PNG nor a decodable JPEG."""

    code = 10001


class DecodeFailure(AvatarError):
    code = 10011


class AssetMissing(AvatarError):
    """A bundled image could not be found, read or decoded."""

    code = 10021


class EncodeFailure(AvatarError):
    code = 10032
