from __future__ import annotations


class FramecastError(Exception):
    pass


class ConfigError(FramecastError, ValueError):
    pass


class OutputPathError(FramecastError, OSError):
    """Raised when the output directory cannot be created or accessed.

    Subclasses ``OSError`` so callers catching ``IOError`` see it too.
    """


class EncodeError(FramecastError, RuntimeError):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class EncodeCancelled(EncodeError):
    pass
