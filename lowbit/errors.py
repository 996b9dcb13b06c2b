"""
Exceptions raised by the block quantizers.

The scalar codecs never raise; every bit pattern is a valid input.
"""


class PrecisionError(Exception):
    """Base class for lowbit errors."""


class InvalidSizeError(PrecisionError, ValueError):
    """A quantization block was requested with an unusable element count."""


class AllocationFailureError(PrecisionError, MemoryError):
    """The code buffer for a block could not be allocated."""


class BlockReleasedError(PrecisionError, RuntimeError):
    """A block was used or destroyed after its buffer was released."""
