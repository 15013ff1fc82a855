"""Error hierarchy for mdmapper.

Every public error class inherits from :class:`MdMapperError`.  Each
carries a machine-readable ``code`` (from :class:`ErrorCode`), a
human-readable ``message``, an optional structured ``context`` dict, and an
optional ``cause`` (chained exception).

Malformed Markdown is *never* reported through these classes: the parser
degrades it to the closest well-defined block and records a
:class:`~mdmapper.models.ConversionWarning` instead.  The errors below are
reserved for programmer mistakes (wrong argument types, corrupted block
trees, unknown block types on the wire).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error mdmapper can raise."""

    INVALID_INPUT = "INVALID_INPUT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNSUPPORTED_BLOCK = "UNSUPPORTED_BLOCK"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class MdMapperError(Exception):
    """Base exception for all mdmapper errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Concrete errors
# ---------------------------------------------------------------------------

class MdMapperInputError(MdMapperError):
    """An argument had the wrong type (e.g. ``parse_markdown(None)``).

    Context keys: ``argument``, ``expected``, ``actual``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.INVALID_INPUT,
            message=message,
            context=context,
            cause=cause,
        )


class MdMapperValidationError(MdMapperError):
    """A block tree violates a structural invariant.

    Raised by :func:`~mdmapper.validation.validate_blocks` and when a wire
    dict cannot be turned into a :class:`~mdmapper.models.Block`.

    Context keys: ``block_id``, ``index``, ``rule``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class MdMapperUnsupportedBlockError(MdMapperError):
    """A block type outside the closed :class:`~mdmapper.models.BlockType` set.

    Context keys: ``block_type``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.UNSUPPORTED_BLOCK,
            message=message,
            context=context,
            cause=cause,
        )
