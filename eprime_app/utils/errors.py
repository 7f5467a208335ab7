"""
Exception types shared by the readers and the column calculator.

Column lookups that miss raise the builtin IndexError; everything else the
package raises derives from EprimeError.
"""


class EprimeError(Exception):
    """Base class for errors raised by eprime_app."""


class UnknownTypeError(EprimeError):
    """No reader recognises the input file."""


class DamagedFileError(EprimeError):
    """The input file is structurally broken (e.g. a frame never closes)."""


class ComputationError(EprimeError):
    """A derived column can't be registered or evaluated."""


class ExpressionError(EprimeError, ValueError):
    """Base for errors raised while parsing or evaluating an expression."""


class ExpressionParseError(ExpressionError):
    """The expression text is malformed."""

    def __init__(self, message: str, text: str = "", position: int = -1):
        self.text = text
        self.position = position
        if position >= 0:
            message = f"{message} at position {position} in {text!r}"
        super().__init__(message)


class EvaluationError(ExpressionError):
    """The expression parsed but can't be evaluated (bad operand types, division by zero)."""
