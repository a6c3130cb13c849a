"""Formula errors. They never escape evaluate_formula."""

from typing import Optional


class FormulaError(Exception):
    """A formula could not be evaluated."""
    pass


class FormulaSyntaxError(FormulaError):
    """A formula could not be parsed."""

    def __init__(self, message: str, position: Optional[int] = None):
        self.position = position
        if position is not None:
            message = f"{message} (at {position})"
        super().__init__(message)
