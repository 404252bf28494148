"""
Exceptions raised by `trajopt`. All of these are local and synchronous: the
caller is expected to fix the offending input and try again.
"""


class PreconditionError(RuntimeError):
    """An operation was called before one of its prerequisites was met, e.g.
    setting a guess before the guess's time points."""


class ShapeError(ValueError):
    """Array dimensions do not match. The message always contains both the
    expected and the actual sizes."""


class UnknownChannelError(LookupError):
    """A state, control, or path constraint name was not declared by the
    problem."""


class OrderError(ValueError):
    """A sequence which must be monotonic is not."""


class BoundsError(ValueError):
    """A lower bound is greater than the corresponding upper bound."""


class SolveFailure(RuntimeError):
    """The NLP backend did not converge. The best-effort `Solution` is attached
    as the `solution` attribute."""
    def __init__(self, message, solution=None):
        super().__init__(message)
        self.solution = solution
