"""
`trajopt` is a direct collocation engine for trajectory optimization. Optimal
control problems are described by subclassing `OptimalControlProblem`, which
declares named states, controls, and path constraints together with their
bounds, and implements the dynamics and costs. Trajectories are represented by
`Iterate` objects, which are used both as initial guesses and, in the form of
`Solution`, as solver output. `DirectCollocationSolver` transcribes a problem
into a sparse nonlinear program and solves it with `scipy.optimize`.

##### Modules

* [`direct`](trajopt/direct):
    Trapezoidal collocation transcription and the solver driver.

* [`iterate`](trajopt/iterate):
    Trajectory containers with interpolation and csv serialization.

* [`problem`](trajopt/problem):
    Base class for defining optimal control problems.

* [`exceptions`](trajopt/exceptions):
    Errors raised by the package.

* [`utilities`](trajopt/utilities):
    Input checking and finite difference approximations.
"""

from ._version import __version__
from .iterate import Iterate, Solution, SolverStatus
from .problem import OptimalControlProblem, Bounds, ProblemParameters
from .direct import DirectCollocationSolver, SolverState
from .exceptions import (PreconditionError, ShapeError, UnknownChannelError,
                         OrderError, BoundsError, SolveFailure)
