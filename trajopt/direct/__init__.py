"""
This submodule implements a direct method for open-loop optimal control, based
on trapezoidal collocation on an evenly spaced time grid. The optimal control
problem is transcribed into a sparse nonlinear program (NLP), which is solved
with gradient-based optimizers from `scipy.optimize`.

##### Classes

* [`DirectCollocationSolver`](direct/solve#DirectCollocationSolver):
    Transcribe and solve a single open-loop OCP, starting from an initial
    guess `Iterate`.

* [`SolverState`](direct/solve#SolverState):
    Lifecycle stages of a `DirectCollocationSolver`.

##### Submodules

* [`setup_nlp`](direct/setup_nlp):
    Transcription of an `OptimalControlProblem` into NLP variable bounds,
    constraint bounds, objective, constraints, and their derivatives.

* [`utilities`](direct/utilities):
    Conversion between state and control matrices and NLP decision vectors.

##### References

1. J. T. Betts, *Practical Methods for Optimal Control and Estimation Using
    Nonlinear Programming*, 2nd ed., SIAM, 2010.
    https://doi.org/10.1137/1.9780898718577
2. M. Kelly, *An introduction to trajectory optimization: how to do your own
    direct collocation*, SIAM Review, 59 (2017), pp. 849-904.
    https://doi.org/10.1137/16M1062569
"""

from .solve import *
from .setup_nlp import make_transcription, TrapezoidalTranscription
