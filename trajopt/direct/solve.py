import enum

import numpy as np

from trajopt.iterate import Solution
from trajopt.utilities import check_int_input
from . import setup_nlp
from ._optimize import minimize


__all__ = ['SolverState', 'DirectCollocationSolver']


class SolverState(enum.Enum):
    """Lifecycle of a `DirectCollocationSolver`."""
    UNSOLVED = 'unsolved'
    VALIDATING = 'validating'
    TRANSCRIBED = 'transcribed'
    SOLVING = 'solving'
    CONVERGED = 'converged'
    FAILED = 'failed'


class DirectCollocationSolver:
    """
    Compute the open-loop optimal solution of an optimal control problem with
    a direct collocation method.

    The optimal control problem is transcribed into a nonlinear program (NLP)
    by discretizing the states and controls on a grid of `n_nodes` evenly
    spaced time points and enforcing the dynamics with collocation defect
    constraints (see `setup_nlp`). The NLP is then solved with a gradient-based
    optimizer from `scipy.optimize`. The transcription is built on the first
    call to `solve` and reused by subsequent calls.

    Parameters
    ----------
    ocp : `OptimalControlProblem`
        The optimal control problem to solve.
    scheme : {'trapezoidal'}, default='trapezoidal'
        Collocation scheme.
    backend : {'slsqp', 'trust-constr'}, default='slsqp'
        NLP solver. 'slsqp' is sequential least squares quadratic programming,
        which works with dense matrices and is suited to small problems.
        'trust-constr' is a trust-region interior point method which exploits
        the sparsity of the constraint Jacobian.
    n_nodes : int, default=32
        Number of time points in the collocation grid. Must be at least 2.
    tol : float, default=1e-08
        Convergence tolerance for the NLP solver.
    max_iter : int, default=500
        Maximum number of NLP solver iterations.
    max_gradient : float, default=1.
        The NLP objective is scaled so that its gradient at the initial guess
        has no component larger than `max_gradient` in magnitude. Set to
        `np.inf` to disable scaling.
    verbose : {0, 1, 2}, default=0
        Level of algorithm's verbosity:

            * 0 (default) : work silently.
            * 1 : display a termination report.
            * 2 : display progress during iterations.
    """
    def __init__(self, ocp, scheme='trapezoidal', backend='slsqp', n_nodes=32,
                 tol=1e-08, max_iter=500, max_gradient=1., verbose=0):
        self.ocp = ocp
        self.scheme = scheme
        self.backend = backend
        self.n_nodes = check_int_input(n_nodes, 'n_nodes')
        self.tol = max(float(tol), np.finfo(float).eps)
        self.max_iter = check_int_input(max_iter, 'max_iter', low=1)
        self.max_gradient = float(max_gradient)
        self.verbose = int(verbose)

        self._transcription = None
        self._state = SolverState.UNSOLVED

    @property
    def state(self):
        """`SolverState`. Stage the most recent call to `solve` has reached."""
        return self._state

    @property
    def transcription(self):
        """`TrapezoidalTranscription`. The NLP transcription of the problem,
        built on first access."""
        if self._transcription is None:
            self._transcription = setup_nlp.make_transcription(
                self.ocp, self.n_nodes, scheme=self.scheme)
        return self._transcription

    def make_guess_from_bounds(self):
        """
        Construct an initial guess on the collocation grid from the problem's
        bounds. See `TrapezoidalTranscription.make_guess_from_bounds`.

        Returns
        -------
        guess : `Iterate`
            Initial guess with `n_nodes` time points.
        """
        return self.transcription.make_guess_from_bounds()

    def solve(self, guess=None):
        """
        Solve the optimal control problem.

        Parameters
        ----------
        guess : `Iterate`, optional
            Initial guess, with rows in the order of the problem's states and
            controls. If it does not have `n_nodes` time points, it is linearly
            interpolated onto `n_nodes` evenly spaced time points. If not
            provided, a guess is constructed from the problem's bounds using
            `make_guess_from_bounds`.

        Returns
        -------
        sol : `Solution`
            Solution on the collocation grid, including the termination status
            of the NLP solver. Should only be trusted if `sol.success`.

        Raises
        ------
        ShapeError
            If the guess is incompatible with the problem, or `n_nodes < 2`.
        BoundsError
            If any of the problem's bounds are inconsistent.
        ValueError
            If `scheme` or `backend` is not recognized.
        """
        self._state = SolverState.VALIDATING
        try:
            if guess is not None:
                guess.validate(self.ocp)

            transcription = self.transcription
            if guess is None:
                guess = transcription.make_guess_from_bounds()
            elif guess.n_points != self.n_nodes:
                guess = guess.interpolate(self.n_nodes, k=1)
            z0 = transcription.guess_to_vars(guess)
        except Exception:
            self._state = SolverState.FAILED
            raise

        self._state = SolverState.TRANSCRIBED

        if self.verbose:
            print(f"\nNumber of collocation nodes: {self.n_nodes}")
            print(f"Number of NLP variables: {transcription.n_vars}")
            print(f"Number of NLP constraints: {transcription.n_constraints}")
            print("-" * 80)

        self._state = SolverState.SOLVING
        try:
            res = minimize(transcription.objective_and_grad, z0,
                           transcription.lb, transcription.ub,
                           constr_fun=transcription.constraints,
                           constr_jac=transcription.constraints_jac,
                           constr_lb=transcription.constraint_lb,
                           constr_ub=transcription.constraint_ub,
                           jac_sparsity=transcription.jac_sparsity,
                           backend=self.backend, tol=self.tol,
                           max_iter=self.max_iter,
                           max_gradient=self.max_gradient,
                           verbose=self.verbose)
        except Exception:
            self._state = SolverState.FAILED
            raise

        iterate = transcription.make_iterate(res.x)
        sol = Solution(iterate.time, iterate.states, iterate.controls,
                       iterate.state_names, iterate.control_names,
                       res.status, message=res.message, objective=res.fun,
                       n_iter=res.n_iter)

        if sol.success:
            self._state = SolverState.CONVERGED
        else:
            self._state = SolverState.FAILED

        if self.verbose:
            sol.check_convergence(verbose=True)

        return sol
