import numpy as np
from scipy import sparse

from trajopt.exceptions import BoundsError, ShapeError
from trajopt.iterate import Iterate
from trajopt.utilities import approx_derivative, check_int_input
from .utilities import collect_vars, separate_vars, midpoints


def make_transcription(ocp, n_nodes, scheme='trapezoidal'):
    """
    Transcribe an optimal control problem into a nonlinear program (NLP) on a
    grid of `n_nodes` evenly spaced time points.

    Parameters
    ----------
    ocp : `OptimalControlProblem`
        The optimal control problem to transcribe.
    n_nodes : int
        Number of grid points.
    scheme : {'trapezoidal'}, default='trapezoidal'
        Collocation scheme.

    Returns
    -------
    transcription : `TrapezoidalTranscription`
        Object providing the NLP's variable bounds, constraint bounds, and
        objective and constraint callbacks.
    """
    try:
        transcription = _schemes[scheme]
    except (KeyError, TypeError):
        raise ValueError(f"scheme = {scheme} is not recognized. Valid options "
                         f"are {', '.join(map(repr, _schemes))}")
    return transcription(ocp, n_nodes)


class TrapezoidalTranscription:
    """
    Trapezoidal direct collocation of an `OptimalControlProblem`.

    The time horizon `[t0, tf]` is divided into `n_nodes - 1` equal intervals.
    The decision variables are the states and controls at each grid point,
    followed by the initial and final time if these are free. The dynamics are
    enforced by the defect constraints
    ```
    x[:, k + 1] - x[:, k] - h / 2 * (f[:, k] + f[:, k + 1]) == 0
    ```
    for each interval `k`, where `h = (tf - t0) / (n_nodes - 1)` and `f` is the
    dynamics evaluated at each grid point. Path constraints are enforced at
    every grid point, after the defects. The objective is the trapezoidal
    quadrature of the integral cost plus the endpoint cost.

    Bounds on all variables are checked, and the sparsity structure of the
    constraint Jacobian is built, once on initialization.

    Parameters
    ----------
    ocp : `OptimalControlProblem`
        The optimal control problem to transcribe.
    n_nodes : int
        Number of grid points. Must be at least 2.

    Raises
    ------
    ShapeError
        If `n_nodes < 2`.
    BoundsError
        If any lower bound is greater than its upper bound, or the final time
        cannot be greater than the initial time.
    """
    def __init__(self, ocp, n_nodes):
        n_nodes = check_int_input(n_nodes, 'n_nodes')
        if n_nodes < 2:
            raise ShapeError(f"Expected at least 2 grid points for trapezoidal "
                             f"collocation, but got {n_nodes}.")

        self.ocp = ocp
        self.n_nodes = n_nodes
        self.n_states = ocp.n_states
        self.n_controls = ocp.n_controls
        self.n_path_constraints = ocp.n_path_constraints

        self.tau = np.linspace(0., 1., n_nodes)
        """(n_nodes,) array. Grid points normalized to [0, 1]."""
        self._dtau = np.diff(self.tau)
        self._weights = np.zeros(n_nodes)
        self._weights[:-1] += self._dtau / 2.
        self._weights[1:] += self._dtau / 2.

        initial_time, final_time = ocp.time_bounds
        self._time_bounds = (initial_time, final_time)
        self._free_time = (not initial_time.is_fixed,
                           not final_time.is_fixed)
        self.n_time_vars = sum(self._free_time)

        self.lb, self.ub = self._make_variable_bounds()
        self.constraint_lb, self.constraint_ub = self._make_constraint_bounds()

        self._jac_rows, self._jac_cols = self._make_jac_structure()

    @property
    def n_vars(self):
        """int. Number of NLP decision variables."""
        n_xu = (self.n_states + self.n_controls) * self.n_nodes
        return n_xu + self.n_time_vars

    @property
    def n_constraints(self):
        """int. Number of NLP constraints."""
        return (self.n_states * (self.n_nodes - 1)
                + self.n_path_constraints * self.n_nodes)

    @property
    def jac_sparsity(self):
        """(`n_constraints`, `n_vars`) sparse matrix. Structurally non-zero
        entries of the constraint Jacobian are equal to one."""
        return sparse.coo_matrix((np.ones(self._jac_rows.shape[0]),
                                  (self._jac_rows, self._jac_cols)),
                                 shape=(self.n_constraints, self.n_vars))

    def _make_variable_bounds(self):
        ocp = self.ocp
        n_t = self.n_nodes

        _check_bounds(*ocp.state_bounds, ocp.state_names, 'state')
        _check_bounds(*ocp.initial_state_bounds, ocp.state_names,
                      'initial value of state')
        _check_bounds(*ocp.final_state_bounds, ocp.state_names,
                      'final value of state')
        _check_bounds(*ocp.control_bounds, ocp.control_names, 'control')
        _check_bounds(*ocp.initial_control_bounds, ocp.control_names,
                      'initial value of control')
        _check_bounds(*ocp.final_control_bounds, ocp.control_names,
                      'final value of control')

        initial_time, final_time = self._time_bounds
        _check_bounds([initial_time.lower, final_time.lower],
                      [initial_time.upper, final_time.upper],
                      ['initial', 'final'], 'time')
        if final_time.upper <= initial_time.lower:
            raise BoundsError(f"Expected final time to be able to exceed the "
                              f"initial time (got final time <= "
                              f"{final_time.upper} and initial time >= "
                              f"{initial_time.lower}).")

        bounds = []
        for general, initial, final in (
                (ocp.state_bounds, ocp.initial_state_bounds,
                 ocp.final_state_bounds),
                (ocp.control_bounds, ocp.initial_control_bounds,
                 ocp.final_control_bounds)):
            lb = np.tile(general[0].reshape(-1, 1), (1, n_t))
            ub = np.tile(general[1].reshape(-1, 1), (1, n_t))
            lb[:, 0], ub[:, 0] = initial
            lb[:, -1], ub[:, -1] = final
            bounds.append((lb, ub))

        (x_lb, x_ub), (u_lb, u_ub) = bounds

        t_lb = [b.lower for b, free in zip(self._time_bounds, self._free_time)
                if free]
        t_ub = [b.upper for b, free in zip(self._time_bounds, self._free_time)
                if free]

        return collect_vars(x_lb, u_lb, t_lb), collect_vars(x_ub, u_ub, t_ub)

    def _make_constraint_bounds(self):
        g_lb, g_ub = self.ocp.path_constraint_bounds
        _check_bounds(g_lb, g_ub, self.ocp.path_constraint_names,
                      'path constraint')

        n_defects = self.n_states * (self.n_nodes - 1)
        lb = np.concatenate((np.zeros(n_defects), np.tile(g_lb, self.n_nodes)))
        ub = np.concatenate((np.zeros(n_defects), np.tile(g_ub, self.n_nodes)))
        return lb, ub

    def _make_jac_structure(self):
        """
        Row and column indices of the structurally non-zero constraint Jacobian
        entries, in the order in which `constraints_jac` generates their values.
        Defect `k` depends on the states and controls at grid points `k` and
        `k + 1`, which are contiguous in the decision vector, path constraints
        at grid point `k` depend on the states and controls at `k` only, and
        every constraint can depend on the free time variables.
        """
        n_x, n_g, n_t = self.n_states, self.n_path_constraints, self.n_nodes
        n_xu = n_x + self.n_controls

        k = np.arange(n_t - 1).reshape(-1, 1, 1)
        shape = (n_t - 1, n_x, 2 * n_xu)
        rows = [np.broadcast_to(k * n_x + np.arange(n_x).reshape(1, -1, 1),
                                shape)]
        cols = [np.broadcast_to(
            k * n_xu + np.arange(2 * n_xu).reshape(1, 1, -1), shape)]

        if n_g > 0:
            k = np.arange(n_t).reshape(-1, 1, 1)
            shape = (n_t, n_g, n_xu)
            n_defects = n_x * (n_t - 1)
            rows.append(np.broadcast_to(
                n_defects + k * n_g + np.arange(n_g).reshape(1, -1, 1), shape))
            cols.append(np.broadcast_to(
                k * n_xu + np.arange(n_xu).reshape(1, 1, -1), shape))

        if self.n_time_vars > 0:
            rows.append(np.repeat(np.arange(self.n_constraints),
                                  self.n_time_vars))
            cols.append(np.tile(n_xu * n_t + np.arange(self.n_time_vars),
                                self.n_constraints))

        rows = np.concatenate([r.reshape(-1) for r in rows])
        cols = np.concatenate([c.reshape(-1) for c in cols])
        return rows, cols

    def _unpack_time(self, time_vars):
        t0, tf = (b.lower for b in self._time_bounds)
        i = 0
        if self._free_time[0]:
            t0 = time_vars[i]
            i += 1
        if self._free_time[1]:
            tf = time_vars[i]
        return t0, tf

    def separate_vars(self, z):
        """Split a decision vector into states, controls, and time variables.
        See `utilities.separate_vars`."""
        return separate_vars(np.asarray(z), self.n_states, self.n_controls,
                             self.n_nodes)

    def times(self, z):
        """
        Compute the grid time points for a decision vector.

        Parameters
        ----------
        z : (`n_vars`,) array
            Decision vector.

        Returns
        -------
        t : (`n_nodes`,) array
            Time points, evenly spaced between the initial and final time.
        """
        t0, tf = self._unpack_time(self.separate_vars(z)[-1])
        return t0 + (tf - t0) * self.tau

    def objective(self, z):
        """Evaluate the NLP objective for the decision vector `z`."""
        return self._objective(*self.separate_vars(z))

    def objective_grad(self, z):
        """Evaluate the gradient of the NLP objective for the decision vector
        `z`."""
        return self.objective_and_grad(z)[1]

    def objective_and_grad(self, z):
        """
        Evaluate the NLP objective and its gradient.

        Parameters
        ----------
        z : (`n_vars`,) array
            Decision vector.

        Returns
        -------
        J : float
            Quadrature-integrated integral cost plus endpoint cost.
        dJdz : (`n_vars`,) array
            Gradient of `J` with respect to `z`.
        """
        ocp = self.ocp
        x, u, time_vars = self.separate_vars(z)
        t0, tf = self._unpack_time(time_vars)
        t = t0 + (tf - t0) * self.tau

        J = 0.
        dJdx = np.zeros_like(x)
        dJdu = np.zeros_like(u)

        if ocp.has_integral_cost:
            w = (tf - t0) * self._weights
            L = np.reshape(ocp.integral_cost(t, x, u), (-1,))
            dLdx, dLdu = ocp.integral_cost_grad(t, x, u, L0=L)
            J += np.dot(L, w)
            dJdx += np.reshape(dLdx, x.shape) * w
            dJdu += np.reshape(dLdu, u.shape) * w

        if ocp.has_endpoint_cost:
            E = _as_scalar(ocp.endpoint_cost(tf, x[:, -1]))
            J += E
            dJdx[:, -1] += np.reshape(
                ocp.endpoint_cost_grad(tf, x[:, -1], E0=E), (-1,))

        if self.n_time_vars > 0:
            dJdt = approx_derivative(lambda tv: self._objective(x, u, tv),
                                     time_vars, f0=J)
        else:
            dJdt = []

        return J, collect_vars(dJdx, dJdu, dJdt)

    def _objective(self, x, u, time_vars):
        ocp = self.ocp
        t0, tf = self._unpack_time(time_vars)

        J = 0.
        if ocp.has_integral_cost:
            t = t0 + (tf - t0) * self.tau
            L = np.reshape(ocp.integral_cost(t, x, u), (-1,))
            J += (tf - t0) * np.dot(L, self._weights)
        if ocp.has_endpoint_cost:
            J += _as_scalar(ocp.endpoint_cost(tf, x[:, -1]))
        return J

    def constraints(self, z):
        """
        Evaluate the NLP constraints: the defects, which must be zero, followed
        by the path constraints at each grid point.

        Parameters
        ----------
        z : (`n_vars`,) array
            Decision vector.

        Returns
        -------
        c : (`n_constraints`,) array
            Constraint values, to be kept between `constraint_lb` and
            `constraint_ub`.
        """
        return self._constraints(*self.separate_vars(z))[0]

    def _constraints(self, x, u, time_vars):
        ocp = self.ocp
        t0, tf = self._unpack_time(time_vars)
        t = t0 + (tf - t0) * self.tau
        h = (tf - t0) * self._dtau

        f = np.reshape(ocp.dynamics(t, x, u), x.shape)
        defects = x[:, 1:] - x[:, :-1] - h / 2. * (f[:, :-1] + f[:, 1:])
        c = [defects.reshape(-1, order='F')]

        g = None
        if self.n_path_constraints > 0:
            g = np.reshape(ocp.path_constraints(t, x, u),
                           (self.n_path_constraints, self.n_nodes))
            c.append(g.reshape(-1, order='F'))

        return np.concatenate(c), f, g

    def constraints_jac(self, z):
        """
        Evaluate the Jacobian of the NLP constraints. The sparsity structure is
        the same for every `z`, see `jac_sparsity`.

        Parameters
        ----------
        z : (`n_vars`,) array
            Decision vector.

        Returns
        -------
        dcdz : (`n_constraints`, `n_vars`) sparse csr matrix
            Constraint Jacobian.
        """
        ocp = self.ocp
        n_x, n_u = self.n_states, self.n_controls

        x, u, time_vars = self.separate_vars(z)
        t0, tf = self._unpack_time(time_vars)
        t = t0 + (tf - t0) * self.tau
        h = (tf - t0) * self._dtau

        c, f, g = self._constraints(x, u, time_vars)

        dfdx, dfdu = ocp.jac(t, x, u, f0=f)
        dfdz = np.concatenate((np.reshape(dfdx, (n_x, n_x, -1)),
                               np.reshape(dfdu, (n_x, n_u, -1))), axis=1)
        dfdz = np.moveaxis(dfdz, -1, 0)

        eye = np.hstack((np.eye(n_x), np.zeros((n_x, n_u))))
        half_h = (h / 2.).reshape(-1, 1, 1)
        blocks = np.concatenate((-eye - half_h * dfdz[:-1],
                                 eye - half_h * dfdz[1:]), axis=-1)
        data = [blocks.reshape(-1)]

        if self.n_path_constraints > 0:
            n_g = self.n_path_constraints
            dgdx, dgdu = ocp.path_constraints_jac(t, x, u, g0=g)
            dgdz = np.concatenate((np.reshape(dgdx, (n_g, n_x, -1)),
                                   np.reshape(dgdu, (n_g, n_u, -1))), axis=1)
            data.append(np.moveaxis(dgdz, -1, 0).reshape(-1))

        if self.n_time_vars > 0:
            dcdt = approx_derivative(
                lambda tv: self._constraints(x, u, tv)[0], time_vars, f0=c)
            data.append(np.reshape(dcdt, (-1,)))

        return sparse.csr_matrix((np.concatenate(data),
                                  (self._jac_rows, self._jac_cols)),
                                 shape=(self.n_constraints, self.n_vars))

    def guess_to_vars(self, guess):
        """
        Convert an initial guess into a decision vector.

        Parameters
        ----------
        guess : `Iterate`
            Initial guess with `n_nodes` time points, and rows in the order of
            the problem's states and controls. If the initial or final time is
            free, its guess is taken from `guess.time`.

        Returns
        -------
        z : (`n_vars`,) array
            Decision vector.
        """
        guess.validate(self.ocp)
        if guess.n_points != self.n_nodes:
            raise ShapeError(f"Expected guess to have {self.n_nodes} time "
                             f"points, but it has {guess.n_points}.")

        time_vars = [t for t, free in zip(guess.time[[0, -1]], self._free_time)
                     if free]

        return collect_vars(guess.states, guess.controls, time_vars)

    def make_iterate(self, z):
        """
        Convert a decision vector into an `Iterate` on the collocation grid.

        Parameters
        ----------
        z : (`n_vars`,) array
            Decision vector.

        Returns
        -------
        iterate : `Iterate`
        """
        x, u, _ = self.separate_vars(z)
        return Iterate(self.times(z), np.copy(x), np.copy(u),
                       self.ocp.state_names, self.ocp.control_names)

    def make_guess_from_bounds(self):
        """
        Construct an initial guess on the collocation grid from the problem's
        bounds. Each variable is set to the midpoint of its bounds, or zero
        clipped to the bounds if either is infinite. Initial and final bounds
        are used at the first and last grid point.

        Returns
        -------
        guess : `Iterate`
            Initial guess with `n_nodes` time points.
        """
        z = midpoints(self.lb, self.ub)

        initial_time, final_time = self._time_bounds
        t0 = midpoints(initial_time.lower, initial_time.upper)
        tf = midpoints(final_time.lower, final_time.upper, default=t0 + 1.)
        time_vars = [t for t, free in zip((t0, tf), self._free_time) if free]
        z[z.shape[0] - self.n_time_vars:] = time_vars

        return self.make_iterate(z)


def _check_bounds(lb, ub, names, description):
    lb, ub = np.reshape(lb, (-1,)), np.reshape(ub, (-1,))
    for i in np.flatnonzero(~(lb <= ub)):
        raise BoundsError(f"Expected lower bound <= upper bound for "
                          f"{description} {names[i]} (got {lb[i]} > {ub[i]}).")


def _as_scalar(value):
    return float(np.reshape(value, ()))


_schemes = {'trapezoidal': TrapezoidalTranscription}
