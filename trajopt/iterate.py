import enum

import numpy as np
import pandas as pd
from scipy.interpolate import make_interp_spline

from .exceptions import (OrderError, ShapeError, SolveFailure,
                         UnknownChannelError)
from .utilities import check_int_input


class SolverStatus(enum.Enum):
    """Reason an NLP backend terminated."""
    CONVERGED = 'converged'
    ITERATION_LIMIT = 'iteration-limit'
    INFEASIBLE = 'infeasible'
    ERROR = 'error'


class Iterate:
    """
    Trajectory of an optimal control problem sampled on a time grid: the time
    points, the states and controls at those times, and the names of the state
    and control channels. An `Iterate` is used both as the initial guess for a
    solver and, through the `Solution` subclass, as its output.

    Parameters
    ----------
    time : (n_points,) array, optional
        Time points, which should be non-decreasing. Empty if not provided.
    states : (n_states, n_points) array, optional
        States arranged by (channel, time). If not provided, defaults to an
        array with no rows and as many columns as `time`.
    controls : (n_controls, n_points) array, optional
        Controls arranged by (channel, time). If not provided, defaults to an
        array with no rows and as many columns as `time`.
    state_names : list of str, optional
        Names of the rows of `states`.
    control_names : list of str, optional
        Names of the rows of `controls`.
    """
    def __init__(self, time=None, states=None, controls=None, state_names=None,
                 control_names=None):
        self.time = time
        if states is None:
            states = np.zeros((0, self.time.shape[0]))
        if controls is None:
            controls = np.zeros((0, self.time.shape[0]))
        self.states = states
        self.controls = controls
        self.state_names = state_names
        self.control_names = control_names

    @property
    def time(self):
        """(n_points,) array. Time points of the trajectory."""
        return self._time

    @time.setter
    def time(self, time):
        if time is None:
            time = []
        self._time = np.array(time, dtype=float).reshape(-1)

    @property
    def states(self):
        """(n_states, n_points) array. States arranged by (channel, time)."""
        return self._states

    @states.setter
    def states(self, states):
        self._states = _as_table(states, 'states')

    @property
    def controls(self):
        """(n_controls, n_points) array. Controls arranged by (channel, time).
        """
        return self._controls

    @controls.setter
    def controls(self, controls):
        self._controls = _as_table(controls, 'controls')

    @property
    def state_names(self):
        """list of str. Names of the state channels, in row order."""
        return list(self._state_names)

    @state_names.setter
    def state_names(self, names):
        self._state_names, self._state_index = _make_index(names, 'state')

    @property
    def control_names(self):
        """list of str. Names of the control channels, in row order."""
        return list(self._control_names)

    @control_names.setter
    def control_names(self, names):
        self._control_names, self._control_index = _make_index(names,
                                                               'control')

    @property
    def state_index(self):
        """dict. Maps each state name to its row in `states`."""
        return dict(self._state_index)

    @property
    def control_index(self):
        """dict. Maps each control name to its row in `controls`."""
        return dict(self._control_index)

    @property
    def n_points(self):
        """int. Number of time points."""
        return self._time.shape[0]

    @property
    def n_states(self):
        """int. Number of rows in `states`."""
        return self._states.shape[0]

    @property
    def n_controls(self):
        """int. Number of rows in `controls`."""
        return self._controls.shape[0]

    def get_state(self, name):
        """Get a copy of the row of `states` named `name`."""
        try:
            return np.copy(self._states[self._state_index[name]])
        except KeyError:
            raise UnknownChannelError(f"State {name} does not exist.")

    def get_control(self, name):
        """Get a copy of the row of `controls` named `name`."""
        try:
            return np.copy(self._controls[self._control_index[name]])
        except KeyError:
            raise UnknownChannelError(f"Control {name} does not exist.")

    def copy(self):
        """Return a deep copy of the iterate as a plain `Iterate`."""
        return Iterate(np.copy(self.time), np.copy(self.states),
                       np.copy(self.controls), self.state_names,
                       self.control_names)

    def _check_columns(self):
        n_t = self.time.shape[0]
        n_x, n_u = self.states.shape[1], self.controls.shape[1]
        if not n_t == n_x == n_u:
            raise ShapeError(f"Expected time, states, and controls to have the "
                             f"same number of columns (they have {n_t}, {n_x}, "
                             f"{n_u} columns, respectively).")

    def validate(self, ocp):
        """
        Check that the iterate's dimensions are compatible with an optimal
        control problem. The checks are performed in the order listed below.

        Parameters
        ----------
        ocp : `OptimalControlProblem`
            The problem the iterate will be used with.

        Raises
        ------
        ShapeError
            If `time`, `states`, and `controls` don't have the same number of
            columns, if `states` doesn't have `ocp.n_states` rows, or if
            `controls` doesn't have `ocp.n_controls` rows.
        UnknownChannelError
            If the iterate's state or control names are set and are not the
            problem's names in the problem's order. Unnamed rows are assumed
            to already be in the problem's order.
        """
        self._check_columns()

        for table, n_rows in (('states', ocp.n_states),
                              ('controls', ocp.n_controls)):
            n_rows_actual = getattr(self, table).shape[0]
            if n_rows_actual != n_rows:
                raise ShapeError(f"Expected {table} to have {n_rows} rows, but "
                                 f"it has {n_rows_actual} rows.")

        for kind, names in (('state', ocp.state_names),
                            ('control', ocp.control_names)):
            names_actual = getattr(self, f'{kind}_names')
            if names_actual and names_actual != names:
                raise UnknownChannelError(f"Expected {kind} names {names}, "
                                          f"but got {names_actual}.")

    def interpolate(self, n_points, k=3):
        """
        Resample the iterate onto `n_points` evenly spaced time points spanning
        `time[0]` to `time[-1]`. Each state and control is interpolated as a
        function of time with a B-spline of degree `k`.

        Interpolation is exact at the original time points: any new time point
        which coincides with an original one gets the original values. Hence
        requesting `n_points == self.n_points` returns an unchanged copy, and
        upsampling onto a grid which contains the original one and then
        downsampling back recovers the original iterate.

        Parameters
        ----------
        n_points : int
            Number of time points in the resampled iterate. Must be positive.
        k : int, default=3
            Degree of the interpolating spline. The default is a cubic spline
            with not-a-knot end conditions; `k=1` is linear interpolation. If
            there are fewer than `k + 1` distinct time points, the degree is
            reduced to the number of distinct time points minus one.

        Returns
        -------
        iterate : `Iterate`
            New iterate with `n_points` columns and the same channel names.

        Raises
        ------
        OrderError
            If `time` is decreasing anywhere. Repeated time points are allowed,
            in which case the last sample at that time is used.
        ShapeError
            If `time`, `states`, and `controls` don't have the same number of
            columns.
        """
        if np.any(np.diff(self.time) < 0.):
            raise OrderError("Expected time to be non-decreasing")

        n_points = check_int_input(n_points, 'n_points', low=1)
        k = check_int_input(k, 'k', low=1)

        self._check_columns()
        if self.n_points == 0:
            raise ShapeError("Expected time to have at least 1 element, but it "
                             "has 0.")

        if n_points == self.n_points:
            return self.copy()

        time = np.linspace(self.time[0], self.time[-1], n_points)

        return Iterate(time, _resample(self.time, self.states, time, k),
                       _resample(self.time, self.controls, time, k),
                       self.state_names, self.control_names)

    def write(self, filepath):
        """
        Save the iterate to a csv file which can be loaded with `Iterate.read`.
        The file starts with the lines `num_states=<n_states>` and
        `num_controls=<n_controls>`, followed by a table with columns `time`,
        the state names, and the control names, and one row per time point.

        Parameters
        ----------
        filepath : path-like
            Where the csv file should be saved. Overwritten if it exists.

        Raises
        ------
        ShapeError
            If the tables don't have matching columns, or there isn't exactly
            one name per row of `states` and `controls`.
        ValueError
            If a state and a control share a name, or either is named `time`,
            since the csv columns could then not be told apart.
        """
        self._check_columns()

        for table, names in (('states', self._state_names),
                             ('controls', self._control_names)):
            n_rows = getattr(self, table).shape[0]
            if len(names) != n_rows:
                raise ShapeError(f"Expected {n_rows} names for {table}, but "
                                 f"got {len(names)}.")

        columns = ['time'] + self.state_names + self.control_names
        if len(set(columns)) != len(columns):
            raise ValueError(f"Expected unique column names, but got "
                             f"{columns}. States and controls can't share a "
                             f"name or be called 'time'.")

        data = np.vstack((self.time.reshape(1, -1), self.states,
                          self.controls)).T
        data = pd.DataFrame(data, columns=columns)

        with open(filepath, 'w', newline='') as fh:
            fh.write(f"num_states={self.n_states:d}\n")
            fh.write(f"num_controls={self.n_controls:d}\n")
            data.to_csv(fh, index=False)

    @classmethod
    def read(cls, filepath):
        """
        Load an iterate from a csv file created by `Iterate.write`.

        Parameters
        ----------
        filepath : path-like
            Path to the csv file.

        Returns
        -------
        iterate : `Iterate`
            The deserialized iterate.
        """
        with open(filepath, 'r', newline='') as fh:
            n_states = _parse_metadata(fh.readline(), 'num_states')
            n_controls = _parse_metadata(fh.readline(), 'num_controls')
            data = pd.read_csv(fh, float_precision='round_trip')

        columns = list(data.columns)
        if len(columns) != 1 + n_states + n_controls or columns[0] != 'time':
            raise ValueError(f"Expected columns 'time' followed by {n_states} "
                             f"states and {n_controls} controls, but got "
                             f"columns {columns}")

        state_names = columns[1:1 + n_states]
        control_names = columns[1 + n_states:]

        data = data.to_numpy(dtype=float).T

        return Iterate(data[0], data[1:1 + n_states], data[1 + n_states:],
                       state_names, control_names)


class Solution(Iterate):
    """
    Solution of an optimal control problem returned by a solver. In addition to
    the trajectory, this contains the backend's termination status.

    Parameters
    ----------
    time, states, controls, state_names, control_names
        See `Iterate`.
    status : `SolverStatus`
        Reason for solver termination.
    message : str, default=''
        Human-readable description of `status`, as reported by the backend.
    objective : float, default=nan
        Objective function value at the returned trajectory.
    n_iter : int, default=0
        Number of iterations performed by the backend.
    """
    def __init__(self, time, states, controls, state_names, control_names,
                 status, message='', objective=np.nan, n_iter=0):
        super().__init__(time, states, controls, state_names, control_names)
        self.status = SolverStatus(status)
        """`SolverStatus`. Reason for solver termination."""
        self.message = str(message)
        """str. Human-readable description of `status`."""
        self.objective = float(objective)
        """float. Objective function value at the returned trajectory."""
        self.n_iter = int(n_iter)
        """int. Number of iterations performed by the backend."""

    @property
    def success(self):
        """bool. `True` if the backend converged."""
        return self.status is SolverStatus.CONVERGED

    def check_convergence(self, raise_error=False, verbose=False):
        """
        Check whether the solution converged.

        Parameters
        ----------
        raise_error : bool, default=False
            If `True`, raise a `SolveFailure` if the solution did not converge.
        verbose : bool, default=False
            Set `verbose=True` to print out the results.

        Returns
        -------
        converged : bool
            `True` if `self.status` is `SolverStatus.CONVERGED`.

        Raises
        ------
        SolveFailure
            If `raise_error=True` and the solution did not converge. The
            solution is attached to the exception.
        """
        if self.success:
            if verbose:
                print(f"Solution converged after {self.n_iter:d} iterations: "
                      f"objective = {self.objective:1.6e}")
            return True

        message = (f"Solution failed to converge: status = "
                   f"{self.status.value}: {self.message}")
        if verbose:
            print(message)
        if raise_error:
            raise SolveFailure(message, solution=self)
        return False


def _as_table(values, argname):
    if values is None:
        return np.zeros((0, 0))
    values = np.array(values, dtype=float)
    if values.ndim == 1:
        values = values.reshape(1, -1)
    if values.ndim != 2:
        raise ShapeError(f"Expected {argname} to have 2 dimensions, but it has "
                         f"{values.ndim}.")
    return values


def _make_index(names, kind):
    if names is None:
        names = []
    elif isinstance(names, str):
        names = [names]
    names = [str(name) for name in names]
    index = {name: i for i, name in enumerate(names)}
    if len(index) != len(names):
        raise ValueError(f"{kind} names must be unique, but got {names}")
    return names, index


def _resample(t, y, t_new, k):
    """Interpolate the rows of `y(t)` at times `t_new` with a degree `k`
    spline, returning the original values where `t_new` hits `t` exactly."""
    y_new = np.empty((y.shape[0], t_new.shape[0]))
    if y.shape[0] == 0:
        return y_new

    # Keep the last sample at each repeated time point
    keep = np.append(t[1:] > t[:-1], True)
    t, y = t[keep], y[:, keep]

    k = min(k, t.shape[0] - 1)
    if k < 1:
        y_new[:] = y[:, -1:]
    else:
        y_new[:] = make_interp_spline(t, y, k=k, axis=-1)(t_new)

    idx = np.minimum(np.searchsorted(t, t_new), t.shape[0] - 1)
    on_knot = t[idx] == t_new
    y_new[:, on_knot] = y[:, idx[on_knot]]

    return y_new


def _parse_metadata(line, key):
    name, _, value = line.strip().partition('=')
    if name != key:
        raise ValueError(f"Expected metadata line '{key}=<int>', but got "
                         f"'{line.strip()}'")
    return check_int_input(int(value), key, low=0)
