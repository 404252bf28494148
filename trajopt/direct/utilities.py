import numpy as np


def collect_vars(x, u, time_vars=()):
    """
    Gather separate state and control matrices arranged by (dimension, time),
    plus any free time variables, into a single 1d array for optimization. The
    states and controls at each time point are stored contiguously, one time
    point after the other, and the time variables come last.

    Parameters
    ----------
    x : (n_states, n_nodes) array
        States arranged by (dimension, time).
    u : (n_controls, n_nodes) array
        Controls arranged by (dimension, time).
    time_vars : (n_time_vars,) array, default=()
        Free initial and/or final time, in that order.

    Returns
    -------
    z : 1d array
        Array containing `x`, `u`, and `time_vars`, with
        `z[:-n_time_vars] == vstack((x, u)).flatten(order='F')`.
    """
    x = np.reshape(x, (np.shape(x)[0], -1))
    xu = np.vstack((x, np.reshape(u, (np.shape(u)[0], x.shape[1]))))
    return np.concatenate((xu.reshape(-1, order='F'),
                           np.reshape(time_vars, (-1,))))


def separate_vars(z, n_states, n_controls, n_nodes):
    """
    Given a single 1d array assembled using `collect_vars`, separate it into
    states, controls, and time variables.

    Parameters
    ----------
    z : 1d array
        Array containing states, controls, and free time variables. Must have
        `z.size >= (n_states + n_controls) * n_nodes`.
    n_states : int
        Number of states.
    n_controls : int
        Number of controls.
    n_nodes : int
        Number of time points.

    Returns
    -------
    x : (n_states, n_nodes) array
        States extracted from `z` arranged by (dimension, time).
    u : (n_controls, n_nodes) array
        Controls extracted from `z` arranged by (dimension, time).
    time_vars : (n_time_vars,) array
        The remaining entries of `z`.
    """
    n_xu = (n_states + n_controls) * n_nodes
    xu = z[:n_xu].reshape((n_states + n_controls, n_nodes), order='F')
    return xu[:n_states], xu[n_states:], z[n_xu:]


def midpoints(lb, ub, default=0.):
    """
    Pick a representative value inside each pair of bounds: the midpoint if
    both bounds are finite, `default` clipped to the bounds otherwise.

    Parameters
    ----------
    lb : array_like
        Lower bounds.
    ub : array_like
        Upper bounds, same shape as `lb`.
    default : float or array_like, default=0.
        Value to use where one or both of the bounds are infinite.

    Returns
    -------
    mid : array
        Array with the same shape as `lb`.
    """
    lb, ub = np.asarray(lb, dtype=float), np.asarray(ub, dtype=float)
    mid = np.clip(np.broadcast_to(default, lb.shape), lb, ub)
    finite = np.isfinite(lb) & np.isfinite(ub)
    mid[finite] = (lb[finite] + ub[finite]) / 2.
    return mid
