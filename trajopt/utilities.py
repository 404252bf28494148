import numpy as np
from scipy.optimize import _numdiff


_fin_diff_methods = ('2-point', '3-point', 'cs')


def check_int_input(n, argname, low=None):
    """
    Convert an input to an int, raising errors if this is not possible without
    likely loss of information or if the int is less than a specified minimum.

    Parameters
    ----------
    n : array_like, size 1
        Input to check.
    argname : str
        How to refer to the argument `n` in error messages.
    low : int, optional
        Minimum value which `n` should take.

    Raises
    ------
    TypeError
        If `n` or `low` is not an int or integer array_like of size 1.
    ValueError
        If `n < low`.

    Returns
    -------
    n : int
        Input `n` converted to an int, if possible.
    """
    if not isinstance(argname, str):
        raise TypeError("argname must be a str")

    n = _as_int(n, argname)

    if low is not None:
        low = _as_int(low, 'low')
        if n < low:
            raise ValueError(f"{argname} must be greater than or equal to "
                             f"{low:d}")

    return n


def _as_int(n, argname):
    n = np.asarray(n)
    if n.size != 1 or not np.can_cast(n.dtype, np.int64, casting='safe'):
        raise TypeError(f"{argname} must be an int")
    return int(n.reshape(()))


def as_row(values, argname='values'):
    """
    Flatten an array_like of real numbers into a 1d float array.

    Parameters
    ----------
    values : array_like
        Values to flatten. Must contain only real numbers.
    argname : str, default='values'
        How to refer to `values` in error messages.

    Returns
    -------
    row : 1d float array
        Copy of `values` with shape `(np.size(values),)`.
    """
    try:
        return np.array(values, dtype=float).reshape(-1)
    except (TypeError, ValueError):
        raise TypeError(f"{argname} must be an array_like of real numbers")


def approx_derivative(fun, x0, method='3-point', rel_step=None, f0=None,
                      args=(), kwargs={}):
    """
    Finite difference approximation of the derivatives of an array-valued
    function, optionally at many input points at once.

    If `x0` is 2d, each column is an independent input point and `fun` must act
    on the columns of its argument independently, as the problem functions of
    an `OptimalControlProblem` do. One perturbed evaluation of `fun` then
    yields a derivative column at every point.

    Parameters
    ----------
    fun : callable
        Function to differentiate, `fun(x, *args, **kwargs)`. For `x` with
        shape `(n,)` it returns a float or an array with shape
        `(m_1, ..., m_l)`. For `x` with shape `(n, n_points)` it returns an
        array with shape `(n_points,)` or `(m_1, ..., m_l, n_points)`.
    x0 : (n,) or (n, n_points) array
        Point(s) at which to approximate the derivatives.
    method : {'3-point', '2-point', 'cs'}, default='3-point'
        Central differences, forward differences, or complex step. The complex
        step method is only valid if `fun` can be analytically continued to
        the complex plane.
    rel_step : float, optional
        Relative step size. Steps are computed by
        `scipy.optimize._numdiff._compute_absolute_step`: by default the step
        in the `i`th input is `eps * sign(x0[i]) * max(1, abs(x0[i]))`, with
        `eps` the cube root of machine epsilon for '3-point' and its square
        root otherwise. If `rel_step` is given, the step is
        `rel_step * sign(x0[i]) * abs(x0[i])`, falling back to the default
        where this would be zero.
    f0 : array_like, optional
        `fun(x0)`, if already known.
    args, kwargs : tuple and dict, optional
        Additional arguments passed to `fun`.

    Returns
    -------
    dfdx : (n,), (n, n_points), (m_1, ..., m_l, n), or \
            (m_1, ..., m_l, n, n_points) array
        Derivatives of each output with respect to each input. The input
        dimension follows the output dimensions, and is itself followed by the
        point dimension if `x0` is 2d.

    Raises
    ------
    ValueError
        If `method` is not recognized.
    """
    if method not in _fin_diff_methods:
        raise ValueError(f"Unknown method '{method}'. Valid options are "
                         f"{', '.join(map(repr, _fin_diff_methods))}")

    x0 = np.atleast_1d(np.asarray(x0, dtype=float))

    def f(x):
        return np.asarray(fun(x, *args, **kwargs))

    if f0 is None:
        f0 = f(x0)
    else:
        f0 = np.asarray(f0)

    if x0.shape[0] == 0:
        if x0.ndim < 2:
            return np.zeros(f0.shape + (0,))
        return np.zeros(f0.shape[:-1] + (0,) + f0.shape[-1:])

    h = _numdiff._compute_absolute_step(rel_step, x0, f0, method)
    # Round to a step which is exactly representable at x0
    h = (x0 + h) - x0

    dfdx = []
    for i in range(x0.shape[0]):
        dx = np.zeros_like(x0)
        dx[i] = h[i]

        if method == '2-point':
            dfdx.append((f(x0 + dx) - f0) / h[i])
        elif method == '3-point':
            x1, x2 = x0 - dx, x0 + dx
            dfdx.append((f(x2) - f(x1)) / (x2[i] - x1[i]))
        else:
            dfdx.append(f(x0 + 1j * dx).imag / h[i])

    return np.stack(dfdx, axis=-1 if x0.ndim < 2 else -2)
