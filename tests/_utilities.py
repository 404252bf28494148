import numpy as np

from trajopt import Iterate
from trajopt.utilities import approx_derivative


def compare_finite_difference(x, jac, fun, method='3-point',
                              rtol=1e-06, atol=1e-12):
    expected_jac = approx_derivative(fun, x, method=method)
    np.testing.assert_allclose(jac, expected_jac, rtol=rtol, atol=atol)


def make_random_iterate(n_points, n_states, n_controls, seed=None):
    """Generate an `Iterate` with sorted random time points and random states
    and controls, named `x0, x1, ...` and `u0, u1, ...`."""
    rng = np.random.default_rng(seed)

    t = np.sort(rng.uniform(high=10., size=n_points))
    x = rng.normal(size=(n_states, n_points))
    u = rng.normal(size=(n_controls, n_points))

    return Iterate(t, x, u, [f'x{i}' for i in range(n_states)],
                   [f'u{i}' for i in range(n_controls)])


def make_guess(ocp, n_points, t1=1., **values):
    """Build an initial guess on `n_points` evenly spaced time points in
    `[0, t1]` by setting each named state and control to the given values.
    Unspecified channels are zero."""
    guess = Iterate(np.linspace(0., t1, n_points))
    for name in ocp.state_names:
        ocp.set_state_guess(guess, name, values.get(name, np.zeros(n_points)))
    for name in ocp.control_names:
        ocp.set_control_guess(guess, name,
                              values.get(name, np.zeros(n_points)))
    return guess
