import numpy as np

from trajopt.problem import OptimalControlProblem


class _DoubleIntegrator(OptimalControlProblem):
    """Base class for moving a unit mass from rest at `x = 0` to rest at
    `x = xf`, with dynamics `dx/dt = v`, `dv/dt = u`."""
    def dynamics(self, t, x, u):
        return np.concatenate((x[1:], u[:1]), axis=0)

    def jac(self, t, x, u, return_dfdx=True, return_dfdu=True, f0=None):
        n_t = np.shape(x)[1]

        dfdx = np.zeros((2, 2, n_t))
        dfdx[0, 1] = 1.

        dfdu = np.zeros((2, 1, n_t))
        dfdu[1, 0] = 1.

        if not return_dfdu:
            return dfdx
        if not return_dfdx:
            return dfdu
        return dfdx, dfdu


class MinimumEffortDoubleIntegrator(_DoubleIntegrator):
    """
    Minimize the control effort `int u ** 2 dt` over the fixed time horizon
    `[0, tf]`, subject to the speed limit `v <= v_max`. Without an active speed
    limit, the continuous time solution is
    `u(t) = 6 xf / tf ** 2 * (1 - 2 t / tf)` with optimal cost
    `12 xf ** 2 / tf ** 3`.
    """
    _required_parameters = {'xf': 1., 'tf': 1.}
    _optional_parameters = {'v_max': 2.}

    def __init__(self, **problem_parameters):
        super().__init__(**problem_parameters)

        p = self.parameters
        self.set_time(initial=0., final=p.tf)
        self.add_state('x', initial_bounds=0., final_bounds=p.xf)
        self.add_state('v', initial_bounds=0., final_bounds=0.)
        self.add_control('u')
        self.add_path_constraint('speed', bounds=(-np.inf, p.v_max))

    def integral_cost(self, t, x, u):
        return u[0] ** 2

    def integral_cost_grad(self, t, x, u, L0=None):
        return np.zeros_like(x), 2. * u

    def path_constraints(self, t, x, u):
        return x[1:]


class MinimumTimeDoubleIntegrator(_DoubleIntegrator):
    """
    Reach `x = xf` at rest in minimum time with a bounded control,
    `|u| <= u_max`. The final time is free, and the continuous time solution
    is bang-bang with final time `2 sqrt(xf / u_max)`.
    """
    _required_parameters = {'xf': 1., 'u_max': 1.}
    _optional_parameters = {'tf_lb': 0.1, 'tf_ub': 10.}

    def __init__(self, **problem_parameters):
        super().__init__(**problem_parameters)

        p = self.parameters
        self.set_time(initial=0., final=(p.tf_lb, p.tf_ub))
        self.add_state('x', initial_bounds=0., final_bounds=p.xf)
        self.add_state('v', initial_bounds=0., final_bounds=0.)
        self.add_control('u', bounds=(-p.u_max, p.u_max))

    def endpoint_cost(self, tf, xf):
        return tf

    def endpoint_cost_grad(self, tf, xf, E0=None):
        return np.zeros_like(xf, dtype=float)
