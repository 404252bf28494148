import numpy as np

from trajopt.problem import OptimalControlProblem


class FinalPositionLocalOptima(OptimalControlProblem):
    """
    Push a unit mass from rest at the origin so that it comes to rest again at
    time `t = 1`, minimizing a small control effort penalty plus the endpoint
    cost
    ```
    E(x) = endpoint_weight * (x - 1) * (x + 1) * x ** 2
    ```
    on the final position. The endpoint cost has two global minima at
    `x = +/- 1 / sqrt(2)`, so which one the solver finds depends on the initial
    guess.
    """
    _required_parameters = {'effort_weight': 0.001, 'endpoint_weight': 100.}
    _optional_parameters = {'x_max': 1.5, 'v_max': 10., 'F_max': 50.}

    def __init__(self, **problem_parameters):
        super().__init__(**problem_parameters)

        p = self.parameters
        self.set_time(initial=0., final=1.)
        self.add_state('x', bounds=(-p.x_max, p.x_max), initial_bounds=0.)
        self.add_state('v', bounds=(-p.v_max, p.v_max), initial_bounds=0.,
                       final_bounds=0.)
        self.add_control('F', bounds=(-p.F_max, p.F_max))

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

    def integral_cost(self, t, x, u):
        return self.parameters.effort_weight * u[0] ** 2

    def integral_cost_grad(self, t, x, u, L0=None):
        dLdx = np.zeros_like(x)
        dLdu = 2. * self.parameters.effort_weight * u
        return dLdx, dLdu

    def endpoint_cost(self, tf, xf):
        return self.parameters.endpoint_weight * (xf[0] ** 4 - xf[0] ** 2)

    def endpoint_cost_grad(self, tf, xf, E0=None):
        dEdx = np.zeros_like(xf, dtype=float)
        dEdx[0] = self.parameters.endpoint_weight * (4. * xf[0] ** 3
                                                     - 2. * xf[0])
        return dEdx
