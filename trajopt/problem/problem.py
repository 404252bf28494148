import numpy as np

from ..exceptions import PreconditionError, ShapeError, UnknownChannelError
from ..utilities import approx_derivative, as_row
from .parameters import ProblemParameters


class Bounds:
    """
    Lower and upper bounds on a scalar variable. A variable with
    `lower == upper` is fixed. Bounds are not checked for consistency until the
    problem is transcribed.

    Parameters
    ----------
    lower : float, default=-inf
        Lower bound.
    upper : float, default=inf
        Upper bound.
    """
    def __init__(self, lower=-np.inf, upper=np.inf):
        self.lower = float(lower)
        self.upper = float(upper)

    @classmethod
    def make(cls, value, argname='bounds'):
        """
        Convert the shorthand used to declare bounds into a `Bounds` instance.

        Parameters
        ----------
        value : {None, float, (float, float), `Bounds`}
            `None` for no bounds, a single number (or one-element sequence) for
            a fixed value, or a `(lower, upper)` pair.
        argname : str, default='bounds'
            How to refer to `value` in error messages.

        Returns
        -------
        bounds : `Bounds`
        """
        if value is None:
            return cls()
        if isinstance(value, Bounds):
            return cls(value.lower, value.upper)
        if np.ndim(value) == 0:
            return cls(value, value)
        value = np.reshape(value, (-1,))
        if value.shape[0] == 1:
            return cls(value[0], value[0])
        if value.shape[0] == 2:
            return cls(value[0], value[1])
        raise TypeError(f"{argname} must be None, a float, or a (lower, upper) "
                        f"pair")

    @property
    def is_fixed(self):
        """bool. `True` if `lower == upper`."""
        return self.lower == self.upper

    def __iter__(self):
        return iter((self.lower, self.upper))

    def __eq__(self, other):
        if not isinstance(other, Bounds):
            return NotImplemented
        return self.lower == other.lower and self.upper == other.upper

    def __repr__(self):
        return f"Bounds(lower={self.lower!r}, upper={self.upper!r})"


class OptimalControlProblem:
    """
    Template superclass defining an optimal control problem (OCP) in terms of
    named states and controls, their bounds, the system dynamics, optional
    algebraic path constraints, and integral and endpoint costs.

    Subclasses declare the problem's variables in `__init__`, after calling
    `super().__init__`, using `set_time`, `add_state`, `add_control`, and
    `add_path_constraint`. They must implement `dynamics`, and can implement
    `integral_cost`, `endpoint_cost`, and `path_constraints`. If neither cost
    is implemented, the total cost is zero and solving the problem amounts to
    finding a feasible trajectory.

    All problem functions are evaluated on many time points at once: the
    columns of their arguments are different time points, and each column of
    the output must depend only on the corresponding column of the inputs. The
    functions must not have side effects, since solvers evaluate them out of
    temporal order and at perturbed inputs to approximate derivatives.
    """
    # Dicts of default problem parameters, separated into required and
    # optional parameters. To be overwritten by subclass implementations.
    _required_parameters = {}
    _optional_parameters = {}
    # Finite difference method for default gradient and Jacobian
    # approximations
    _fin_diff_method = '3-point'

    def __init__(self, **problem_parameters):
        """
        Parameters
        ----------
        problem_parameters : dict, default={}
            Parameters specifying the dynamics, costs, and constraints. If
            empty, defaults defined by the subclass will be used.
        """
        self._initial_time = Bounds(0., 0.)
        self._final_time = Bounds(1., 1.)
        self._states = dict()
        self._controls = dict()
        self._path_constraints = dict()

        problem_parameters = {**self._required_parameters,
                              **self._optional_parameters,
                              **problem_parameters}
        # type(self) is used here in case subclass implementations forget to
        # make _parameter_update_fun a staticmethod.
        self.parameters = ProblemParameters(
            required=self._required_parameters.keys(),
            update_fun=type(self)._parameter_update_fun)
        """`ProblemParameters`. Dynamics, cost, and constraint parameters."""
        self.parameters.update(**problem_parameters)

    @staticmethod
    def _parameter_update_fun(obj, **new_params):
        """
        Performs operations on `self.parameters` during initialization and each
        time `self.parameters.update` is called. This is used for checking
        parameter shapes and performing other needed calculations.

        Parameters
        ----------
        obj : `ProblemParameters`
            In standard use, `obj` refers to `self.parameters`.
        **new_params : dict
            Parameters which are being set or changing.
        """
        pass

    # Declarations ------------------------------------------------------------

    def set_time(self, initial=0., final=1.):
        """
        Set the bounds on the initial and final time. Each can be fixed, by
        passing a single number, or free within a `(lower, upper)` interval.

        Parameters
        ----------
        initial : {float, (float, float), `Bounds`}, default=0.
            Initial time bounds.
        final : {float, (float, float), `Bounds`}, default=1.
            Final time bounds.
        """
        self._initial_time = Bounds.make(initial, 'initial')
        self._final_time = Bounds.make(final, 'final')

    def add_state(self, name, bounds=None, initial_bounds=None,
                  final_bounds=None):
        """
        Declare a state variable. States are ordered by declaration.

        Parameters
        ----------
        name : str
            Unique name of the state.
        bounds : {None, float, (float, float), `Bounds`}, optional
            Bounds on the state over the whole time horizon. Unbounded by
            default.
        initial_bounds : {None, float, (float, float), `Bounds`}, optional
            Bounds on the state at the initial time, replacing `bounds` there.
            Pass a single number to fix the initial value.
        final_bounds : {None, float, (float, float), `Bounds`}, optional
            Bounds on the state at the final time, replacing `bounds` there.
        """
        self._add_variable(self._states, name, bounds, initial_bounds,
                           final_bounds)

    def add_control(self, name, bounds=None, initial_bounds=None,
                    final_bounds=None):
        """
        Declare a control variable. Controls are ordered by declaration. See
        `add_state` for parameter descriptions.
        """
        self._add_variable(self._controls, name, bounds, initial_bounds,
                           final_bounds)

    def add_path_constraint(self, name, bounds=0.):
        """
        Declare an algebraic path constraint,
        `lower <= path_constraints(t, x, u)[i] <= upper`, enforced at every time
        point. Path constraints are ordered by declaration and must be
        evaluated by `path_constraints`.

        Parameters
        ----------
        name : str
            Unique name of the path constraint.
        bounds : {float, (float, float), `Bounds`}, default=0.
            Bounds on the constraint function. The default is an equality
            constraint, `path_constraints(t, x, u)[i] == 0`.
        """
        name = _check_name(name)
        if name in self._path_constraints:
            raise ValueError(f"Path constraint {name} already exists.")
        self._path_constraints[name] = Bounds.make(bounds, 'bounds')

    def _add_variable(self, variables, name, bounds, initial_bounds,
                      final_bounds):
        name = _check_name(name)
        if name in self._states or name in self._controls:
            raise ValueError(f"Variable {name} already exists.")

        bounds = Bounds.make(bounds, 'bounds')
        if initial_bounds is None:
            initial_bounds = bounds
        if final_bounds is None:
            final_bounds = bounds

        variables[name] = (bounds,
                           Bounds.make(initial_bounds, 'initial_bounds'),
                           Bounds.make(final_bounds, 'final_bounds'))

    # Problem metadata --------------------------------------------------------

    @property
    def state_names(self):
        """list of str. Names of the states in declaration order."""
        return list(self._states)

    @property
    def control_names(self):
        """list of str. Names of the controls in declaration order."""
        return list(self._controls)

    @property
    def path_constraint_names(self):
        """list of str. Names of the path constraints in declaration order."""
        return list(self._path_constraints)

    @property
    def n_states(self):
        """int. The number of system states."""
        return len(self._states)

    @property
    def n_controls(self):
        """int. The number of control inputs to the system."""
        return len(self._controls)

    @property
    def n_path_constraints(self):
        """int. The number of path constraints."""
        return len(self._path_constraints)

    @property
    def time_bounds(self):
        """(`Bounds`, `Bounds`). Bounds on the initial and final time."""
        return Bounds.make(self._initial_time), Bounds.make(self._final_time)

    @property
    def state_bounds(self):
        """((`n_states`,) array, (`n_states`,) array). Lower and upper bounds
        on the states over the whole time horizon."""
        return _stack_bounds(self._states.values(), 0)

    @property
    def initial_state_bounds(self):
        """((`n_states`,) array, (`n_states`,) array). Lower and upper bounds
        on the states at the initial time."""
        return _stack_bounds(self._states.values(), 1)

    @property
    def final_state_bounds(self):
        """((`n_states`,) array, (`n_states`,) array). Lower and upper bounds
        on the states at the final time."""
        return _stack_bounds(self._states.values(), 2)

    @property
    def control_bounds(self):
        """((`n_controls`,) array, (`n_controls`,) array). Lower and upper
        bounds on the controls over the whole time horizon."""
        return _stack_bounds(self._controls.values(), 0)

    @property
    def initial_control_bounds(self):
        """((`n_controls`,) array, (`n_controls`,) array). Lower and upper
        bounds on the controls at the initial time."""
        return _stack_bounds(self._controls.values(), 1)

    @property
    def final_control_bounds(self):
        """((`n_controls`,) array, (`n_controls`,) array). Lower and upper
        bounds on the controls at the final time."""
        return _stack_bounds(self._controls.values(), 2)

    @property
    def path_constraint_bounds(self):
        """((`n_path_constraints`,) array, (`n_path_constraints`,) array).
        Lower and upper bounds on the path constraint functions."""
        return _stack_bounds(((b,) for b in self._path_constraints.values()),
                             0)

    @property
    def has_integral_cost(self):
        """bool. `True` if the subclass implements `integral_cost`."""
        return (type(self).integral_cost
                is not OptimalControlProblem.integral_cost)

    @property
    def has_endpoint_cost(self):
        """bool. `True` if the subclass implements `endpoint_cost`."""
        return (type(self).endpoint_cost
                is not OptimalControlProblem.endpoint_cost)

    # Initial guesses ---------------------------------------------------------

    def set_state_guess(self, guess, name, values):
        """
        Set the guess for one state trajectory. If `guess.states` is empty, it
        is first resized to `(n_states, guess.time.size)` with zeros. If it
        already has rows labelled by `guess.state_names`, they are reordered to
        match `self.state_names`. Afterwards `guess.state_names` is
        `self.state_names`.

        Parameters
        ----------
        guess : `Iterate`
            The guess to modify. `guess.time` must already be set.
        name : str
            Name of the state.
        values : (n_points,) array
            Values of the state at each of the times `guess.time`.

        Raises
        ------
        PreconditionError
            If `guess.time` is empty.
        ShapeError
            If `values` doesn't have one element per time point, or
            `guess.states` is not empty and has the wrong shape.
        UnknownChannelError
            If the problem has no state called `name`, or `guess.state_names`
            is set and contains different names than the problem.
        """
        self._set_guess(guess, 'state', name, values)

    def set_control_guess(self, guess, name, values):
        """
        Set the guess for one control trajectory. If `guess.controls` is empty,
        it is first resized to `(n_controls, guess.time.size)` with zeros, and
        existing labelled rows are reordered to match `self.control_names`. See
        `set_state_guess` for details.
        """
        self._set_guess(guess, 'control', name, values)

    def _set_guess(self, guess, kind, name, values):
        n_t = guess.time.shape[0]
        if n_t == 0:
            raise PreconditionError("guess.time is empty")

        values = as_row(values)
        if values.shape[0] != n_t:
            raise ShapeError(f"Expected value to have {n_t} elements, but it "
                             f"has {values.shape[0]}.")

        names = getattr(self, f'{kind}_names')
        if name not in names:
            raise UnknownChannelError(f"{kind.capitalize()} {name} does not "
                                      f"exist.")

        table = f'{kind}s'
        expected_shape = (len(names), n_t)
        if getattr(guess, table).size == 0:
            setattr(guess, table, np.zeros(expected_shape))
        elif getattr(guess, table).shape != expected_shape:
            raise ShapeError(f"Expected guess.{table} to have shape "
                             f"{expected_shape}, but it has shape "
                             f"{getattr(guess, table).shape}.")
        else:
            # Existing rows which are already labelled are put in the
            # problem's order rather than relabelled
            guess_names = getattr(guess, f'{kind}_names')
            if guess_names and guess_names != names:
                if sorted(guess_names) != sorted(names):
                    raise UnknownChannelError(
                        f"Expected guess.{kind}_names to be a permutation of "
                        f"{names}, but got {guess_names}.")
                order = [guess_names.index(n) for n in names]
                setattr(guess, table, getattr(guess, table)[order])

        setattr(guess, f'{kind}_names', names)
        getattr(guess, table)[names.index(name)] = values

    # Problem functions -------------------------------------------------------

    def dynamics(self, t, x, u):
        """
        Evaluate the system dynamics at one or more time instances.

        Parameters
        ----------
        t : (n_points,) array
            Time points.
        x : (n_states, n_points) array
            States arranged by (dimension, time).
        u : (n_controls, n_points) array
            Controls arranged by (dimension, time).

        Returns
        -------
        dxdt : (n_states, n_points) array
            System dynamics $dx/dt = f(t, x, u)$ evaluated at each time point.
        """
        raise NotImplementedError

    def jac(self, t, x, u, return_dfdx=True, return_dfdu=True, f0=None):
        """
        Evaluate the Jacobians of the dynamics $df/dx (t,x,u)$ and
        $df/du (t,x,u)$ at one or more time instances. Default implementation
        approximates the Jacobians with finite differences.

        Parameters
        ----------
        t : (n_points,) array
            Time points.
        x : (n_states, n_points) array
            States arranged by (dimension, time).
        u : (n_controls, n_points) array
            Controls arranged by (dimension, time).
        return_dfdx : bool, default=True
            If `True`, compute the Jacobian with respect to states.
        return_dfdu : bool, default=True
            If `True`, compute the Jacobian with respect to controls.
        f0 : (n_states, n_points) array, optional
            Dynamics evaluated at (`t`, `x`, `u`).

        Returns
        -------
        dfdx : (n_states, n_states, n_points) array
            State Jacobians evaluated at each time point.
        dfdu : (n_states, n_controls, n_points) array
            Control Jacobians evaluated at each time point.
        """
        if f0 is None:
            f0 = self.dynamics(t, x, u)

        if return_dfdx:
            dfdx = approx_derivative(lambda x: self.dynamics(t, x, u), x,
                                     f0=f0, method=self._fin_diff_method)
            if not return_dfdu:
                return dfdx

        if return_dfdu:
            dfdu = approx_derivative(lambda u: self.dynamics(t, x, u), u,
                                     f0=f0, method=self._fin_diff_method)
            if not return_dfdx:
                return dfdu

        return dfdx, dfdu

    def integral_cost(self, t, x, u):
        """
        Evaluate the integrand of the integral cost, $L(t, x, u)$, at one or
        more time instances. Optional.

        Parameters
        ----------
        t : (n_points,) array
            Time points.
        x : (n_states, n_points) array
            States arranged by (dimension, time).
        u : (n_controls, n_points) array
            Controls arranged by (dimension, time).

        Returns
        -------
        L : (n_points,) array
            Integral cost integrand evaluated at each time point.
        """
        raise NotImplementedError

    def integral_cost_grad(self, t, x, u, L0=None):
        """
        Evaluate the gradients of the integral cost integrand, $dL/dx$ and
        $dL/du$, at one or more time instances. Default implementation
        approximates these with finite differences.

        Parameters
        ----------
        t : (n_points,) array
            Time points.
        x : (n_states, n_points) array
            States arranged by (dimension, time).
        u : (n_controls, n_points) array
            Controls arranged by (dimension, time).
        L0 : (n_points,) array, optional
            Integral cost integrand evaluated at (`t`, `x`, `u`).

        Returns
        -------
        dLdx : (n_states, n_points) array
            State gradients evaluated at each time point.
        dLdu : (n_controls, n_points) array
            Control gradients evaluated at each time point.
        """
        if L0 is None:
            L0 = self.integral_cost(t, x, u)

        dLdx = approx_derivative(lambda x: self.integral_cost(t, x, u), x,
                                 f0=L0, method=self._fin_diff_method)
        dLdu = approx_derivative(lambda u: self.integral_cost(t, x, u), u,
                                 f0=L0, method=self._fin_diff_method)

        return dLdx, dLdu

    def endpoint_cost(self, tf, xf):
        """
        Evaluate the endpoint cost $E(t_f, x(t_f))$. Optional.

        Parameters
        ----------
        tf : float
            Final time.
        xf : (n_states,) array
            State at the final time.

        Returns
        -------
        E : float
            Endpoint cost.
        """
        raise NotImplementedError

    def endpoint_cost_grad(self, tf, xf, E0=None):
        """
        Evaluate the gradient of the endpoint cost with respect to the final
        state, $dE/dx_f$. Default implementation approximates this with finite
        differences.

        Parameters
        ----------
        tf : float
            Final time.
        xf : (n_states,) array
            State at the final time.
        E0 : float, optional
            Endpoint cost evaluated at (`tf`, `xf`).

        Returns
        -------
        dEdx : (n_states,) array
            Gradient of the endpoint cost.
        """
        return approx_derivative(lambda xf: self.endpoint_cost(tf, xf), xf,
                                 f0=E0, method=self._fin_diff_method)

    def path_constraints(self, t, x, u):
        """
        Evaluate the path constraint functions at one or more time instances.
        Must be implemented if any path constraints are declared.

        Parameters
        ----------
        t : (n_points,) array
            Time points.
        x : (n_states, n_points) array
            States arranged by (dimension, time).
        u : (n_controls, n_points) array
            Controls arranged by (dimension, time).

        Returns
        -------
        g : (n_path_constraints, n_points) array
            Path constraint functions evaluated at each time point, in the
            order they were declared.
        """
        raise NotImplementedError

    def path_constraints_jac(self, t, x, u, g0=None):
        """
        Evaluate the Jacobians of the path constraints, $dg/dx$ and $dg/du$, at
        one or more time instances. Default implementation approximates these
        with finite differences.

        Parameters
        ----------
        t : (n_points,) array
            Time points.
        x : (n_states, n_points) array
            States arranged by (dimension, time).
        u : (n_controls, n_points) array
            Controls arranged by (dimension, time).
        g0 : (n_path_constraints, n_points) array, optional
            Path constraints evaluated at (`t`, `x`, `u`).

        Returns
        -------
        dgdx : (n_path_constraints, n_states, n_points) array
            State Jacobians evaluated at each time point.
        dgdu : (n_path_constraints, n_controls, n_points) array
            Control Jacobians evaluated at each time point.
        """
        if g0 is None:
            g0 = self.path_constraints(t, x, u)

        dgdx = approx_derivative(lambda x: self.path_constraints(t, x, u), x,
                                 f0=g0, method=self._fin_diff_method)
        dgdu = approx_derivative(lambda u: self.path_constraints(t, x, u), u,
                                 f0=g0, method=self._fin_diff_method)

        return dgdx, dgdu


def _check_name(name):
    if not isinstance(name, str) or not name:
        raise TypeError("name must be a non-empty str")
    return name


def _stack_bounds(variables, which):
    lb, ub = [], []
    for bounds in variables:
        lb.append(bounds[which].lower)
        ub.append(bounds[which].upper)
    return np.array(lb, dtype=float), np.array(ub, dtype=float)
