import pytest

import numpy as np

from trajopt.problem import OptimalControlProblem, Bounds, ProblemParameters

from ._problems import ocp_dict, NonlinearFiniteDifference
from ._utilities import compare_finite_difference


rng = np.random.default_rng()


class NoCosts(OptimalControlProblem):
    def __init__(self):
        super().__init__()
        self.add_state('x', bounds=(-1., 1.), final_bounds=(0., 0.5))
        self.add_state('y', bounds=2.)
        self.add_control('u', initial_bounds=(0., np.inf))

    def dynamics(self, t, x, u):
        return np.vstack((u, x[:1]))


@pytest.mark.parametrize('ocp_name', ocp_dict.keys())
def test_init(ocp_name):
    """Basic check that each OCP can be initialized and allows parameters to be
    updated as expected."""
    ocp = ocp_dict[ocp_name]()

    assert ocp.n_states
    assert ocp.n_controls
    assert ocp.n_states == len(ocp.state_names)
    assert ocp.n_controls == len(ocp.control_names)
    assert isinstance(ocp.parameters, ProblemParameters)

    for param in ocp.parameters.required:
        assert getattr(ocp.parameters, param) is not None

    # Check that problem parameters can be updated
    ocp.parameters.update(dummy_variable=False)
    assert not ocp.parameters.dummy_variable
    ocp.parameters.update(dummy_variable=True)
    assert ocp.parameters.dummy_variable
    assert ocp.parameters.as_dict()['dummy_variable']

    # Check that updating with nothing doesn't make any errors
    ocp.parameters.update()

    # Check that a new instance of the problem doesn't carry old parameters
    ocp2 = ocp_dict[ocp_name]()
    assert not hasattr(ocp2.parameters, 'dummy_variable')


def test_required_parameters():
    with pytest.raises(RuntimeError, match="effort_weight is required"):
        ocp_dict['final_position'](effort_weight=None)

    ocp = ocp_dict['final_position'](endpoint_weight=3.)
    assert ocp.parameters.endpoint_weight == 3.
    assert ocp.parameters.effort_weight == 0.001


def test_bounds_make():
    assert Bounds.make(None) == Bounds(-np.inf, np.inf)
    assert Bounds.make(2.) == Bounds(2., 2.)
    assert Bounds.make([3.]) == Bounds(3., 3.)
    assert Bounds.make((-1., 4.)) == Bounds(-1., 4.)
    assert Bounds.make(Bounds(0., 1.)) == Bounds(0., 1.)
    assert Bounds.make(2.).is_fixed
    assert not Bounds.make((0., 1.)).is_fixed
    assert tuple(Bounds(0., 1.)) == (0., 1.)

    with pytest.raises(TypeError):
        Bounds.make([1., 2., 3.])


def test_declarations():
    ocp = NoCosts()

    assert ocp.state_names == ['x', 'y']
    assert ocp.control_names == ['u']
    assert ocp.path_constraint_names == []
    assert not ocp.has_integral_cost
    assert not ocp.has_endpoint_cost

    initial_time, final_time = ocp.time_bounds
    assert initial_time == Bounds(0., 0.)
    assert final_time == Bounds(1., 1.)

    lb, ub = ocp.state_bounds
    np.testing.assert_array_equal(lb, [-1., 2.])
    np.testing.assert_array_equal(ub, [1., 2.])

    # Initial and final bounds default to the general bounds
    lb, ub = ocp.initial_state_bounds
    np.testing.assert_array_equal(lb, [-1., 2.])
    np.testing.assert_array_equal(ub, [1., 2.])
    lb, ub = ocp.final_state_bounds
    np.testing.assert_array_equal(lb, [0., 2.])
    np.testing.assert_array_equal(ub, [0.5, 2.])

    lb, ub = ocp.control_bounds
    np.testing.assert_array_equal(lb, [-np.inf])
    np.testing.assert_array_equal(ub, [np.inf])
    lb, ub = ocp.initial_control_bounds
    np.testing.assert_array_equal(lb, [0.])
    np.testing.assert_array_equal(ub, [np.inf])
    lb, ub = ocp.final_control_bounds
    np.testing.assert_array_equal(lb, [-np.inf])
    np.testing.assert_array_equal(ub, [np.inf])

    ocp.set_time(initial=(-1., 0.), final=(1., 5.))
    initial_time, final_time = ocp.time_bounds
    assert initial_time == Bounds(-1., 0.)
    assert final_time == Bounds(1., 5.)

    with pytest.raises(ValueError, match="Variable x already exists"):
        ocp.add_control('x')
    with pytest.raises(ValueError, match="Variable u already exists"):
        ocp.add_state('u')
    with pytest.raises(TypeError):
        ocp.add_state('')

    ocp.add_path_constraint('g', bounds=(0., 1.))
    with pytest.raises(ValueError, match="Path constraint g already exists"):
        ocp.add_path_constraint('g')
    assert ocp.n_path_constraints == 1
    lb, ub = ocp.path_constraint_bounds
    np.testing.assert_array_equal(lb, [0.])
    np.testing.assert_array_equal(ub, [1.])


def test_not_implemented():
    ocp = NoCosts()
    t = np.zeros(1)
    x, u = np.zeros((2, 1)), np.zeros((1, 1))

    with pytest.raises(NotImplementedError):
        ocp.integral_cost(t, x, u)
    with pytest.raises(NotImplementedError):
        ocp.endpoint_cost(0., x[:, 0])
    with pytest.raises(NotImplementedError):
        ocp.path_constraints(t, x, u)
    with pytest.raises(NotImplementedError):
        OptimalControlProblem().dynamics(t, x, u)


@pytest.mark.parametrize('ocp_name', ocp_dict.keys())
@pytest.mark.parametrize('n_points', [1, 3])
def test_problem_functions(ocp_name, n_points):
    """Test that the problem function outputs have the correct shape and that
    their derivatives match finite difference approximations."""
    ocp = ocp_dict[ocp_name]()

    t = np.sort(rng.uniform(size=n_points))
    x = rng.uniform(low=-1., high=1., size=(ocp.n_states, n_points))
    u = rng.uniform(low=-1., high=1., size=(ocp.n_controls, n_points))

    f = ocp.dynamics(t, x, u)
    assert f.shape == (ocp.n_states, n_points)

    dfdx, dfdu = ocp.jac(t, x, u)
    assert dfdx.shape == (ocp.n_states, ocp.n_states, n_points)
    assert dfdu.shape == (ocp.n_states, ocp.n_controls, n_points)
    compare_finite_difference(x, dfdx, lambda x: ocp.dynamics(t, x, u),
                              rtol=1e-05, atol=1e-06)
    compare_finite_difference(u, dfdu, lambda u: ocp.dynamics(t, x, u),
                              rtol=1e-05, atol=1e-06)

    np.testing.assert_allclose(ocp.jac(t, x, u, return_dfdu=False), dfdx)
    np.testing.assert_allclose(ocp.jac(t, x, u, return_dfdx=False), dfdu)

    if ocp.has_integral_cost:
        L = ocp.integral_cost(t, x, u)
        assert L.shape == (n_points,)

        dLdx, dLdu = ocp.integral_cost_grad(t, x, u)
        assert dLdx.shape == (ocp.n_states, n_points)
        assert dLdu.shape == (ocp.n_controls, n_points)
        compare_finite_difference(x, dLdx,
                                  lambda x: ocp.integral_cost(t, x, u),
                                  rtol=1e-05, atol=1e-06)
        compare_finite_difference(u, dLdu,
                                  lambda u: ocp.integral_cost(t, x, u),
                                  rtol=1e-05, atol=1e-06)

    if ocp.has_endpoint_cost:
        E = ocp.endpoint_cost(t[-1], x[:, -1])
        assert np.size(E) == 1

        dEdx = ocp.endpoint_cost_grad(t[-1], x[:, -1])
        assert dEdx.shape == (ocp.n_states,)
        compare_finite_difference(x[:, -1], dEdx,
                                  lambda xf: ocp.endpoint_cost(t[-1], xf),
                                  rtol=1e-05, atol=1e-06)

    if ocp.n_path_constraints:
        g = ocp.path_constraints(t, x, u)
        assert g.shape == (ocp.n_path_constraints, n_points)

        dgdx, dgdu = ocp.path_constraints_jac(t, x, u)
        assert dgdx.shape == (ocp.n_path_constraints, ocp.n_states, n_points)
        assert dgdu.shape == (ocp.n_path_constraints, ocp.n_controls,
                              n_points)


def test_default_derivatives():
    """Finite difference derivatives should be close to analytical ones."""
    ocp = NonlinearFiniteDifference()

    n_points = 4
    t = np.linspace(0., 1., n_points)
    x = rng.uniform(low=-1., high=1., size=(2, n_points))
    u = rng.uniform(low=-1., high=1., size=(2, n_points))
    a = ocp.parameters.a

    dfdx, dfdu = ocp.jac(t, x, u)
    np.testing.assert_allclose(dfdx[0, 0], 0., atol=1e-08)
    np.testing.assert_allclose(dfdx[0, 1], a * np.cos(a * x[1]), rtol=1e-06)
    np.testing.assert_allclose(dfdx[1, 0], x[1], rtol=1e-06, atol=1e-08)
    np.testing.assert_allclose(dfdx[1, 1], x[0], rtol=1e-06, atol=1e-08)
    np.testing.assert_allclose(dfdu[0, 0], t, rtol=1e-06, atol=1e-08)
    np.testing.assert_allclose(dfdu[0, 1], 0., atol=1e-08)
    np.testing.assert_allclose(dfdu[1, 1], -3. * u[1] ** 2, rtol=1e-06,
                               atol=1e-08)

    dLdx, dLdu = ocp.integral_cost_grad(t, x, u)
    np.testing.assert_allclose(dLdx[0], 2. * x[0] + u[1] ** 2, rtol=1e-06,
                               atol=1e-08)
    np.testing.assert_allclose(dLdu[0], 2. * u[0], rtol=1e-06, atol=1e-08)

    dEdx = ocp.endpoint_cost_grad(2., x[:, -1])
    np.testing.assert_allclose(dEdx, [4. * x[0, -1],
                                      np.exp(x[1, -1] / 4.) / 4.],
                               rtol=1e-06, atol=1e-08)

    dgdx, dgdu = ocp.path_constraints_jac(t, x, u)
    np.testing.assert_allclose(dgdx[0, 0], 2. * x[0], rtol=1e-06, atol=1e-08)
    np.testing.assert_allclose(dgdu[0, 0], 2. * u[0], rtol=1e-06, atol=1e-08)
