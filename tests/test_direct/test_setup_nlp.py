import pytest

import numpy as np

from trajopt.direct import setup_nlp
from trajopt.exceptions import BoundsError, ShapeError
from trajopt.utilities import approx_derivative

from .._problems import ocp_dict, NonlinearFiniteDifference
from .._utilities import make_guess, make_random_iterate


rng = np.random.default_rng()


def _random_vars(transcription, time_vars=()):
    n_xu = transcription.n_vars - transcription.n_time_vars
    return np.concatenate((rng.uniform(low=-1., high=1., size=n_xu),
                           time_vars))


def test_layout_and_bounds():
    ocp = ocp_dict['final_position']()
    transcription = setup_nlp.make_transcription(ocp, 5)

    assert isinstance(transcription, setup_nlp.TrapezoidalTranscription)
    assert transcription.n_vars == 15
    assert transcription.n_constraints == 8
    assert transcription.n_time_vars == 0
    np.testing.assert_allclose(transcription.tau, [0., 0.25, 0.5, 0.75, 1.])

    # Variables at each node are stored as [x, v, F]
    x_max, v_max, F_max = 1.5, 10., 50.
    lb = np.array([0., 0., -F_max] + [-x_max, -v_max, -F_max] * 3
                  + [-x_max, 0., -F_max])
    np.testing.assert_array_equal(transcription.lb, lb)
    np.testing.assert_array_equal(transcription.ub, -lb)

    np.testing.assert_array_equal(transcription.constraint_lb, np.zeros(8))
    np.testing.assert_array_equal(transcription.constraint_ub, np.zeros(8))

    z = _random_vars(transcription)
    np.testing.assert_allclose(transcription.times(z), transcription.tau)


def test_path_constraint_bounds():
    ocp = NonlinearFiniteDifference()
    n_nodes = 4
    transcription = setup_nlp.make_transcription(ocp, n_nodes)

    n_defects = 2 * (n_nodes - 1)
    assert transcription.n_constraints == n_defects + 2 * n_nodes

    lb, ub = transcription.constraint_lb, transcription.constraint_ub
    np.testing.assert_array_equal(lb[:n_defects], 0.)
    np.testing.assert_array_equal(ub[:n_defects], 0.)
    np.testing.assert_array_equal(lb[n_defects:],
                                  np.tile([-np.inf, -1.], n_nodes))
    np.testing.assert_array_equal(ub[n_defects:], np.tile([4., 1.], n_nodes))


def test_bad_inputs():
    ocp = ocp_dict['final_position']()

    with pytest.raises(ShapeError, match="at least 2 grid points"):
        setup_nlp.make_transcription(ocp, 1)
    with pytest.raises(ValueError, match="not recognized"):
        setup_nlp.make_transcription(ocp, 5, scheme='hermite-simpson')

    ocp.add_state('y', bounds=(1., -1.))
    with pytest.raises(BoundsError, match="state y"):
        setup_nlp.make_transcription(ocp, 5)

    ocp = ocp_dict['final_position']()
    ocp.add_control('w', final_bounds=(2., 1.))
    with pytest.raises(BoundsError, match="final value of control w"):
        setup_nlp.make_transcription(ocp, 5)

    ocp = ocp_dict['final_position']()
    ocp.add_path_constraint('g', bounds=(0., -1.))
    with pytest.raises(BoundsError, match="path constraint g"):
        setup_nlp.make_transcription(ocp, 5)

    ocp = ocp_dict['final_position']()
    ocp.set_time(initial=(0., 1.), final=(-2., -1.))
    with pytest.raises(BoundsError, match="final time"):
        setup_nlp.make_transcription(ocp, 5)


@pytest.mark.parametrize('free_time', [(False, False), (False, True),
                                       (True, True)])
@pytest.mark.parametrize('n_nodes', [2, 6])
def test_constraints_jac(free_time, n_nodes):
    """The constraint Jacobian should match a finite difference approximation
    and have no non-zeros outside the sparsity pattern."""
    initial_time = (-1., 0.5) if free_time[0] else 0.
    final_time = (1., 3.) if free_time[1] else 2.
    ocp = NonlinearFiniteDifference(initial_time=initial_time,
                                    final_time=final_time)
    transcription = setup_nlp.make_transcription(ocp, n_nodes)

    time_vars = np.array([0.2, 2.5])[2 - sum(free_time):]
    assert transcription.n_time_vars == time_vars.shape[0]
    z = _random_vars(transcription, time_vars)

    c = transcription.constraints(z)
    assert c.shape == (transcription.n_constraints,)

    jac = transcription.constraints_jac(z)
    assert jac.shape == (transcription.n_constraints, transcription.n_vars)

    expected_jac = approx_derivative(transcription.constraints, z)
    np.testing.assert_allclose(jac.toarray(), expected_jac,
                               rtol=1e-05, atol=1e-06)

    sparsity = transcription.jac_sparsity.toarray()
    assert sparsity.shape == jac.shape
    assert np.all(sparsity[np.abs(expected_jac) > 1e-08] == 1.)


@pytest.mark.parametrize('free_time', [False, True])
def test_objective_grad(free_time):
    final_time = (1., 3.) if free_time else 2.
    ocp = NonlinearFiniteDifference(final_time=final_time)
    transcription = setup_nlp.make_transcription(ocp, 5)

    z = _random_vars(transcription, [2.5] if free_time else [])

    J, dJdz = transcription.objective_and_grad(z)
    assert np.isclose(J, transcription.objective(z))
    assert dJdz.shape == (transcription.n_vars,)
    np.testing.assert_allclose(transcription.objective_grad(z), dJdz)

    expected_grad = approx_derivative(transcription.objective, z)
    np.testing.assert_allclose(dJdz, expected_grad, rtol=1e-05, atol=1e-06)


@pytest.mark.parametrize('ocp_name', ocp_dict.keys())
def test_shapes(ocp_name):
    ocp = ocp_dict[ocp_name]()
    transcription = setup_nlp.make_transcription(ocp, 7)

    z = transcription.guess_to_vars(transcription.make_guess_from_bounds())
    assert z.shape == (transcription.n_vars,)
    assert transcription.lb.shape == transcription.ub.shape == z.shape
    assert np.all(transcription.lb <= z)
    assert np.all(z <= transcription.ub)

    c = transcription.constraints(z)
    assert c.shape == transcription.constraint_lb.shape
    assert c.shape == transcription.constraint_ub.shape

    assert np.size(transcription.objective(z)) == 1


def test_exact_trajectory():
    """The trapezoidal rule is exact for linear trajectories, so a mass moving
    at constant speed should have zero defects, and a constant integrand is
    integrated exactly."""
    ocp = ocp_dict['minimum_effort']()
    n_nodes = 9
    transcription = setup_nlp.make_transcription(ocp, n_nodes)

    t = np.linspace(0., 1., n_nodes)
    guess = make_guess(ocp, n_nodes, x=t, v=np.ones(n_nodes))
    z = transcription.guess_to_vars(guess)

    c = transcription.constraints(z)
    n_defects = 2 * (n_nodes - 1)
    np.testing.assert_allclose(c[:n_defects], 0., atol=1e-14)
    # The path constraint is the speed
    np.testing.assert_allclose(c[n_defects:], 1.)

    assert np.isclose(transcription.objective(z), 0.)

    guess = make_guess(ocp, n_nodes, u=np.ones(n_nodes))
    z = transcription.guess_to_vars(guess)
    assert np.isclose(transcription.objective(z), 1.)


def test_make_guess_from_bounds():
    ocp = ocp_dict['minimum_time']()
    n_nodes = 6
    transcription = setup_nlp.make_transcription(ocp, n_nodes)

    assert transcription.n_time_vars == 1
    assert transcription.n_vars == 3 * n_nodes + 1
    assert transcription.lb[-1] == 0.1
    assert transcription.ub[-1] == 10.

    guess = transcription.make_guess_from_bounds()
    assert guess.state_names == ocp.state_names
    assert guess.control_names == ocp.control_names
    np.testing.assert_allclose(guess.time, np.linspace(0., 5.05, n_nodes))
    np.testing.assert_array_equal(guess.get_state('x'), [0.] * 5 + [1.])
    np.testing.assert_array_equal(guess.get_state('v'), 0.)
    np.testing.assert_array_equal(guess.get_control('u'), 0.)

    ocp = ocp_dict['final_position']()
    guess = setup_nlp.make_transcription(ocp, n_nodes).make_guess_from_bounds()
    np.testing.assert_allclose(guess.time, np.linspace(0., 1., n_nodes))
    np.testing.assert_array_equal(guess.states, 0.)
    np.testing.assert_array_equal(guess.controls, 0.)


def test_guess_to_vars():
    ocp = NonlinearFiniteDifference(initial_time=(-1., 0.5),
                                    final_time=(1., 3.))
    n_nodes = 5
    transcription = setup_nlp.make_transcription(ocp, n_nodes)

    guess = make_random_iterate(n_nodes, ocp.n_states, ocp.n_controls)
    z = transcription.guess_to_vars(guess)
    np.testing.assert_array_equal(z[-2:], guess.time[[0, -1]])

    x, u, _ = transcription.separate_vars(z)
    np.testing.assert_array_equal(x, guess.states)
    np.testing.assert_array_equal(u, guess.controls)

    iterate = transcription.make_iterate(z)
    assert iterate.state_names == ocp.state_names
    assert iterate.control_names == ocp.control_names
    np.testing.assert_allclose(iterate.time,
                               np.linspace(*guess.time[[0, -1]], n_nodes))
    np.testing.assert_array_equal(iterate.states, guess.states)
    np.testing.assert_array_equal(iterate.controls, guess.controls)
    np.testing.assert_allclose(transcription.guess_to_vars(iterate), z)

    with pytest.raises(ShapeError, match="Expected guess to have 5 time"):
        transcription.guess_to_vars(make_random_iterate(n_nodes + 1, 2, 2))
    with pytest.raises(ShapeError, match="Expected states to have 2 rows"):
        transcription.guess_to_vars(make_random_iterate(n_nodes, 3, 2))
