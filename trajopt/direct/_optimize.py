import warnings
from collections import namedtuple

import numpy as np
from scipy import optimize, sparse

from trajopt.iterate import SolverStatus


NLPResult = namedtuple('NLPResult', ['x', 'fun', 'status', 'message', 'n_iter'])
NLPResult.__doc__ = """
Result of an NLP solve.

Attributes
----------
x : (n_vars,) array
    Final iterate of the backend, including any variables fixed by the bounds.
fun : float
    Objective function value at `x`.
status : `SolverStatus`
    Reason for termination.
message : str
    Termination message reported by the backend.
n_iter : int
    Number of backend iterations.
"""

_backends = ('slsqp', 'trust-constr')


def minimize(obj_fun, x0, lb, ub, constr_fun=None, constr_jac=None,
             constr_lb=None, constr_ub=None, jac_sparsity=None,
             backend='slsqp', tol=1e-08, max_iter=500, max_gradient=1.,
             verbose=0):
    """
    Minimize a scalar function subject to bounds and nonlinear constraints,
    ```
    min obj_fun(x)
    s.t. lb <= x <= ub
         constr_lb <= constr_fun(x) <= constr_ub
    ```
    using one of the gradient-based solvers in `scipy.optimize.minimize`.

    Variables fixed by the bounds (`lb == ub`) are removed from the problem
    before it is passed to the backend, and reinserted in the result.

    Parameters
    ----------
    obj_fun : callable
        Objective function and its gradient, `obj_fun(x) -> (f, dfdx)`, where
        `x` is a 1d array with shape `(n,)`.
    x0 : (n,) array
        Initial guess. Clipped to the bounds.
    lb, ub : (n,) arrays
        Lower and upper bounds on `x`. May be infinite.
    constr_fun : callable, optional
        Constraint function, `constr_fun(x) -> (m,) array`.
    constr_jac : callable, optional
        Constraint Jacobian, `constr_jac(x) -> (m, n) sparse matrix`. Required
        if `constr_fun` is provided.
    constr_lb, constr_ub : (m,) arrays, optional
        Lower and upper bounds on `constr_fun`. Equal entries define equality
        constraints.
    jac_sparsity : (m, n) sparse matrix, optional
        Structurally non-zero entries of the constraint Jacobian. Currently
        only used for reporting.
    backend : {'slsqp', 'trust-constr'}, default='slsqp'
        Which `scipy.optimize.minimize` method to use.
    tol : float, default=1e-08
        Convergence tolerance passed to the backend.
    max_iter : int, default=500
        Maximum number of backend iterations.
    max_gradient : float, default=1.
        The objective is multiplied by a constant scale factor so that the
        largest component of its gradient at `x0` is at most `max_gradient` in
        magnitude. Gradient-based solvers which start from an identity Hessian
        approximation otherwise take very large first steps when the gradient
        is large. The returned objective value is unscaled. Set to `np.inf` to
        disable scaling.
    verbose : {0, 1, 2}, default=0
        Level of algorithm's verbosity:

            * 0 (default) : work silently.
            * 1 : display a termination report.
            * 2 : display progress during iterations.

    Returns
    -------
    result : `NLPResult`
        Final iterate, objective value, and termination status.
    """
    if backend not in _backends:
        raise ValueError(f"backend = {backend} is not recognized. Valid "
                         f"options are {', '.join(map(repr, _backends))}")

    lb = np.asarray(lb, dtype=float)
    ub = np.asarray(ub, dtype=float)
    x0 = np.clip(np.asarray(x0, dtype=float), lb, ub)

    if constr_fun is None:
        constr_lb, constr_ub = np.zeros(0), np.zeros(0)
    else:
        constr_lb = np.asarray(constr_lb, dtype=float)
        constr_ub = np.asarray(constr_ub, dtype=float)

    i_free = np.flatnonzero(lb != ub)
    x_full = np.copy(x0)

    def expand(x):
        x_full[i_free] = x
        return np.copy(x_full)

    def fun(x):
        f, dfdx = obj_fun(expand(x))
        return obj_scale * f, obj_scale * np.asarray(dfdx)[i_free]

    if constr_fun is None:
        cons = cons_jac = None
    else:
        def cons(x):
            return constr_fun(expand(x))

        def cons_jac(x):
            return sparse.csr_matrix(constr_jac(expand(x)))[:, i_free]

    if verbose >= 2:
        n_nonzero = 0 if jac_sparsity is None else jac_sparsity.nnz
        print(f"Solving NLP with {backend}: {i_free.shape[0]} free variables "
              f"({x0.shape[0] - i_free.shape[0]} fixed), "
              f"{constr_lb.shape[0]} constraints, {n_nonzero} structural "
              f"Jacobian non-zeros")

    if i_free.shape[0] == 0:
        f, _ = obj_fun(x_full)
        if cons is None:
            violation = 0.
        else:
            violation = _constraint_violation(constr_fun(x_full), constr_lb,
                                              constr_ub)
        if violation <= tol:
            status, message = SolverStatus.CONVERGED, "No free variables"
        else:
            status = SolverStatus.INFEASIBLE
            message = (f"No free variables and constraint violation "
                       f"{violation:1.2e} exceeds tolerance")
        return NLPResult(x_full, float(f), status, message, 0)

    obj_scale = 1.
    _, dfdx = fun(x0[i_free])
    grad_norm = np.max(np.abs(dfdx))
    if grad_norm > max_gradient:
        obj_scale = max_gradient / grad_norm

    if verbose >= 2 and obj_scale < 1.:
        print(f"Scaling objective by {obj_scale:1.2e}")

    if backend == 'slsqp':
        res, status = _minimize_slsqp(fun, x0[i_free], lb[i_free], ub[i_free],
                                      cons, cons_jac, constr_lb, constr_ub,
                                      tol, max_iter, verbose)
    else:
        res, status = _minimize_trust_constr(fun, x0[i_free], lb[i_free],
                                             ub[i_free], cons, cons_jac,
                                             constr_lb, constr_ub, tol,
                                             max_iter, verbose)

    n_iter = getattr(res, 'nit', getattr(res, 'niter', 0))

    return NLPResult(expand(res.x), float(res.fun) / obj_scale, status,
                     str(res.message), int(n_iter))


def _minimize_slsqp(fun, x0, lb, ub, cons, cons_jac, constr_lb, constr_ub, tol,
                    max_iter, verbose):
    constraints = []
    if cons is not None:
        # SLSQP takes equality constraints c(x) == 0 and inequality constraints
        # c(x) >= 0 with dense Jacobians
        jac_cache = {}

        def dense_jac(x):
            if 'x' not in jac_cache or not np.array_equal(jac_cache['x'], x):
                jac_cache['x'] = np.copy(x)
                jac_cache['jac'] = cons_jac(x).toarray()
            return jac_cache['jac']

        i_eq = np.flatnonzero(constr_lb == constr_ub)
        i_lb = np.flatnonzero(np.isfinite(constr_lb) & (constr_lb != constr_ub))
        i_ub = np.flatnonzero(np.isfinite(constr_ub) & (constr_lb != constr_ub))

        if i_eq.shape[0] > 0:
            constraints.append({
                'type': 'eq',
                'fun': lambda x: cons(x)[i_eq] - constr_lb[i_eq],
                'jac': lambda x: dense_jac(x)[i_eq]})
        if i_lb.shape[0] > 0:
            constraints.append({
                'type': 'ineq',
                'fun': lambda x: cons(x)[i_lb] - constr_lb[i_lb],
                'jac': lambda x: dense_jac(x)[i_lb]})
        if i_ub.shape[0] > 0:
            constraints.append({
                'type': 'ineq',
                'fun': lambda x: constr_ub[i_ub] - cons(x)[i_ub],
                'jac': lambda x: -dense_jac(x)[i_ub]})

    options = {'maxiter': max_iter, 'disp': bool(verbose)}

    with warnings.catch_warnings():
        warnings.filterwarnings('ignore', "Values in x were outside bounds",
                                RuntimeWarning)
        res = optimize.minimize(fun, x0, method='SLSQP', jac=True,
                                bounds=optimize.Bounds(lb, ub),
                                constraints=constraints, tol=tol,
                                options=options)

    if res.status == 0:
        status = SolverStatus.CONVERGED
    elif res.status == 9:
        status = SolverStatus.ITERATION_LIMIT
    elif res.status == 4:
        status = SolverStatus.INFEASIBLE
    else:
        status = SolverStatus.ERROR

    return res, status


def _minimize_trust_constr(fun, x0, lb, ub, cons, cons_jac, constr_lb,
                           constr_ub, tol, max_iter, verbose):
    constraints = []
    if cons is not None:
        constraints.append(optimize.NonlinearConstraint(
            cons, constr_lb, constr_ub, jac=cons_jac,
            hess=optimize.BFGS()))

    options = {'maxiter': max_iter, 'gtol': tol, 'xtol': tol,
               'verbose': int(verbose)}

    with warnings.catch_warnings():
        warnings.filterwarnings('ignore', "delta_grad == 0.0", UserWarning)
        res = optimize.minimize(fun, x0, method='trust-constr', jac=True,
                                hess=optimize.BFGS(),
                                bounds=optimize.Bounds(lb, ub),
                                constraints=constraints, options=options)

    if res.status in (1, 2):
        if res.constr_violation <= max(tol, np.sqrt(np.finfo(float).eps)):
            status = SolverStatus.CONVERGED
        else:
            status = SolverStatus.INFEASIBLE
    elif res.status == 0:
        status = SolverStatus.ITERATION_LIMIT
    else:
        status = SolverStatus.ERROR

    return res, status


def _constraint_violation(c, lb, ub):
    c = np.reshape(c, (-1,))
    if c.shape[0] == 0:
        return 0.
    return float(np.max(np.maximum(np.maximum(lb - c, c - ub), 0.)))
