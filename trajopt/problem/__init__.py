"""
The `problem` module implements the `OptimalControlProblem` class, which serves
as a standard template for subclasses describing specific optimal control
problems (OCPs). Subclasses declare named states, controls, and path
constraints together with their bounds, and implement the dynamics, costs, and
constraint functions. Numerical constants are not hard-coded in the subclass;
instead they are stored in a `ProblemParameters` instance attached to the
problem, which is initialized with defaults attached to the class.

---

* [`OptimalControlProblem`](problem/problem#OptimalControlProblem):
    Base superclass used to implement OCPs.

* [`Bounds`](problem/problem#Bounds):
    Lower and upper bounds on a scalar variable.

* [`ProblemParameters`](problem/parameters#ProblemParameters):
    Class housing dynamics, cost, and constraint parameters for
    `OptimalControlProblem` instances.
"""

from .problem import OptimalControlProblem, Bounds
from .parameters import ProblemParameters
