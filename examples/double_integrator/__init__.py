from .problem_definition import (MinimumEffortDoubleIntegrator,
                                 MinimumTimeDoubleIntegrator)
