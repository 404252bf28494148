from .problem_definition import FinalPositionLocalOptima
