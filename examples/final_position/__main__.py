import argparse as ap
import os

import numpy as np

from trajopt import Iterate, DirectCollocationSolver

from examples.final_position import FinalPositionLocalOptima


parser = ap.ArgumentParser()
parser.add_argument('-n', '--n_nodes', type=int, default=20,
                    help="Number of collocation nodes.")
parser.add_argument('-b', '--backend', default='slsqp',
                    choices=['slsqp', 'trust-constr'], help="NLP solver.")
parser.add_argument('-o', '--output_dir',
                    default=os.path.join('examples', 'final_position', 'data'),
                    help="Directory where solutions will be saved.")
parser.add_argument('-v', '--verbose', type=int, default=1, choices=[0, 1, 2])
args = parser.parse_args()

os.makedirs(args.output_dir, exist_ok=True)

ocp = FinalPositionLocalOptima()
solver = DirectCollocationSolver(ocp, backend=args.backend,
                                 n_nodes=args.n_nodes, verbose=args.verbose)

# Each initial guess lies in the basin of a different local minimum
for sign, label in ((1., 'positive'), (-1., 'negative')):
    guess = Iterate(np.linspace(0., 1., args.n_nodes), state_names=['x', 'v'],
                    control_names=['F'])
    ocp.set_state_guess(guess, 'x', np.linspace(0., sign, args.n_nodes))
    ocp.set_state_guess(guess, 'v', np.zeros(args.n_nodes))
    ocp.set_control_guess(guess, 'F', np.zeros(args.n_nodes))

    sol = solver.solve(guess)

    print(f"Final position starting from {label} guess: "
          f"{sol.get_state('x')[-1]:1.6f} (expected {sign / np.sqrt(2.):1.6f})")

    sol.write(os.path.join(args.output_dir, f'solution_{label}.csv'))
