__copyright__ = "Copyright (C) 2024 dualprimal contributors"

__license__ = """
Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in
all copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN
THE SOFTWARE.
"""

import logging

import numpy as np
import numpy.linalg as la

from dualprimal.ieti import IetiMapper
from dualprimal.patches import BoxPatch, MultiPatch, TensorProductLagrangeBasis


logger = logging.getLogger(__name__)


def make_grid_of_boxes(npatches_per_axis, dim):
    from itertools import product
    return [
            BoxPatch(np.array(idx, dtype=np.float64),
                np.array(idx, dtype=np.float64) + 1)
            for idx in product(range(npatches_per_axis), repeat=dim)]


def main(dim=2, npatches_per_axis=3, order=2, nelements=4,
        fully_redundant=False):
    logging.basicConfig(level=logging.INFO)

    patches = make_grid_of_boxes(npatches_per_axis, dim)
    bases = [TensorProductLagrangeBasis(dim, order=order, nelements=nelements)
            for _ in patches]
    geometry = MultiPatch(patches, bases)

    dof_mapper = geometry.make_dof_mapper(dirichlet="all")
    logger.info("global dof mapper: %s", dof_mapper)

    # prescribe x_0 on the Dirichlet boundary
    fixed_values = np.zeros(dof_mapper.boundary_size)
    for k, (patch, basis) in enumerate(zip(patches, bases)):
        nodes = patch.nodes(basis)
        for i in range(basis.size):
            if dof_mapper.is_boundary(i, k):
                fixed_values[dof_mapper.bindex(i, k)] = nodes[0, i]

    ieti = IetiMapper(bases, dof_mapper, fixed_values)
    ieti.corners_as_primals()
    for d in range(1, dim):
        ieti.interface_averages_as_primals(geometry, d)
    ieti.compute_jump_matrices(
            fully_redundant=fully_redundant, exclude_corners=True)

    print(f"patches: {ieti.n_patches}")
    print(f"global free dofs: {dof_mapper.free_size}")
    print(f"primal dofs: {ieti.n_primal_dofs}")
    print(f"Lagrange multipliers: {ieti.n_lagrange_multipliers}")

    # a globally continuous function has no jumps
    u = np.arange(dof_mapper.free_size, dtype=np.float64)
    local_sols = ieti.restrict_global_solution(u)
    jump = sum(ieti.jump_matrix(k) @ local_sols[k] for k in range(ieti.n_patches))
    print(f"jump norm: {la.norm(jump):.3e}")

    u_reassembled = ieti.construct_global_solution_from_local_solutions(
            local_sols)
    print(f"reassembly error: {la.norm(u - u_reassembled):.3e}")


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Dual-primal setup on a "
            "grid of boxes")
    parser.add_argument("--dim", type=int, default=2)
    parser.add_argument("--npatches", type=int, default=3,
            help="number of patches along each axis")
    parser.add_argument("--order", type=int, default=2)
    parser.add_argument("--nelements", type=int, default=4)
    parser.add_argument("--fully-redundant", action="store_true")
    args = parser.parse_args()

    main(dim=args.dim, npatches_per_axis=args.npatches, order=args.order,
            nelements=args.nelements, fully_redundant=args.fully_redundant)

# vim: foldmethod=marker
