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
from dataclasses import dataclass

import numpy as np
import scipy.sparse as sp

from dualprimal import InternalConsistencyError
from dualprimal.ieti.registry import DofRegistry
from dualprimal.patches import BoxComponent


logger = logging.getLogger(__name__)

__doc__ = """
.. autoclass:: JumpMatrices
.. autofunction:: find_coupled_dof_occurrences
.. autofunction:: compute_jump_matrices
"""


@dataclass(frozen=True, eq=False)
class JumpMatrices:
    """
    .. attribute:: matrices

        A :class:`tuple` with one :class:`scipy.sparse.csr_matrix` per
        patch, of shape ``(n_lagrange_multipliers, nfree)``.

    .. attribute:: n_lagrange_multipliers
    """

    matrices: tuple[sp.csr_matrix, ...]
    n_lagrange_multipliers: int


# {{{ coupled dof occurrences

def find_coupled_dof_occurrences(registry: DofRegistry, *,
        exclude_corners: bool = False) -> list[list[tuple[int, int]]]:
    """Return, for each coupled dof in the coupled numbering of the global
    mapper, the list of pairs *(patch, local free index)* at which it occurs,
    in order of patch and patch-local index. Artificial dofs are included.

    If *exclude_corners* is set, the lists of coupled dofs located at a
    corner of any patch are left empty.
    """
    gmapper = registry.dof_mapper_global

    coupling = [[] for _ in range(gmapper.coupled_size)]
    for k in range(registry.npatches):
        lmapper = registry.dof_mappers_local[k]
        for i in range(gmapper.patch_size(k)):
            if gmapper.is_coupled(i, k):
                coupling[gmapper.cindex(i, k)].append((k, lmapper.index(i)))

    if exclude_corners:
        for k, basis in enumerate(registry.bases):
            for corner in BoxComponent.corners(basis.dim):
                idx = basis.function_at_corner(corner)
                if gmapper.is_coupled(idx, k):
                    coupling[gmapper.cindex(idx, k)].clear()

    return coupling

# }}}


def _pairs(n: int, fully_redundant: bool):
    if fully_redundant:
        return ((j1, j2) for j1 in range(n) for j2 in range(j1 + 1, n))
    else:
        return ((0, j) for j in range(1, n))


# {{{ jump matrices

def compute_jump_matrices(registry: DofRegistry, *,
        fully_redundant: bool = False,
        exclude_corners: bool = False) -> JumpMatrices:
    """Build one jump matrix per patch. Each row (Lagrange multiplier)
    holds a ``+1`` in one patch's matrix and a ``-1`` in another's (or in
    another column of the same patch, for artificial dofs), enforcing
    equality of two occurrences of a coupled dof.

    :arg fully_redundant: If *True*, a coupled dof with *n* occurrences gets
        one multiplier per pair of occurrences, ``n*(n-1)/2`` in total.
        Otherwise, the first occurrence is paired with each of the others,
        giving ``n-1`` multipliers.
    :arg exclude_corners: If *True*, coupled dofs at patch corners get no
        multipliers (they are expected to be primal dofs).
    """
    coupling = find_coupled_dof_occurrences(
            registry, exclude_corners=exclude_corners)

    n_lagrange_multipliers = 0
    for icoupled, occurrences in enumerate(coupling):
        n = len(occurrences)
        if n == 1 or (n == 0 and not exclude_corners):
            raise InternalConsistencyError(
                    f"coupled dof {icoupled} is not coupled to any other dof")

        if fully_redundant:
            n_lagrange_multipliers += (n * (n-1)) // 2
        else:
            n_lagrange_multipliers += max(n - 1, 0)

    rows = [[] for _ in range(registry.npatches)]
    cols = [[] for _ in range(registry.npatches)]
    vals = [[] for _ in range(registry.npatches)]

    multiplier = 0
    for occurrences in coupling:
        for j1, j2 in _pairs(len(occurrences), fully_redundant):
            patch1, local_index1 = occurrences[j1]
            patch2, local_index2 = occurrences[j2]

            rows[patch1].append(multiplier)
            cols[patch1].append(local_index1)
            vals[patch1].append(1.0)

            rows[patch2].append(multiplier)
            cols[patch2].append(local_index2)
            vals[patch2].append(-1.0)

            multiplier += 1

    if multiplier != n_lagrange_multipliers:
        raise InternalConsistencyError(
                f"emitted {multiplier} multipliers, "
                f"expected {n_lagrange_multipliers}")

    # no duplicate (row, col) pairs: every row touches two distinct occurrences
    matrices = tuple(
            sp.coo_matrix(
                (np.array(vals[k], dtype=np.float64),
                    (np.array(rows[k], dtype=np.intp),
                        np.array(cols[k], dtype=np.intp))),
                shape=(n_lagrange_multipliers, registry.nfree(k))).tocsr()
            for k in range(registry.npatches))

    logger.info("jump matrices: %d Lagrange multipliers (fully redundant: %s, "
            "corners excluded: %s)", n_lagrange_multipliers, fully_redundant,
            exclude_corners)

    return JumpMatrices(matrices, n_lagrange_multipliers)

# }}}

# vim: foldmethod=marker
