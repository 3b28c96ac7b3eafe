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
from collections.abc import Hashable, Sequence
from enum import Enum

import numpy as np
import scipy.sparse as sp

from pytools import log_process

from dualprimal import (
    AlreadyCompletedError, AlreadyInitializedError, DimensionOutOfRangeError,
    NotInitializedError, ShapeMismatchError)
from dualprimal.dof_mapper import DofMapper
from dualprimal.ieti.artificial import ArtificialDofIndex
from dualprimal.ieti.jumps import JumpMatrices, compute_jump_matrices
from dualprimal.ieti.primals import PrimalConstraint, PrimalConstraintBuilder
from dualprimal.ieti.registry import DofRegistry
from dualprimal.ieti.solution import (
    construct_global_solution_from_local_solutions, restrict_global_solution)
from dualprimal.patches import MultiPatch


logger = logging.getLogger(__name__)

__doc__ = """
Dual-primal dof mapping
-----------------------

.. autoclass:: Phase
.. autoclass:: IetiMapper

Components
----------

.. automodule:: dualprimal.ieti.registry
.. automodule:: dualprimal.ieti.artificial
.. automodule:: dualprimal.ieti.primals
.. automodule:: dualprimal.ieti.jumps
.. automodule:: dualprimal.ieti.solution
"""

__all__ = [
    "IetiMapper",
    "Phase",
    "PrimalConstraint",
    "JumpMatrices",
    "DofRegistry",
    "ArtificialDofIndex",
    "PrimalConstraintBuilder",
]


class Phase(Enum):
    """Setup phases of an :class:`IetiMapper`. Interface averages are
    tracked per dimension as ``(Phase.INTERFACE_AVERAGES, d)``.
    """

    INIT = "init"
    CORNERS = "corners"
    INTERFACE_AVERAGES = "interface_averages"
    JUMP_MATRICES = "jump_matrices"


# {{{ ieti mapper

class IetiMapper:
    """Collects the data required to set up a dual-primal (IETI/FETI-DP)
    solver from a global dof mapper: local dof maps, primal constraints,
    jump matrices.

    Usage::

        ieti = IetiMapper(bases, dof_mapper, fixed_values)
        ieti.corners_as_primals()
        ieti.compute_jump_matrices(exclude_corners=True)
        ...
        u = ieti.construct_global_solution_from_local_solutions(local_sols)

    :meth:`init` must come first. :meth:`corners_as_primals`,
    :meth:`compute_jump_matrices` and :meth:`interface_averages_as_primals`
    (for each *d*) may each be called at most once;
    :meth:`custom_primal_constraints` may be called any number of times.

    .. automethod:: init
    .. automethod:: corners_as_primals
    .. automethod:: interface_averages_as_primals
    .. automethod:: custom_primal_constraints
    .. automethod:: compute_jump_matrices
    .. automethod:: construct_global_solution_from_local_solutions
    .. automethod:: restrict_global_solution
    .. automethod:: skeleton_dofs

    .. attribute:: completed_phases
    .. attribute:: n_patches
    .. attribute:: dof_mapper_global
    .. automethod:: dof_mapper_local
    .. automethod:: fixed_part
    .. attribute:: has_artificial_dofs
    .. attribute:: artificial_dof_index
    .. automethod:: primal_constraints
    .. automethod:: primal_dof_indices
    .. attribute:: n_primal_dofs
    .. automethod:: jump_matrix
    .. attribute:: n_lagrange_multipliers

    Accessors do not expose mutable state: fixed parts are read-only
    arrays, sparse matrices are returned as copies, and local dof mappers
    are finalized.
    """

    def __init__(self,
            bases: Sequence | None = None,
            dof_mapper_global: DofMapper | None = None,
            fixed_values: np.ndarray | None = None) -> None:
        """If *bases* and *dof_mapper_global* are given, :meth:`init` is
        called with them.
        """
        self._completed_phases: set[Hashable] = set()

        self._registry = None
        self._artificial_dof_index = None
        self._primals = None
        self._jump_matrices = None

        if bases is not None or dof_mapper_global is not None:
            if bases is None or dof_mapper_global is None:
                raise TypeError("must pass both bases and dof_mapper_global")
            self.init(bases, dof_mapper_global, fixed_values)

    # {{{ phase tracking

    @property
    def completed_phases(self) -> frozenset:
        return frozenset(self._completed_phases)

    def _require_init(self):
        if Phase.INIT not in self._completed_phases:
            raise NotInitializedError(
                    f"{type(self).__name__} has not been initialized")

    def _begin_phase(self, phase, description):
        self._require_init()
        if phase in self._completed_phases:
            raise AlreadyCompletedError(
                    f"{description} has already been called")
        self._completed_phases.add(phase)

    # }}}

    # {{{ setup

    @log_process(logger)
    def init(self,
            bases: Sequence,
            dof_mapper_global: DofMapper,
            fixed_values: np.ndarray | None = None) -> None:
        """
        :arg bases: one basis per patch, providing ``size``, ``dim`` and
            ``function_at_corner``, e.g.
            :class:`~dualprimal.patches.TensorProductLagrangeBasis`.
            ``bases[k].size`` is the native number of dofs of patch *k*.
        :arg dof_mapper_global: a finalized
            :class:`~dualprimal.dof_mapper.DofMapper` with one patch per
            basis. Patches may have more dofs than their basis; the excess
            dofs are artificial.
        :arg fixed_values: values of the eliminated dofs in the boundary
            numbering of *dof_mapper_global*, or *None* for zeros.
        """
        if Phase.INIT in self._completed_phases:
            raise AlreadyInitializedError(
                    f"{type(self).__name__} has already been initialized")

        registry = DofRegistry(bases, dof_mapper_global, fixed_values)
        artificial_dof_index = None
        if registry.has_artificial_dofs:
            artificial_dof_index = ArtificialDofIndex(registry)

        self._registry = registry
        self._artificial_dof_index = artificial_dof_index
        self._primals = PrimalConstraintBuilder(registry, artificial_dof_index)
        self._completed_phases.add(Phase.INIT)

    @log_process(logger)
    def corners_as_primals(self) -> None:
        """Use the corners of all patches as primal dofs. Corners shared by
        several patches yield a single primal dof.
        """
        self._begin_phase(Phase.CORNERS, "corners_as_primals")
        self._primals.corners_as_primals()

    @log_process(logger)
    def interface_averages_as_primals(self, geometry: MultiPatch,
            d: int) -> None:
        """Use averages over the shared components of dimension *d* (edges
        for *d* = 1, faces for *d* = 2) as primal dofs. For *d* equal to
        the dimension of the patches, the averages over the patches are
        used.
        """
        self._require_init()
        registry = self._registry
        dim = registry.dim
        if not 1 <= d <= dim:
            raise DimensionOutOfRangeError(
                    f"component dimension must be in [1, {dim}]: got {d}")
        if geometry.npatches != registry.npatches or geometry.dim != dim:
            raise ShapeMismatchError(
                    f"geometry with {geometry.npatches} patches of dimension "
                    f"{geometry.dim} does not match {registry.npatches} "
                    f"patches of dimension {dim}")

        self._begin_phase((Phase.INTERFACE_AVERAGES, d),
                f"interface_averages_as_primals for d={d}")
        self._primals.interface_averages_as_primals(geometry, d)

    def custom_primal_constraints(self,
            entries: Sequence[tuple[int, object]]) -> None:
        """Add the pairs *(patch, vector)* in *entries* as primal
        constraints, all tied to one new primal dof. The caller is
        responsible for the vectors describing the same functional.

        An empty *entries* is a no-op: no primal dof is created and
        :attr:`n_primal_dofs` does not change.
        """
        self._require_init()
        self._primals.custom_primal_constraints(entries)

    @log_process(logger)
    def compute_jump_matrices(self, *,
            fully_redundant: bool = False,
            exclude_corners: bool = False) -> None:
        """See :func:`~dualprimal.ieti.jumps.compute_jump_matrices`."""
        self._begin_phase(Phase.JUMP_MATRICES, "compute_jump_matrices")
        self._jump_matrices = compute_jump_matrices(
                self._registry,
                fully_redundant=fully_redundant,
                exclude_corners=exclude_corners)

    # }}}

    # {{{ solution

    def construct_global_solution_from_local_solutions(
            self, local_contribs: Sequence[np.ndarray]) -> np.ndarray:
        """See :func:`~dualprimal.ieti.solution.construct_global_solution_from_local_solutions`.
        """  # noqa: E501
        self._require_init()
        return construct_global_solution_from_local_solutions(
                self._registry, local_contribs)

    def restrict_global_solution(self,
            global_vector: np.ndarray) -> list[np.ndarray]:
        """See :func:`~dualprimal.ieti.solution.restrict_global_solution`."""
        self._require_init()
        return restrict_global_solution(self._registry, global_vector)

    # }}}

    # {{{ accessors

    @property
    def n_patches(self) -> int:
        self._require_init()
        return self._registry.npatches

    @property
    def dof_mapper_global(self) -> DofMapper:
        self._require_init()
        return self._registry.dof_mapper_global

    def dof_mapper_local(self, k: int) -> DofMapper:
        self._require_init()
        return self._registry.dof_mappers_local[k]

    def fixed_part(self, k: int) -> np.ndarray:
        self._require_init()
        return self._registry.fixed_parts[k]

    @property
    def has_artificial_dofs(self) -> bool:
        self._require_init()
        return self._registry.has_artificial_dofs

    @property
    def artificial_dof_index(self) -> ArtificialDofIndex | None:
        self._require_init()
        return self._artificial_dof_index

    def primal_constraints(self, k: int) -> list[sp.csc_matrix]:
        """Return copies of the constraint vectors of patch *k*."""
        self._require_init()
        return [constr.vector.copy() for constr in self._primals.constraints[k]]

    def primal_dof_indices(self, k: int) -> list[int]:
        self._require_init()
        return [constr.primal_index for constr in self._primals.constraints[k]]

    def all_primal_constraints(self, k: int) -> tuple[PrimalConstraint, ...]:
        self._require_init()
        return tuple(
                PrimalConstraint(constr.patch, constr.vector.copy(),
                    constr.primal_index)
                for constr in self._primals.constraints[k])

    @property
    def n_primal_dofs(self) -> int:
        self._require_init()
        return self._primals.n_primal_dofs

    def _require_jump_matrices(self):
        self._require_init()
        if self._jump_matrices is None:
            raise NotInitializedError(
                    "compute_jump_matrices has not been called")

    def jump_matrix(self, k: int) -> sp.csr_matrix:
        """Return a copy of the jump matrix of patch *k*."""
        self._require_jump_matrices()
        return self._jump_matrices.matrices[k].copy()

    @property
    def n_lagrange_multipliers(self) -> int:
        self._require_jump_matrices()
        return self._jump_matrices.n_lagrange_multipliers

    def skeleton_dofs(self, k: int) -> list[int]:
        """Return the local free indices of the coupled dofs of patch *k*."""
        self._require_init()
        gmapper = self._registry.dof_mapper_global
        lmapper = self._registry.dof_mappers_local[k]
        return [lmapper.index(i) for i in range(gmapper.patch_size(k))
                if gmapper.is_coupled(i, k)]

    # }}}

# }}}

# vim: foldmethod=marker
