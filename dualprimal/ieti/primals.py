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
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from itertools import groupby

import numpy as np
import scipy.sparse as sp

from dualprimal import DimensionOutOfRangeError, ShapeMismatchError
from dualprimal.dof_mapper import DofMapper
from dualprimal.ieti.artificial import ArtificialDofIndex
from dualprimal.ieti.registry import DofRegistry
from dualprimal.patches import BoxComponent, BoxPatch, MultiPatch


logger = logging.getLogger(__name__)

__doc__ = """
.. autoclass:: PrimalConstraint
.. autoclass:: PrimalConstraintBuilder

.. autofunction:: assemble_average
.. autofunction:: as_constraint_vector
.. autofunction:: group_by_fingerprint
"""


@dataclass(frozen=True, eq=False)
class PrimalConstraint:
    """
    .. attribute:: patch
    .. attribute:: vector

        A :class:`scipy.sparse.csc_matrix` of shape ``(nfree, 1)`` over the
        local free dofs of :attr:`patch`.

    .. attribute:: primal_index
    """

    patch: int
    vector: sp.csc_matrix
    primal_index: int


# {{{ helpers

def as_constraint_vector(vector, nfree: int) -> sp.csc_matrix:
    """Convert *vector* (dense or sparse, row or column) into a sparse
    column of length *nfree*.
    """
    if sp.issparse(vector):
        result = sp.csc_matrix(vector)
    else:
        result = sp.csc_matrix(np.asarray(vector, dtype=np.float64).reshape(-1, 1))

    if result.shape == (1, nfree) and nfree != 1:
        result = result.T.tocsc()

    if result.shape != (nfree, 1):
        raise ShapeMismatchError(
                f"constraint vector has shape {result.shape}, "
                f"expected ({nfree}, 1)")

    result.sum_duplicates()
    result.eliminate_zeros()
    return result


def assemble_average(basis, patch: BoxPatch, local_mapper: DofMapper,
        component: BoxComponent) -> sp.csc_matrix:
    """Return the weighted average of the free dofs of *basis* on
    *component* as a sparse column over the free dofs of *local_mapper*.

    The weights are the moments of the constant function one against the
    basis functions restricted to *component*, normalized to sum to one
    over the free dofs. The result is empty if no free dof touches
    *component*.
    """
    indices = basis.component_indices(component)
    moments = basis.component_moments(component, patch)
    assert len(indices) == len(moments)

    local_indices = local_mapper.index(indices)
    is_free = local_mapper.is_free_index(local_indices)

    rows = local_indices[is_free]
    values = moments[is_free]
    if len(rows):
        values = values / np.sum(values)

    result = sp.csc_matrix(
            (values, (rows, np.zeros_like(rows))),
            shape=(local_mapper.free_size, 1))
    result.sum_duplicates()
    result.eliminate_zeros()
    return result


@dataclass(frozen=True, eq=False)
class _FingerprintedConstraint:
    fingerprint: tuple[int, ...]
    patch: int
    vector: sp.csc_matrix


def _fingerprint_key(entry: _FingerprintedConstraint):
    return (len(entry.fingerprint), entry.fingerprint)


def group_by_fingerprint(entries: Iterable[_FingerprintedConstraint]
        ) -> list[list[_FingerprintedConstraint]]:
    """Sort *entries* by fingerprint (shorter fingerprints first, then
    lexicographically) and split them into maximal runs of equal
    fingerprint.
    """
    ordered = sorted(entries, key=_fingerprint_key)
    return [list(run) for _, run in groupby(ordered, key=_fingerprint_key)]

# }}}


# {{{ primal constraint builder

class PrimalConstraintBuilder:
    """Accumulates primal constraints and the number of primal dofs.

    Each generator creates new primal dofs, numbered consecutively from
    :attr:`n_primal_dofs`. The builder does not check whether a generator
    is called more than once; see :class:`~dualprimal.ieti.IetiMapper`.

    .. attribute:: n_primal_dofs
    .. attribute:: constraints

        A :class:`tuple` with one list of :class:`PrimalConstraint`
        instances per patch, in order of creation.

    .. automethod:: corners_as_primals
    .. automethod:: interface_averages_as_primals
    .. automethod:: custom_primal_constraints
    """

    def __init__(self, registry: DofRegistry,
            artificial_dof_index: ArtificialDofIndex | None = None) -> None:
        if registry.has_artificial_dofs and artificial_dof_index is None:
            raise ValueError("registry has artificial dofs, "
                    "need an artificial dof index")

        self.registry = registry
        self.artificial_dof_index = artificial_dof_index
        self.n_primal_dofs = 0
        self.constraints = tuple([] for _ in range(registry.npatches))

    def _new_primal_dof(self) -> int:
        self.n_primal_dofs += 1
        return self.n_primal_dofs - 1

    def _push(self, patch: int, vector: sp.csc_matrix, primal_index: int):
        self.constraints[patch].append(
                PrimalConstraint(patch, vector, primal_index))

    # {{{ corners

    def corners_as_primals(self) -> int:
        """Add one primal dof per distinct free corner dof. A corner that
        occurs on several patches (natively or as artificial dof) yields
        one unit constraint per occurrence, all sharing one primal dof.

        :returns: the number of primal dofs created.
        """
        registry = self.registry
        gmapper = registry.dof_mapper_global

        occurrences = []
        for k, basis in enumerate(registry.bases):
            lmapper = registry.dof_mappers_local[k]
            for corner in BoxComponent.corners(basis.dim):
                idx = basis.function_at_corner(corner)
                global_index = gmapper.index(idx, k)
                if not gmapper.is_free_index(global_index):
                    continue

                if self.artificial_dof_index is not None:
                    occurrences.extend(
                            (global_index, patch, local_index)
                            for patch, local_index
                            in self.artificial_dof_index.occurrences(
                                global_index))
                else:
                    occurrences.append((global_index, k, lmapper.index(idx)))

        nprimals_before = self.n_primal_dofs
        for _, run in groupby(sorted(set(occurrences)), key=lambda occ: occ[0]):
            primal_index = self._new_primal_dof()
            for _, patch, local_index in run:
                self._push(patch,
                        sp.csc_matrix(
                            ([1.0], ([local_index], [0])),
                            shape=(registry.nfree(patch), 1)),
                        primal_index)

        ncreated = self.n_primal_dofs - nprimals_before
        logger.info("corners as primals: %d primal dofs from %d corner "
                "occurrences", ncreated, len(set(occurrences)))
        return ncreated

    # }}}

    # {{{ interface averages

    def _fingerprint(self, k: int, vector: sp.csc_matrix) -> tuple[int, ...]:
        inverse = self.registry.dof_mappers_local[k].inverse_on_patch(0)
        gmapper = self.registry.dof_mapper_global
        return tuple(sorted(
                gmapper.index(inverse[int(row)], k) for row in vector.indices))

    def interface_averages_as_primals(self, geometry: MultiPatch,
            d: int) -> int:
        """Add averages over the components of dimension *d* of *geometry*
        as primal constraints.

        For each component, every touching patch contributes a weighted
        average (see :func:`assemble_average`). Averages touching the same
        global dofs are tied to one new primal dof. Averages touching a set
        of global dofs no other average touches are dropped, unless *d*
        equals the dimension of the patches.

        :returns: the number of primal dofs created.
        """
        registry = self.registry
        dim = registry.dim
        if not 1 <= d <= dim:
            raise DimensionOutOfRangeError(
                    f"component dimension must be in [1, {dim}]: got {d}")
        if geometry.npatches != registry.npatches:
            raise ShapeMismatchError(
                    f"geometry has {geometry.npatches} patches, expected "
                    f"{registry.npatches}")
        if geometry.dim != dim:
            raise ShapeMismatchError(
                    f"geometry has dimension {geometry.dim}, expected {dim}")

        nprimals_before = self.n_primal_dofs
        ndropped = 0
        for group in geometry.all_components():
            if group[0].dim != d:
                continue

            entries = []
            for patch_comp in group:
                k = patch_comp.patch
                vector = assemble_average(
                        registry.bases[k], geometry.patches[k],
                        registry.dof_mappers_local[k], patch_comp.component)
                if vector.nnz == 0:
                    continue

                fingerprint = self._fingerprint(k, vector)

                if self.artificial_dof_index is not None:
                    entries.extend(
                            _FingerprintedConstraint(fingerprint, peer, peer_vec)
                            for peer, peer_vec
                            in self.artificial_dof_index.transfer_to_peers(
                                k, vector))

                entries.append(_FingerprintedConstraint(fingerprint, k, vector))

            for run in group_by_fingerprint(entries):
                if len(run) == 1 and d != dim:
                    ndropped += 1
                    continue

                primal_index = self._new_primal_dof()
                for entry in run:
                    self._push(entry.patch, entry.vector, primal_index)

        ncreated = self.n_primal_dofs - nprimals_before
        logger.info("interface averages (d=%d) as primals: %d primal dofs, "
                "%d unshared averages dropped", d, ncreated, ndropped)
        return ncreated

    # }}}

    # {{{ custom

    def custom_primal_constraints(self,
            entries: Sequence[tuple[int, object]]) -> int:
        """Tie all *(patch, vector)* pairs in *entries* to one new primal
        dof.

        The vectors are not checked for consistency with each other, e.g.
        whether they describe the same functional on an interface; this is
        the caller's responsibility. Each vector must have one entry per
        local free dof of its patch.

        An empty *entries* does not reserve a primal dof, so that
        :attr:`n_primal_dofs` only counts primal dofs that carry at least
        one constraint.

        :returns: the number of primal dofs created (zero for empty
            *entries*, else one).
        """
        registry = self.registry
        converted = []
        for patch, vector in entries:
            if not 0 <= patch < registry.npatches:
                raise ShapeMismatchError(f"patch index {patch} out of range")
            converted.append(
                    (patch, as_constraint_vector(vector, registry.nfree(patch))))

        if not converted:
            return 0

        primal_index = self._new_primal_dof()
        for patch, vector in converted:
            self._push(patch, vector, primal_index)

        logger.debug("custom primal dof %d on %d patches",
                primal_index, len(converted))
        return 1

    # }}}

# }}}

# vim: foldmethod=marker
