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
from collections.abc import Sequence

import numpy as np

from dualprimal import NotInitializedError, ShapeMismatchError
from dualprimal.dof_mapper import DofMapper


logger = logging.getLogger(__name__)

__doc__ = """
.. autoclass:: DofRegistry
"""


# {{{ dof registry

class DofRegistry:
    """Per-patch local dof maps and Dirichlet values derived from a global
    :class:`~dualprimal.dof_mapper.DofMapper`.

    The first ``native_sizes[k]`` local indices of patch *k* belong to the
    basis of the patch. Any further indices of the patch in the global
    mapper are *artificial* dofs, i.e. copies of dofs owned by another
    patch.

    .. attribute:: bases

        The native bases, one per patch.

    .. attribute:: native_sizes
    .. attribute:: dof_mapper_global
    .. attribute:: dof_mappers_local

        A :class:`tuple` of single-patch
        :class:`~dualprimal.dof_mapper.DofMapper` instances. The free
        numbering of ``dof_mappers_local[k]`` is the local free numbering of
        patch *k*.

    .. attribute:: fixed_parts

        A :class:`tuple` of read-only arrays holding the prescribed values
        on the eliminated dofs of each patch, in local boundary numbering.

    *dof_mapper_global* must be finalized.

    .. attribute:: has_artificial_dofs
    .. attribute:: dim

    .. automethod:: nfree
    .. automethod:: native_free_indices
    """

    def __init__(self,
            bases: Sequence,
            dof_mapper_global: DofMapper,
            fixed_values: np.ndarray | None = None) -> None:
        npatches = dof_mapper_global.num_patches
        if len(bases) != npatches:
            raise ShapeMismatchError(
                    f"number of bases ({len(bases)}) does not agree with "
                    f"number of patches in the dof mapper ({npatches})")

        dims = {basis.dim for basis in bases}
        if len(dims) > 1:
            raise ShapeMismatchError(f"bases disagree in dimension: {dims}")

        if not dof_mapper_global.is_finalized:
            raise NotInitializedError("global dof mapper has not been finalized")

        if fixed_values is None:
            fixed_values = np.zeros(dof_mapper_global.boundary_size)
        fixed_values = np.asarray(fixed_values)
        if (fixed_values.ndim == 0
                or fixed_values.shape[0] != dof_mapper_global.boundary_size):
            raise ShapeMismatchError(
                    f"fixed values have shape {fixed_values.shape}, expected "
                    f"{dof_mapper_global.boundary_size} rows")

        native_sizes = tuple(int(basis.size) for basis in bases)
        has_artificial_dofs = False

        dof_mappers_local = []
        fixed_parts = []
        for k in range(npatches):
            ndofs = dof_mapper_global.patch_size(k)
            if ndofs < native_sizes[k]:
                raise ShapeMismatchError(
                        f"the mapper for patch {k} has fewer dofs ({ndofs}) "
                        f"than the corresponding basis ({native_sizes[k]})")
            if ndofs > native_sizes[k]:
                has_artificial_dofs = True

            global_indices = dof_mapper_global.index(
                    np.arange(ndofs, dtype=np.intp), k)
            is_boundary = dof_mapper_global.is_boundary_index(global_indices)
            boundary_local, = np.where(is_boundary)

            local_mapper = DofMapper.identity(ndofs)
            local_mapper.eliminate_dof(boundary_local, 0)
            local_mapper.finalize()
            dof_mappers_local.append(local_mapper)

            fixed_part = np.zeros(
                    (local_mapper.boundary_size,) + fixed_values.shape[1:],
                    dtype=fixed_values.dtype)
            if len(boundary_local):
                fixed_part[local_mapper.bindex(boundary_local)] = fixed_values[
                        dof_mapper_global.global_to_bindex(
                            global_indices[boundary_local])]

            fixed_part.setflags(write=False)
            fixed_parts.append(fixed_part)

        self.bases = tuple(bases)
        self.native_sizes = native_sizes
        self.dof_mapper_global = dof_mapper_global
        self.dof_mappers_local = tuple(dof_mappers_local)
        self.fixed_parts = tuple(fixed_parts)
        self.has_artificial_dofs = has_artificial_dofs

        logger.info("dof registry: %d patches, %d global free dofs, "
                "artificial dofs: %s", npatches, dof_mapper_global.free_size,
                has_artificial_dofs)

    @property
    def npatches(self) -> int:
        return len(self.bases)

    @property
    def dim(self) -> int:
        return self.bases[0].dim

    def nfree(self, k: int) -> int:
        """Return the number of local free dofs of patch *k*."""
        return self.dof_mappers_local[k].free_size

    def native_free_indices(self, k: int) -> np.ndarray:
        """Return the native patch-local indices of patch *k* that are free
        both locally and globally.
        """
        local_mapper = self.dof_mappers_local[k]
        native = np.arange(self.native_sizes[k], dtype=np.intp)
        is_free = (
                local_mapper.is_free_index(local_mapper.index(native))
                & self.dof_mapper_global.is_free_index(
                    self.dof_mapper_global.index(native, k)))
        return native[is_free]

# }}}

# vim: foldmethod=marker
