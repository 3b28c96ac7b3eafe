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

from collections.abc import Sequence

import numpy as np

from dualprimal import ShapeMismatchError
from dualprimal.ieti.registry import DofRegistry


__doc__ = """
.. autofunction:: construct_global_solution_from_local_solutions
.. autofunction:: restrict_global_solution
"""


def construct_global_solution_from_local_solutions(
        registry: DofRegistry,
        local_contribs: Sequence[np.ndarray]) -> np.ndarray:
    """Assemble the global free-dof vector from one vector per patch.

    *local_contribs[k]* has one row per local free dof of patch *k* (and
    optionally further columns). For every native dof of patch *k* that is
    free, its row is copied to the global vector. Artificial dofs are never
    read. If two patches provide a value for the same global dof, the value
    of the later patch is kept.
    """
    npatches = registry.npatches
    if len(local_contribs) != npatches:
        raise ShapeMismatchError(
                f"got {len(local_contribs)} local contributions, "
                f"expected {npatches}")

    local_contribs = [np.asarray(contrib) for contrib in local_contribs]
    trailing_shapes = {contrib.shape[1:] for contrib in local_contribs}
    if len(trailing_shapes) > 1:
        raise ShapeMismatchError("local contributions differ in their "
                f"number of columns: {trailing_shapes}")

    for k, contrib in enumerate(local_contribs):
        if contrib.ndim == 0 or contrib.shape[0] != registry.nfree(k):
            raise ShapeMismatchError(
                    f"local contribution {k} has shape {contrib.shape}, "
                    f"expected {registry.nfree(k)} rows")

    gmapper = registry.dof_mapper_global
    trailing_shape, = trailing_shapes if trailing_shapes else ((),)
    dtype = np.result_type(*local_contribs) if local_contribs else np.float64
    result = np.zeros((gmapper.free_size,) + trailing_shape, dtype=dtype)

    for k, contrib in enumerate(local_contribs):
        native = registry.native_free_indices(k)
        if not len(native):
            continue

        # plain assignment, later patches win
        result[gmapper.index(native, k)] = contrib[
                registry.dof_mappers_local[k].index(native)]

    return result


def restrict_global_solution(
        registry: DofRegistry,
        global_vector: np.ndarray) -> list[np.ndarray]:
    """Return one vector per patch with the values of *global_vector* at the
    local free dofs of the patch, including artificial dofs.
    """
    gmapper = registry.dof_mapper_global
    global_vector = np.asarray(global_vector)
    if global_vector.ndim == 0 or global_vector.shape[0] != gmapper.free_size:
        raise ShapeMismatchError(
                f"global vector has shape {global_vector.shape}, "
                f"expected {gmapper.free_size} rows")

    result = []
    for k in range(registry.npatches):
        lmapper = registry.dof_mappers_local[k]
        local_vector = np.zeros(
                (lmapper.free_size,) + global_vector.shape[1:],
                dtype=global_vector.dtype)

        indices = np.arange(gmapper.patch_size(k), dtype=np.intp)
        local_indices = lmapper.index(indices)
        is_free = lmapper.is_free_index(local_indices)

        local_vector[local_indices[is_free]] = global_vector[
                gmapper.index(indices[is_free], k)]
        result.append(local_vector)

    return result
