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

from pytools import memoize_method

from dualprimal import Error


logger = logging.getLogger(__name__)

__doc__ = """
.. autoclass:: DofMapper
"""


# {{{ dof mapper

class DofMapper:
    """Maps the local indices of a number of patches to one global numbering.

    Each pair *(i, k)* of a patch-local index *i* on patch *k* is mapped to
    a global index. Pairs can be identified with :meth:`match_dofs` and
    marked as eliminated (Dirichlet) with :meth:`eliminate_dof` or
    :meth:`mark_boundary`. After :meth:`finalize`, the global indices are laid
    out as follows:

    * ``[0, free_size - coupled_size)``: free dofs with one preimage,
    * ``[free_size - coupled_size, free_size)``: free dofs with more than one
      preimage ("coupled" dofs),
    * ``[free_size, free_size + boundary_size)``: eliminated dofs.

    Within each range, dofs are ordered by their first preimage
    (lowest patch, then lowest local index).

    A mapper for a single patch with no matched dofs (see :meth:`identity`)
    serves as the local dof map of a patch.

    .. attribute:: num_patches
    .. attribute:: free_size
    .. attribute:: coupled_size
    .. attribute:: boundary_size
    .. attribute:: size

    .. automethod:: identity
    .. automethod:: match_dofs
    .. automethod:: eliminate_dof
    .. automethod:: mark_boundary
    .. automethod:: finalize
    .. automethod:: index
    .. automethod:: bindex
    .. automethod:: cindex
    .. automethod:: pre_image
    .. automethod:: inverse_on_patch
    """

    index_dtype = np.int32

    def __init__(self, patch_sizes: Sequence[int]) -> None:
        patch_sizes = np.asarray(patch_sizes, dtype=self.index_dtype)
        if patch_sizes.ndim != 1 or np.any(patch_sizes < 0):
            raise ValueError("patch_sizes must be a sequence of "
                    "non-negative integers")

        self._patch_sizes = patch_sizes
        self._patch_offsets = np.concatenate(
                [[0], np.cumsum(patch_sizes)]).astype(self.index_dtype)

        nslots = int(self._patch_offsets[-1])
        self._parent = np.arange(nslots, dtype=self.index_dtype)
        self._eliminated = np.zeros(nslots, dtype=bool)

        self._finalized = False
        self._dofs = None
        self._free_size = None
        self._coupled_size = None
        self._boundary_size = None

    @classmethod
    def identity(cls, size: int) -> "DofMapper":
        """Return an unfinalized mapper for one patch with *size* dofs, all
        of which map to distinct global indices.
        """
        return cls([size])

    # {{{ construction

    def _check_not_finalized(self):
        if self._finalized:
            raise Error("DofMapper has already been finalized")

    def _slot(self, i, k):
        k = int(k)
        if not 0 <= k < self.num_patches:
            raise IndexError(f"patch index {k} out of range")

        i = np.asarray(i, dtype=np.intp)
        if np.any(i < 0) or np.any(i >= self._patch_sizes[k]):
            raise IndexError(f"local index out of range on patch {k}")

        return self._patch_offsets[k] + i

    def _find(self, slot):
        root = slot
        while self._parent[root] != root:
            root = self._parent[root]

        while self._parent[slot] != root:
            self._parent[slot], slot = root, self._parent[slot]

        return root

    def match_dofs(self, k1: int, i1, k2: int, i2) -> None:
        """Identify the dofs *i1* on patch *k1* with the dofs *i2* on patch
        *k2*. *i1* and *i2* may be integers or equally long index arrays.
        """
        self._check_not_finalized()

        slots1 = np.atleast_1d(self._slot(i1, k1))
        slots2 = np.atleast_1d(self._slot(i2, k2))
        if slots1.shape != slots2.shape:
            raise ValueError("index arrays to be matched must have equal length")

        for s1, s2 in zip(slots1, slots2):
            r1 = self._find(int(s1))
            r2 = self._find(int(s2))
            if r1 != r2:
                self._parent[max(r1, r2)] = min(r1, r2)

    def eliminate_dof(self, i, k: int) -> None:
        """Mark the dof(s) *i* on patch *k* as eliminated. Every dof matched
        to an eliminated dof is eliminated as well.
        """
        self._check_not_finalized()
        self._eliminated[self._slot(i, k)] = True

    def mark_boundary(self, k: int, indices) -> None:
        self.eliminate_dof(indices, k)

    def finalize(self) -> "DofMapper":
        self._check_not_finalized()

        nslots = len(self._parent)
        roots = np.array([self._find(s) for s in range(nslots)],
                dtype=self.index_dtype)

        unique_roots, first_slots, class_of_slot, multiplicity = np.unique(
                roots, return_index=True, return_inverse=True,
                return_counts=True)
        del unique_roots

        nclasses = len(first_slots)
        class_eliminated = np.zeros(nclasses, dtype=bool)
        np.logical_or.at(class_eliminated, class_of_slot, self._eliminated)

        class_coupled = (multiplicity > 1) & ~class_eliminated
        class_single = (multiplicity == 1) & ~class_eliminated

        # order each range by the first preimage of the class
        order_key = first_slots
        class_to_global = np.empty(nclasses, dtype=self.index_dtype)
        base = 0
        for selected in [class_single, class_coupled, class_eliminated]:
            classes, = np.where(selected)
            classes = classes[np.argsort(order_key[classes], kind="stable")]
            class_to_global[classes] = np.arange(
                    base, base + len(classes), dtype=self.index_dtype)
            base += len(classes)

        self._dofs = class_to_global[class_of_slot]
        self._coupled_size = int(np.sum(class_coupled))
        self._free_size = int(np.sum(class_single)) + self._coupled_size
        self._boundary_size = int(np.sum(class_eliminated))
        self._finalized = True

        logger.debug("dof mapper: %d patches, %d free (%d coupled), "
                "%d eliminated dofs", self.num_patches, self._free_size,
                self._coupled_size, self._boundary_size)

        return self

    # }}}

    # {{{ queries

    def _check_finalized(self):
        if not self._finalized:
            raise Error("DofMapper has not been finalized")

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    @property
    def num_patches(self) -> int:
        return len(self._patch_sizes)

    def patch_size(self, k: int) -> int:
        return int(self._patch_sizes[k])

    @property
    def free_size(self) -> int:
        self._check_finalized()
        return self._free_size

    @property
    def coupled_size(self) -> int:
        self._check_finalized()
        return self._coupled_size

    @property
    def boundary_size(self) -> int:
        self._check_finalized()
        return self._boundary_size

    @property
    def size(self) -> int:
        return self.free_size + self.boundary_size

    def index(self, i, k: int = 0):
        """Return the global index of the dof(s) *i* on patch *k*."""
        self._check_finalized()
        result = self._dofs[self._slot(i, k)]
        if np.ndim(result) == 0:
            return int(result)
        return result

    def is_free_index(self, global_index):
        return global_index < self.free_size

    def is_boundary_index(self, global_index):
        return global_index >= self.free_size

    def is_coupled_index(self, global_index):
        return ((global_index >= self.free_size - self.coupled_size)
                & (global_index < self.free_size))

    def is_free(self, i, k: int = 0):
        return self.is_free_index(self.index(i, k))

    def is_boundary(self, i, k: int = 0):
        return self.is_boundary_index(self.index(i, k))

    def is_coupled(self, i, k: int = 0):
        return self.is_coupled_index(self.index(i, k))

    def global_to_bindex(self, global_index):
        if not np.all(self.is_boundary_index(global_index)):
            raise ValueError("not a boundary index")
        return global_index - self.free_size

    def bindex(self, i, k: int = 0):
        """Return the index of the eliminated dof(s) *i* on patch *k* within
        the boundary numbering ``[0, boundary_size)``.
        """
        return self.global_to_bindex(self.index(i, k))

    def cindex(self, i, k: int = 0):
        """Return the index of the coupled dof(s) *i* on patch *k* within
        the coupled numbering ``[0, coupled_size)``.
        """
        global_index = self.index(i, k)
        if not np.all(self.is_coupled_index(global_index)):
            raise ValueError("not a coupled index")
        return global_index - (self.free_size - self.coupled_size)

    @memoize_method
    def _pre_image_table(self):
        order = np.argsort(self._dofs, kind="stable")
        starts = np.searchsorted(self._dofs[order], np.arange(self.size + 1))
        patch_of_slot = np.searchsorted(
                self._patch_offsets, np.arange(len(self._dofs)),
                side="right") - 1
        return order, starts, patch_of_slot

    def pre_image(self, global_index: int) -> list[tuple[int, int]]:
        """Return all pairs *(k, i)* of patch *k* and patch-local index *i*
        that are mapped to *global_index*, ordered by patch and local index.
        """
        self._check_finalized()
        if not 0 <= global_index < self.size:
            raise IndexError(f"global index {global_index} out of range")

        order, starts, patch_of_slot = self._pre_image_table()
        result = []
        for slot in order[starts[global_index]:starts[global_index + 1]]:
            k = int(patch_of_slot[slot])
            result.append((k, int(slot - self._patch_offsets[k])))

        return result

    @memoize_method
    def inverse_on_patch(self, k: int) -> dict[int, int]:
        """Return a :class:`dict` mapping the global indices of the dofs on
        patch *k* to their patch-local indices. If several local indices
        share a global index, the largest one is retained.
        """
        self._check_finalized()
        start, end = self._patch_offsets[k:k+2]
        return {int(g): i for i, g in enumerate(self._dofs[start:end])}

    # }}}

    def __repr__(self):
        if not self._finalized:
            return (f"{type(self).__name__}(num_patches={self.num_patches}, "
                    "finalized=False)")
        return (f"{type(self).__name__}(num_patches={self.num_patches}, "
                f"free_size={self._free_size}, "
                f"coupled_size={self._coupled_size}, "
                f"boundary_size={self._boundary_size})")

# }}}

# vim: foldmethod=marker
