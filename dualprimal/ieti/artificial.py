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
from collections.abc import Mapping

import numpy as np
import scipy.sparse as sp

from dualprimal import InternalConsistencyError
from dualprimal.ieti.registry import DofRegistry


logger = logging.getLogger(__name__)

__doc__ = """
.. autoclass:: ArtificialDofIndex
"""


# {{{ artificial dof index

class ArtificialDofIndex:
    """Correspondence between artificial dofs and the native dofs they
    duplicate.

    Every free global index with a native preimage has exactly one *owner*,
    the pair *(patch, local free index)* of that preimage. An artificial dof
    on patch *peer* that is mapped to the same global index is an *alias* of
    the owner's dof. Aliases are recorded with the owning patch: for each
    peer, a :class:`dict` from the owner's local free index to the peer's
    patch-local index. Dofs without an alias on a peer are simply absent
    from the peer's table.

    .. automethod:: owner
    .. automethod:: peers
    .. automethod:: occurrences
    .. automethod:: transfer_to_peers
    """

    def __init__(self, registry: DofRegistry) -> None:
        gmapper = registry.dof_mapper_global
        self.registry = registry

        owners: dict[int, tuple[int, int]] = {}
        for k in range(registry.npatches):
            lmapper = registry.dof_mappers_local[k]
            for i in range(registry.native_sizes[k]):
                global_index = gmapper.index(i, k)
                if not gmapper.is_free_index(global_index):
                    continue

                if global_index in owners:
                    other_k, _ = owners[global_index]
                    raise InternalConsistencyError(
                            f"free global dof {global_index} is native both "
                            f"on patch {other_k} and on patch {k}")

                owners[global_index] = (k, lmapper.index(i))

        aliases: list[dict[int, dict[int, int]]] = [
                {} for _ in range(registry.npatches)]
        nartificial = 0
        for k in range(registry.npatches):
            for i in range(registry.native_sizes[k], gmapper.patch_size(k)):
                global_index = gmapper.index(i, k)
                if not gmapper.is_free_index(global_index):
                    continue

                try:
                    owner_patch, owner_index = owners[global_index]
                except KeyError:
                    raise InternalConsistencyError(
                            f"artificial dof {i} on patch {k} does not "
                            "correspond to any native dof") from None

                aliases[owner_patch].setdefault(k, {})[owner_index] = i
                nartificial += 1

        self._owners = owners
        self._aliases = aliases

        logger.info("artificial dof index: %d artificial dofs", nartificial)

    def owner(self, global_index: int) -> tuple[int, int] | None:
        """Return the pair *(patch, local free index)* of the native dof
        mapped to *global_index*, or *None* if there is none.
        """
        return self._owners.get(global_index)

    def peers(self, k: int) -> Mapping[int, Mapping[int, int]]:
        """Return the alias tables of the dofs owned by patch *k*, keyed by
        the aliasing patch.
        """
        return self._aliases[k]

    def occurrences(self, global_index: int) -> list[tuple[int, int]]:
        """Return all pairs *(patch, local free index)* at which the free
        dof *global_index* occurs, including its owner and all aliases.
        """
        registry = self.registry
        pre_images = registry.dof_mapper_global.pre_image(global_index)
        logger.debug("found %d pre-images of dof %d",
                len(pre_images), global_index)

        return [(k, registry.dof_mappers_local[k].index(i))
                for k, i in pre_images]

    def transfer_to_peers(self, k: int,
            vector: sp.csc_matrix) -> list[tuple[int, sp.csc_matrix]]:
        """Copy *vector*, a sparse column over the local free dofs of patch
        *k*, to every peer whose aliases cover all of its nonzeros.

        :returns: a list of pairs *(peer, vector on peer)*.
        """
        vector = sp.csc_matrix(vector)
        rows = vector.indices
        values = vector.data

        result = []
        for peer, table in self._aliases[k].items():
            if not all(int(row) in table for row in rows):
                continue

            lmapper = self.registry.dof_mappers_local[peer]
            peer_rows = np.array(
                    [lmapper.index(table[int(row)]) for row in rows],
                    dtype=np.intp)
            result.append((peer, sp.csc_matrix(
                    (values, (peer_rows, np.zeros_like(peer_rows))),
                    shape=(lmapper.free_size, 1))))

        return result

# }}}

# vim: foldmethod=marker
