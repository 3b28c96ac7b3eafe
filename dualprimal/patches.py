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
from collections.abc import Collection, Sequence
from dataclasses import dataclass
from itertools import product

import numpy as np

import modepy as mp
from pytools import memoize_method

from dualprimal.dof_mapper import DofMapper
from dualprimal.tools import default_point_tolerance, find_point_to_point_mapping


logger = logging.getLogger(__name__)

__doc__ = """
Patches
-------

.. autoclass:: BoxComponent
.. autoclass:: PatchComponent
.. autoclass:: TensorProductLagrangeBasis
.. autoclass:: BoxPatch
.. autoclass:: MultiPatch
"""


# {{{ box components

@dataclass(frozen=True)
class BoxComponent:
    """A component (corner, edge, face, ..., or the interior) of the unit
    box ``[0, 1]^dim``.

    .. attribute:: sides

        A :class:`tuple` with one entry per axis: ``0`` if the component lies
        on the lower end of the axis, ``1`` if it lies on the upper end, and
        *None* if the component extends along the axis.

    .. attribute:: dim

        The dimension of the component, i.e. the number of axes along
        which it extends.
    """

    sides: tuple[int | None, ...]

    def __post_init__(self):
        for side in self.sides:
            if side not in (0, 1, None):
                raise ValueError(f"invalid side specification: {side!r}")

    @property
    def ambient_dim(self) -> int:
        return len(self.sides)

    @property
    def dim(self) -> int:
        return sum(1 for side in self.sides if side is None)

    @property
    def is_corner(self) -> bool:
        return self.dim == 0

    @property
    def free_axes(self) -> tuple[int, ...]:
        return tuple(iaxis for iaxis, side in enumerate(self.sides)
                if side is None)

    @classmethod
    def corners(cls, dim: int) -> list["BoxComponent"]:
        """Return the ``2**dim`` corners of the box, with the side along
        axis 0 varying fastest.
        """
        return [cls(tuple(reversed(sides)))
                for sides in product((0, 1), repeat=dim)]

    @classmethod
    def sides_of_box(cls, dim: int) -> list["BoxComponent"]:
        """Return the ``2*dim`` faces of dimension ``dim - 1``."""
        return [cls(tuple(side if iaxis == jaxis else None
                    for jaxis in range(dim)))
                for iaxis in range(dim)
                for side in (0, 1)]

    @classmethod
    def all_components(cls, dim: int) -> list["BoxComponent"]:
        """Return all ``3**dim`` components, ordered by dimension."""
        comps = [cls(tuple(reversed(sides)))
                for sides in product((0, 1, None), repeat=dim)]
        return sorted(comps, key=lambda comp: comp.dim)

    def __repr__(self):
        return f"BoxComponent({self.sides!r})"


@dataclass(frozen=True)
class PatchComponent:
    """A :class:`BoxComponent` of patch number *patch*."""

    patch: int
    component: BoxComponent

    @property
    def dim(self) -> int:
        return self.component.dim

# }}}


# {{{ tensor product Lagrange basis

def _reference_weights_1d(order: int) -> np.ndarray:
    """Integrals over ``[-1, 1]`` of the nodal Lagrange basis functions of
    degree *order* at the Legendre-Gauss-Lobatto nodes.
    """
    from modepy.quadrature.jacobi_gauss import legendre_gauss_lobatto_nodes
    nodes = np.sort(legendre_gauss_lobatto_nodes(order)).reshape(1, -1)
    basis = mp.orthonormal_basis_for_space(mp.QN(1, order), mp.Hypercube(1))

    # the nodal basis is a partition of unity
    mass_matrix = mp.mass_matrix(basis, nodes)
    return mass_matrix @ np.ones(nodes.shape[1])


class TensorProductLagrangeBasis:
    """A continuous, piecewise polynomial nodal basis on the unit box
    ``[0, 1]^dim`` with uniform elements and Legendre-Gauss-Lobatto nodes
    per element.

    Basis functions are numbered lexicographically with the index along
    axis 0 varying fastest.

    .. attribute:: dim
    .. attribute:: order
    .. attribute:: nelements

        A :class:`tuple` with the number of elements along each axis.

    .. attribute:: shape

        A :class:`tuple` with the number of basis functions along each axis.

    .. attribute:: size

    .. automethod:: function_at_corner
    .. automethod:: component_indices
    .. automethod:: component_moments
    .. automethod:: unit_nodes
    """

    def __init__(self, dim: int, order: int = 1,
            nelements: int | Sequence[int] = 1) -> None:
        if dim < 1:
            raise ValueError(f"dim must be positive: got {dim}")
        if order < 1:
            raise ValueError(f"order must be positive: got {order}")

        if isinstance(nelements, int):
            nelements = (nelements,) * dim
        nelements = tuple(int(n) for n in nelements)
        if len(nelements) != dim or any(n < 1 for n in nelements):
            raise ValueError(f"invalid number of elements: {nelements}")

        self.dim = dim
        self.order = order
        self.nelements = nelements

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(nel * self.order + 1 for nel in self.nelements)

    @property
    def size(self) -> int:
        return int(np.prod(self.shape))

    @property
    @memoize_method
    def strides(self) -> tuple[int, ...]:
        return tuple(int(s) for s in np.cumprod((1,) + self.shape[:-1]))

    def flat_index(self, multi_index) -> int:
        return int(sum(i*s for i, s in zip(multi_index, self.strides)))

    # {{{ 1D data

    @memoize_method
    def unit_nodes_1d(self, iaxis: int) -> np.ndarray:
        """Node coordinates in ``[0, 1]`` along axis *iaxis*."""
        from modepy.quadrature.jacobi_gauss import legendre_gauss_lobatto_nodes
        ref_nodes = np.sort(legendre_gauss_lobatto_nodes(self.order))

        nel = self.nelements[iaxis]
        result = np.empty(self.shape[iaxis])
        for iel in range(nel):
            el_nodes = (iel + 0.5*(ref_nodes + 1))/nel
            result[iel*self.order:(iel+1)*self.order + 1] = el_nodes

        return result

    @memoize_method
    def weights_1d(self, iaxis: int) -> np.ndarray:
        """Integrals over ``[0, 1]`` of the basis functions along *iaxis*."""
        ref_weights = _reference_weights_1d(self.order)

        nel = self.nelements[iaxis]
        result = np.zeros(self.shape[iaxis])
        for iel in range(nel):
            result[iel*self.order:(iel+1)*self.order + 1] += (
                    ref_weights / (2*nel))

        return result

    # }}}

    def unit_nodes(self) -> np.ndarray:
        """Return node coordinates of shape ``(dim, size)`` in the unit box."""
        grids = np.meshgrid(
                *[self.unit_nodes_1d(iaxis) for iaxis in range(self.dim)],
                indexing="ij")
        return np.array([grid.ravel(order="F") for grid in grids])

    def function_at_corner(self, corner: BoxComponent) -> int:
        """Return the index of the basis function that is one at *corner*."""
        if not corner.is_corner or corner.ambient_dim != self.dim:
            raise ValueError(f"not a corner of a {self.dim}D box: {corner}")

        return self.flat_index(
                0 if side == 0 else n - 1
                for side, n in zip(corner.sides, self.shape))

    def _component_axis_indices(self, component):
        if component.ambient_dim != self.dim:
            raise ValueError(f"not a component of a {self.dim}D box: "
                    f"{component}")

        return [
                np.arange(n) if side is None
                else np.array([0 if side == 0 else n - 1])
                for side, n in zip(component.sides, self.shape)]

    def component_indices(self, component: BoxComponent) -> np.ndarray:
        """Return the indices of the basis functions that do not vanish on
        *component*, with the index along the first free axis varying
        fastest.
        """
        axis_indices = self._component_axis_indices(component)
        grids = np.meshgrid(*axis_indices, indexing="ij")
        return sum(grid.ravel(order="F") * stride
                for grid, stride in zip(grids, self.strides))

    def component_moments(self, component: BoxComponent,
            patch: "BoxPatch") -> np.ndarray:
        """Return the integrals of the basis functions restricted to
        *component* of *patch* over the component, in the order of
        :meth:`component_indices`.
        """
        weights = [
                self.weights_1d(iaxis) * patch.extent[iaxis] if side is None
                else np.ones(1)
                for iaxis, side in enumerate(component.sides)]

        grids = np.meshgrid(*weights, indexing="ij")
        return np.prod([grid.ravel(order="F") for grid in grids], axis=0)

    def __repr__(self):
        return (f"{type(self).__name__}(dim={self.dim}, order={self.order}, "
                f"nelements={self.nelements})")

# }}}


# {{{ box patch

class BoxPatch:
    """An axis-aligned box ``[lower, upper]`` in ``dim`` dimensions.

    .. attribute:: lower
    .. attribute:: upper
    .. attribute:: extent
    .. attribute:: dim
    """

    def __init__(self, lower, upper) -> None:
        lower = np.asarray(lower, dtype=np.float64)
        upper = np.asarray(upper, dtype=np.float64)
        if lower.shape != upper.shape or lower.ndim != 1:
            raise ValueError("lower and upper must be vectors of equal length")
        if np.any(upper <= lower):
            raise ValueError("box must have positive extent along all axes")

        self.lower = lower
        self.upper = upper

    @property
    def dim(self) -> int:
        return len(self.lower)

    @property
    def extent(self) -> np.ndarray:
        return self.upper - self.lower

    def map_points(self, unit_points: np.ndarray) -> np.ndarray:
        return self.lower.reshape(-1, 1) + self.extent.reshape(-1, 1)*unit_points

    def nodes(self, basis: TensorProductLagrangeBasis) -> np.ndarray:
        return self.map_points(basis.unit_nodes())

    def component_bounds(self, component: BoxComponent) -> np.ndarray:
        """Return the bounding box of *component* as an array
        ``[lower_0, ..., lower_{dim-1}, upper_0, ..., upper_{dim-1}]``.
        """
        lower = self.lower.copy()
        upper = self.upper.copy()
        for iaxis, side in enumerate(component.sides):
            if side == 0:
                upper[iaxis] = lower[iaxis]
            elif side == 1:
                lower[iaxis] = upper[iaxis]

        return np.concatenate([lower, upper])

    def __repr__(self):
        return f"{type(self).__name__}({self.lower.tolist()}, {self.upper.tolist()})"

# }}}


# {{{ multipatch

class MultiPatch:
    """A conforming arrangement of :class:`BoxPatch` instances, each
    carrying a :class:`TensorProductLagrangeBasis`.

    .. attribute:: patches
    .. attribute:: bases
    .. attribute:: dim
    .. attribute:: npatches

    .. automethod:: all_components
    .. automethod:: make_dof_mapper
    """

    def __init__(self, patches: Sequence[BoxPatch],
            bases: Sequence[TensorProductLagrangeBasis], *,
            tol: float | None = None) -> None:
        if len(patches) != len(bases):
            raise ValueError("need exactly one basis per patch")
        if not patches:
            raise ValueError("need at least one patch")

        dims = {patch.dim for patch in patches} | {basis.dim for basis in bases}
        if len(dims) != 1:
            raise ValueError(f"patches and bases disagree in dimension: {dims}")

        self.patches = tuple(patches)
        self.bases = tuple(bases)
        self.dim, = dims

        if tol is None:
            tol = default_point_tolerance(
                    np.array([patch.upper for patch in patches]).T)
        self.tol = tol

    @property
    def npatches(self) -> int:
        return len(self.patches)

    @memoize_method
    def all_components(self) -> list[list[PatchComponent]]:
        """Return the maximal components of the arrangement: each entry is a
        list of the :class:`PatchComponent` instances that coincide
        geometrically. The result is ordered by dimension, then by the first
        patch component of each entry.
        """
        result = []
        for comp_dim in range(self.dim + 1):
            groups = []
            representatives = []
            for ipatch, patch in enumerate(self.patches):
                for comp in BoxComponent.all_components(self.dim):
                    if comp.dim != comp_dim:
                        continue

                    bounds = patch.component_bounds(comp).reshape(-1, 1)
                    igroup = -1
                    if representatives:
                        igroup, = find_point_to_point_mapping(
                                bounds, np.hstack(representatives), tol=self.tol)

                    if igroup < 0:
                        representatives.append(bounds)
                        groups.append([])

                    groups[igroup].append(PatchComponent(ipatch, comp))

            result.extend(groups)

        logger.debug("multipatch: %d components", len(result))
        return result

    def boundary_sides(self) -> list[PatchComponent]:
        """Return the patch faces of dimension ``dim - 1`` that are not
        shared with another patch.
        """
        return [group[0] for group in self.all_components()
                if group[0].dim == self.dim - 1 and len(group) == 1]

    def make_dof_mapper(self, *,
            dirichlet: str | Collection[PatchComponent] | None = "all",
            ) -> DofMapper:
        """Build the global :class:`~dualprimal.dof_mapper.DofMapper`.

        Nodes on shared patch faces are identified. Nodes on the sides
        given in *dirichlet* are eliminated: *"all"* selects every side
        that is not shared with another patch, *None* selects none.
        """
        mapper = DofMapper([basis.size for basis in self.bases])

        for group in self.all_components():
            if group[0].dim != self.dim - 1 or len(group) < 2:
                continue

            ref = group[0]
            ref_basis = self.bases[ref.patch]
            ref_indices = ref_basis.component_indices(ref.component)
            ref_nodes = self.patches[ref.patch].nodes(ref_basis)[:, ref_indices]

            for other in group[1:]:
                basis = self.bases[other.patch]
                indices = basis.component_indices(other.component)
                nodes = self.patches[other.patch].nodes(basis)[:, indices]

                other_to_ref = find_point_to_point_mapping(
                        nodes, ref_nodes, tol=self.tol)
                if len(indices) != len(ref_indices) or np.any(other_to_ref < 0):
                    raise ValueError(
                            f"nonconforming interface between patch {ref.patch} "
                            f"and patch {other.patch}")

                mapper.match_dofs(
                        other.patch, indices,
                        ref.patch, ref_indices[other_to_ref])

        if isinstance(dirichlet, str):
            if dirichlet != "all":
                raise ValueError(f"unknown dirichlet specification: {dirichlet}")
            dirichlet = self.boundary_sides()
        elif dirichlet is None:
            dirichlet = []

        for side in dirichlet:
            mapper.mark_boundary(side.patch,
                    self.bases[side.patch].component_indices(side.component))

        return mapper.finalize()

# }}}

# vim: foldmethod=marker
