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
import pytest
import scipy.sparse as sp

from dualprimal import (
    AlreadyCompletedError, AlreadyInitializedError, DimensionOutOfRangeError,
    Error, InternalConsistencyError, NotInitializedError, ShapeMismatchError)
from dualprimal.dof_mapper import DofMapper
from dualprimal.ieti import IetiMapper, Phase
from dualprimal.ieti.primals import _FingerprintedConstraint, group_by_fingerprint
from dualprimal.ieti.registry import DofRegistry
from dualprimal.patches import BoxPatch, MultiPatch, TensorProductLagrangeBasis


logger = logging.getLogger(__name__)


# {{{ setups

def _make_two_squares(order=1, nelements=3):
    patches = [BoxPatch([0, 0], [1, 1]), BoxPatch([1, 0], [2, 1])]
    bases = [TensorProductLagrangeBasis(2, order=order, nelements=nelements)
            for _ in patches]
    return MultiPatch(patches, bases)


def _make_four_squares():
    patches = [BoxPatch([i, j], [i+1, j+1]) for j in range(2) for i in range(2)]
    bases = [TensorProductLagrangeBasis(2) for _ in patches]
    return MultiPatch(patches, bases)


def _make_artificial_1d():
    # two intervals, each carrying a copy of the neighbor's interface dof
    # as local index 3
    bases = [TensorProductLagrangeBasis(1, order=1, nelements=2)
            for _ in range(2)]
    mapper = DofMapper([4, 4])
    mapper.match_dofs(0, 3, 1, 0)
    mapper.match_dofs(1, 3, 0, 2)
    mapper.finalize()

    geometry = MultiPatch([BoxPatch([0], [1]), BoxPatch([1], [2])], bases)
    return bases, mapper, geometry


def _make_artificial_2d():
    # discontinuous coupling of two squares: each patch carries copies of
    # the neighbor's interface dofs as local indices 4 and 5
    geometry = _make_two_squares(order=1, nelements=1)
    mapper = DofMapper([6, 6])
    mapper.match_dofs(0, [4, 5], 1, [0, 2])
    mapper.match_dofs(1, [4, 5], 0, [1, 3])
    mapper.finalize()
    return list(geometry.bases), mapper, geometry


def _check_jump_rows(ieti):
    nmult = ieti.n_lagrange_multipliers
    row_sums = np.zeros(nmult)
    row_nnz = np.zeros(nmult, dtype=np.intp)
    for k in range(ieti.n_patches):
        jmat = ieti.jump_matrix(k)
        assert jmat.shape == (nmult, ieti.dof_mapper_local(k).free_size)
        assert set(np.unique(jmat.data)) <= {-1.0, 1.0}

        row_sums += jmat @ np.ones(jmat.shape[1])
        row_nnz += np.diff(jmat.indptr)

    assert np.all(row_sums == 0)
    assert np.all(row_nnz == 2)

# }}}


# {{{ phases

def test_phase_checks():
    geometry = _make_two_squares()
    bases = list(geometry.bases)
    mapper = geometry.make_dof_mapper(dirichlet=None)

    ieti = IetiMapper()
    with pytest.raises(NotInitializedError):
        ieti.corners_as_primals()
    with pytest.raises(NotInitializedError):
        ieti.n_primal_dofs    # noqa: B018

    ieti.init(bases, mapper)
    assert ieti.completed_phases == {Phase.INIT}
    with pytest.raises(AlreadyInitializedError):
        ieti.init(bases, mapper)

    with pytest.raises(NotInitializedError):
        ieti.jump_matrix(0)

    ieti.corners_as_primals()
    with pytest.raises(AlreadyCompletedError):
        ieti.corners_as_primals()

    ieti.interface_averages_as_primals(geometry, 1)
    with pytest.raises(AlreadyCompletedError):
        ieti.interface_averages_as_primals(geometry, 1)
    ieti.interface_averages_as_primals(geometry, 2)

    for d in [0, 3]:
        with pytest.raises(DimensionOutOfRangeError):
            ieti.interface_averages_as_primals(geometry, d)

    ieti.compute_jump_matrices()
    with pytest.raises(AlreadyCompletedError):
        ieti.compute_jump_matrices(fully_redundant=True)

    assert ieti.completed_phases == {
            Phase.INIT, Phase.CORNERS, Phase.JUMP_MATRICES,
            (Phase.INTERFACE_AVERAGES, 1), (Phase.INTERFACE_AVERAGES, 2)}


def test_constructor_arguments():
    geometry = _make_two_squares()
    with pytest.raises(TypeError):
        IetiMapper(list(geometry.bases))

    ieti = IetiMapper(list(geometry.bases), geometry.make_dof_mapper())
    assert Phase.INIT in ieti.completed_phases
    assert ieti.n_patches == 2

# }}}


# {{{ registry

def test_registry_local_maps():
    geometry = _make_two_squares()
    mapper = geometry.make_dof_mapper(dirichlet="all")
    registry = DofRegistry(geometry.bases, mapper)

    assert not registry.has_artificial_dofs
    assert registry.dim == 2
    for k in range(2):
        lmapper = registry.dof_mappers_local[k]
        nboundary = int(np.sum(mapper.is_boundary(np.arange(16), k)))
        assert nboundary == 10
        assert registry.nfree(k) == 16 - nboundary == 6
        assert lmapper.boundary_size == nboundary
        assert registry.fixed_parts[k].shape == (nboundary,)


@pytest.mark.parametrize("ncolumns", [None, 2])
def test_fixed_parts(ncolumns):
    geometry = _make_two_squares()
    mapper = geometry.make_dof_mapper(dirichlet="all")

    shape = (mapper.boundary_size,)
    if ncolumns is not None:
        shape = shape + (ncolumns,)
    fixed_values = np.arange(np.prod(shape), dtype=np.float64).reshape(shape)

    ieti = IetiMapper(list(geometry.bases), mapper, fixed_values)
    for k in range(2):
        lmapper = ieti.dof_mapper_local(k)
        fixed_part = ieti.fixed_part(k)
        assert fixed_part.shape == (lmapper.boundary_size,) + shape[1:]

        for i in range(mapper.patch_size(k)):
            if mapper.is_boundary(i, k):
                assert np.array_equal(
                        fixed_part[lmapper.bindex(i)],
                        fixed_values[mapper.bindex(i, k)])


def test_registry_shape_mismatch():
    geometry = _make_two_squares()
    mapper = geometry.make_dof_mapper(dirichlet="all")

    with pytest.raises(ShapeMismatchError):
        DofRegistry(geometry.bases[:1], mapper)
    with pytest.raises(ShapeMismatchError):
        DofRegistry(geometry.bases, mapper,
                np.zeros(mapper.boundary_size + 1))

    # patch with fewer dofs than its basis
    with pytest.raises(ShapeMismatchError):
        DofRegistry(geometry.bases, DofMapper([16, 15]).finalize())


def test_unfinalized_global_mapper():
    geometry = _make_two_squares()
    mapper = DofMapper([16, 16])
    mapper.match_dofs(0, [3, 7, 11, 15], 1, [0, 4, 8, 12])

    with pytest.raises(NotInitializedError):
        IetiMapper(list(geometry.bases), mapper)
    assert not mapper.is_finalized

    ieti = IetiMapper(list(geometry.bases), mapper.finalize())
    assert ieti.dof_mapper_global.coupled_size == 4


def test_accessors_do_not_expose_state():
    geometry = _make_two_squares()
    mapper = geometry.make_dof_mapper(dirichlet="all")
    fixed_values = np.ones(mapper.boundary_size)

    ieti = IetiMapper(list(geometry.bases), mapper, fixed_values)
    ieti.interface_averages_as_primals(geometry, 1)
    ieti.compute_jump_matrices()

    with pytest.raises(ValueError):
        ieti.fixed_part(0)[0] = 99.0
    assert np.all(ieti.fixed_part(0) == 1.0)

    ieti.jump_matrix(0).data[:] = 7.0
    assert set(np.unique(ieti.jump_matrix(0).data)) <= {-1.0, 1.0}

    ieti.primal_constraints(0)[0].data[:] = 5.0
    ieti.all_primal_constraints(1)[0].vector.data[:] = 5.0
    for k in range(2):
        vec, = ieti.primal_constraints(k)
        assert np.allclose(vec.data, 0.5)

    with pytest.raises(Error):
        ieti.dof_mapper_local(0).eliminate_dof(0, 0)

# }}}


# {{{ corners

def test_corners_two_squares():
    geometry = _make_two_squares()
    ieti = IetiMapper(list(geometry.bases),
            geometry.make_dof_mapper(dirichlet=None))
    ieti.corners_as_primals()

    assert ieti.n_primal_dofs == 6
    assert sum(len(ieti.primal_constraints(k)) for k in range(2)) == 8

    gmapper = ieti.dof_mapper_global
    shared = set(ieti.primal_dof_indices(0)) & set(ieti.primal_dof_indices(1))
    assert len(shared) == 2

    for k in range(2):
        for vec, primal_index in zip(ieti.primal_constraints(k),
                ieti.primal_dof_indices(k)):
            assert vec.shape == (16, 1)
            assert vec.nnz == 1
            assert vec.data[0] == 1
            if primal_index in shared:
                assert gmapper.is_coupled_index(
                        gmapper.index(int(vec.indices[0]), k))


def test_corners_four_squares():
    geometry = _make_four_squares()
    ieti = IetiMapper(list(geometry.bases),
            geometry.make_dof_mapper(dirichlet=None))
    ieti.corners_as_primals()

    assert ieti.n_primal_dofs == 9
    assert sum(len(ieti.primal_constraints(k)) for k in range(4)) == 16


def test_corners_on_dirichlet_boundary():
    geometry = _make_two_squares()
    ieti = IetiMapper(list(geometry.bases),
            geometry.make_dof_mapper(dirichlet="all"))
    ieti.corners_as_primals()
    assert ieti.n_primal_dofs == 0

# }}}


# {{{ interface averages

def test_interface_averages_two_squares():
    geometry = _make_two_squares()
    ieti = IetiMapper(list(geometry.bases),
            geometry.make_dof_mapper(dirichlet=None))

    ieti.interface_averages_as_primals(geometry, 1)
    assert ieti.n_primal_dofs == 1
    for k in range(2):
        vec, = ieti.primal_constraints(k)
        assert ieti.primal_dof_indices(k) == [0]
        assert vec.nnz == 4
        assert abs(vec.sum() - 1) < 1e-13
        assert np.allclose(np.sort(vec.data), [1/6, 1/6, 1/3, 1/3])

    ieti.interface_averages_as_primals(geometry, 2)
    assert ieti.n_primal_dofs == 3
    assert ieti.primal_dof_indices(0) == [0, 1]
    assert ieti.primal_dof_indices(1) == [0, 2]


def test_interface_averages_with_dirichlet():
    geometry = _make_two_squares()
    ieti = IetiMapper(list(geometry.bases),
            geometry.make_dof_mapper(dirichlet="all"))
    ieti.interface_averages_as_primals(geometry, 1)

    assert ieti.n_primal_dofs == 1
    for k in range(2):
        vec, = ieti.primal_constraints(k)
        assert vec.shape == (6, 1)
        assert np.allclose(vec.data, [0.5, 0.5])


def test_interface_averages_geometry_mismatch():
    geometry = _make_two_squares()
    ieti = IetiMapper(list(geometry.bases), geometry.make_dof_mapper())

    with pytest.raises(ShapeMismatchError):
        ieti.interface_averages_as_primals(_make_four_squares(), 1)

    _, _, geometry_1d = _make_artificial_1d()
    with pytest.raises(ShapeMismatchError):
        ieti.interface_averages_as_primals(geometry_1d, 1)

    # a rejected geometry leaves the phase available
    assert (Phase.INTERFACE_AVERAGES, 1) not in ieti.completed_phases
    ieti.interface_averages_as_primals(geometry, 1)
    assert ieti.n_primal_dofs == 1


def test_group_by_fingerprint():
    vec = sp.csc_matrix((1, 1))
    entries = [
            _FingerprintedConstraint((3,), 0, vec),
            _FingerprintedConstraint((1, 2), 0, vec),
            _FingerprintedConstraint((0,), 1, vec),
            _FingerprintedConstraint((1, 2), 1, vec),
            ]

    runs = group_by_fingerprint(entries)
    assert [[entry.fingerprint for entry in run] for run in runs] == [
            [(0,)], [(3,)], [(1, 2), (1, 2)]]
    assert [entry.patch for entry in runs[-1]] == [0, 1]

# }}}


# {{{ custom constraints

def test_custom_primal_constraints():
    geometry = _make_two_squares()
    ieti = IetiMapper(list(geometry.bases),
            geometry.make_dof_mapper(dirichlet=None))
    ieti.corners_as_primals()

    vec0 = np.zeros(16)
    vec0[[3, 7]] = 0.5
    vec1 = sp.csr_matrix(([0.5, 0.5], ([0, 0], [0, 4])), shape=(1, 16))
    ieti.custom_primal_constraints([(0, vec0), (1, vec1)])

    assert ieti.n_primal_dofs == 7
    assert ieti.primal_dof_indices(0)[-1] == ieti.primal_dof_indices(1)[-1] == 6

    constr = ieti.primal_constraints(1)[-1]
    assert constr.shape == (16, 1)
    assert la.norm(constr.toarray().ravel()[[0, 4]] - 0.5) < 1e-15

    ieti.custom_primal_constraints([])
    assert ieti.n_primal_dofs == 7

    with pytest.raises(ShapeMismatchError):
        ieti.custom_primal_constraints([(0, np.zeros(15))])
    with pytest.raises(ShapeMismatchError):
        ieti.custom_primal_constraints([(2, vec0)])
    assert ieti.n_primal_dofs == 7

# }}}


# {{{ jump matrices

@pytest.mark.parametrize(("fully_redundant", "exclude_corners", "nmult"), [
    (False, False, 4),
    (True, False, 4),
    (False, True, 2),
    ])
def test_jumps_two_squares(fully_redundant, exclude_corners, nmult):
    geometry = _make_two_squares()
    ieti = IetiMapper(list(geometry.bases),
            geometry.make_dof_mapper(dirichlet=None))
    ieti.compute_jump_matrices(
            fully_redundant=fully_redundant, exclude_corners=exclude_corners)

    assert ieti.n_lagrange_multipliers == nmult
    _check_jump_rows(ieti)


@pytest.mark.parametrize(("fully_redundant", "nmult"), [
    (False, 7),
    (True, 10),
    ])
def test_jumps_four_squares(fully_redundant, nmult):
    geometry = _make_four_squares()
    ieti = IetiMapper(list(geometry.bases),
            geometry.make_dof_mapper(dirichlet=None))
    ieti.compute_jump_matrices(fully_redundant=fully_redundant)

    assert ieti.n_lagrange_multipliers == nmult
    _check_jump_rows(ieti)


def test_jumps_four_squares_without_corners():
    geometry = _make_four_squares()
    ieti = IetiMapper(list(geometry.bases),
            geometry.make_dof_mapper(dirichlet=None))
    ieti.compute_jump_matrices(exclude_corners=True)

    assert ieti.n_lagrange_multipliers == 0
    assert ieti.jump_matrix(0).shape == (0, 4)


def test_jumps_three_occurrences():
    bases = [TensorProductLagrangeBasis(1) for _ in range(3)]
    mapper = DofMapper([2, 2, 2])
    mapper.match_dofs(0, 1, 1, 0)
    mapper.match_dofs(0, 1, 2, 0)
    mapper.finalize()

    ieti = IetiMapper(bases, mapper)
    ieti.compute_jump_matrices()
    assert ieti.n_lagrange_multipliers == 2
    assert ieti.jump_matrix(0).toarray().tolist() == [[0, 1], [0, 1]]
    assert ieti.jump_matrix(1).toarray().tolist() == [[-1, 0], [0, 0]]
    assert ieti.jump_matrix(2).toarray().tolist() == [[0, 0], [-1, 0]]

    ieti = IetiMapper(bases, mapper)
    ieti.compute_jump_matrices(fully_redundant=True)
    assert ieti.n_lagrange_multipliers == 3
    assert ieti.jump_matrix(1).toarray().tolist() == [[-1, 0], [0, 0], [1, 0]]
    _check_jump_rows(ieti)


def test_skeleton_dofs():
    geometry = _make_two_squares()
    ieti = IetiMapper(list(geometry.bases),
            geometry.make_dof_mapper(dirichlet=None))
    assert ieti.skeleton_dofs(0) == [3, 7, 11, 15]
    assert ieti.skeleton_dofs(1) == [0, 4, 8, 12]

# }}}


# {{{ artificial dofs

def test_artificial_1d_corners_and_jumps():
    bases, mapper, _ = _make_artificial_1d()
    assert mapper.free_size == 6
    assert mapper.coupled_size == 2

    ieti = IetiMapper(bases, mapper)
    assert ieti.has_artificial_dofs

    index = ieti.artificial_dof_index
    assert index.owner(mapper.index(0, 1)) == (1, 0)
    assert index.peers(0) == {1: {2: 3}}
    assert index.peers(1) == {0: {0: 3}}

    ieti.corners_as_primals()
    assert ieti.n_primal_dofs == 4
    assert ieti.primal_dof_indices(0) == [0, 2, 3]
    assert ieti.primal_dof_indices(1) == [1, 2, 3]
    assert [int(vec.indices[0]) for vec in ieti.primal_constraints(0)] == [0, 2, 3]
    assert [int(vec.indices[0]) for vec in ieti.primal_constraints(1)] == [2, 3, 0]

    ieti.compute_jump_matrices()
    assert ieti.n_lagrange_multipliers == 2
    assert ieti.jump_matrix(0).toarray().tolist() == [[0, 0, 1, 0], [0, 0, 0, 1]]
    assert ieti.jump_matrix(1).toarray().tolist() == [
            [0, 0, 0, -1], [-1, 0, 0, 0]]


def test_artificial_1d_exclude_corners():
    bases, mapper, _ = _make_artificial_1d()
    ieti = IetiMapper(bases, mapper)
    ieti.compute_jump_matrices(exclude_corners=True)
    assert ieti.n_lagrange_multipliers == 0


def test_artificial_1d_averages():
    bases, mapper, geometry = _make_artificial_1d()
    ieti = IetiMapper(bases, mapper)
    ieti.interface_averages_as_primals(geometry, 1)

    assert ieti.n_primal_dofs == 2
    assert ieti.primal_dof_indices(0) == [0]
    assert ieti.primal_dof_indices(1) == [1]


def test_artificial_2d_averages():
    bases, mapper, geometry = _make_artificial_2d()
    assert mapper.free_size == 8
    assert mapper.coupled_size == 4

    ieti = IetiMapper(bases, mapper)
    ieti.interface_averages_as_primals(geometry, 1)

    assert ieti.n_primal_dofs == 2
    for k in range(2):
        assert sorted(ieti.primal_dof_indices(k)) == [0, 1]
        rows = sorted(
                tuple(sorted(int(row) for row in vec.indices))
                for vec in ieti.primal_constraints(k))
        native_rows = (1, 3) if k == 0 else (0, 2)
        assert rows == sorted([native_rows, (4, 5)])

        for vec in ieti.primal_constraints(k):
            assert np.allclose(vec.data, 0.5)


def test_artificial_2d_corners_and_jumps():
    bases, mapper, _ = _make_artificial_2d()

    ieti = IetiMapper(bases, mapper)
    ieti.corners_as_primals()
    assert ieti.n_primal_dofs == 8
    assert sum(len(ieti.primal_constraints(k)) for k in range(2)) == 12

    ieti.compute_jump_matrices()
    assert ieti.n_lagrange_multipliers == 4
    _check_jump_rows(ieti)

    ieti = IetiMapper(bases, mapper)
    ieti.compute_jump_matrices(exclude_corners=True)
    assert ieti.n_lagrange_multipliers == 0


def test_native_dof_claimed_twice():
    bases = [TensorProductLagrangeBasis(1) for _ in range(2)]
    mapper = DofMapper([3, 3])
    mapper.match_dofs(0, 1, 1, 0)
    mapper.match_dofs(0, 2, 1, 1)
    mapper.match_dofs(1, 2, 0, 0)
    mapper.finalize()

    with pytest.raises(InternalConsistencyError):
        IetiMapper(bases, mapper)


def test_artificial_dof_without_owner():
    bases = [TensorProductLagrangeBasis(1) for _ in range(2)]
    mapper = DofMapper([3, 3])
    mapper.match_dofs(0, 2, 1, 2)
    mapper.finalize()

    with pytest.raises(InternalConsistencyError):
        IetiMapper(bases, mapper)

# }}}


# {{{ three dimensions

def _make_box_grid_3d(order, nelements):
    from itertools import product
    patches = [BoxPatch(np.array(idx), np.array(idx) + 1)
            for idx in product(range(2), repeat=3)]
    bases = [TensorProductLagrangeBasis(3, order=order, nelements=nelements)
            for _ in patches]
    return MultiPatch(patches, bases)


def _nconstraints(ieti):
    return sum(len(ieti.primal_dof_indices(k)) for k in range(ieti.n_patches))


@pytest.mark.parametrize(("order", "nelements"), [(1, 1), (2, 2)])
def test_primals_3d(order, nelements):
    geometry = _make_box_grid_3d(order, nelements)
    mapper = geometry.make_dof_mapper(dirichlet=None)
    ieti = IetiMapper(list(geometry.bases), mapper)

    ieti.corners_as_primals()
    assert ieti.n_primal_dofs == 27
    assert _nconstraints(ieti) == 64

    # the vertex in the middle is shared by all eight patches
    center, = [g for g in range(mapper.free_size)
            if len(mapper.pre_image(g)) == 8]
    center_primals = []
    for k, i in mapper.pre_image(center):
        local_index = ieti.dof_mapper_local(k).index(i)
        center_primals.extend(
                primal_index
                for vec, primal_index in zip(ieti.primal_constraints(k),
                    ieti.primal_dof_indices(k))
                if list(vec.indices) == [local_index])
    assert len(center_primals) == 8
    assert len(set(center_primals)) == 1

    # edges: 24 shared by two patches, 6 by four
    ieti.interface_averages_as_primals(geometry, 1)
    assert ieti.n_primal_dofs == 27 + 30
    assert _nconstraints(ieti) == 64 + 24*2 + 6*4

    # faces: 12 shared by two patches, the outer ones are dropped
    ieti.interface_averages_as_primals(geometry, 2)
    assert ieti.n_primal_dofs == 27 + 30 + 12
    assert _nconstraints(ieti) == 64 + 72 + 24

    ieti.interface_averages_as_primals(geometry, 3)
    assert ieti.n_primal_dofs == 27 + 30 + 12 + 8
    assert _nconstraints(ieti) == 64 + 72 + 24 + 8


@pytest.mark.parametrize(
        ("order", "nelements", "fully_redundant", "exclude_corners", "nmult"), [
            (1, 1, False, False, 37),
            (1, 1, True, False, 76),
            (1, 1, False, True, 0),
            (2, 1, False, False, 91),
            (2, 1, True, False, 148),
            (2, 1, False, True, 54),
            (2, 1, True, True, 72),
            (1, 2, False, False, 91),
            ])
def test_jumps_3d(order, nelements, fully_redundant, exclude_corners, nmult):
    # with m nodes per axis and patch, a node on k interface planes occurs
    # 2**k times; there are 3*(2m-2)**2 nodes with k=1, 3*(2m-2) with k=2
    # and one with k=3
    geometry = _make_box_grid_3d(order, nelements)
    mapper = geometry.make_dof_mapper(dirichlet=None)
    ieti = IetiMapper(list(geometry.bases), mapper)
    ieti.compute_jump_matrices(
            fully_redundant=fully_redundant, exclude_corners=exclude_corners)

    assert ieti.n_lagrange_multipliers == nmult
    if nmult:
        _check_jump_rows(ieti)

    rng = np.random.default_rng(seed=3)
    u = rng.normal(size=mapper.free_size)
    local_sols = ieti.restrict_global_solution(u)
    jump = sum(ieti.jump_matrix(k) @ local_sols[k] for k in range(8))
    assert np.all(jump == 0)
    assert np.array_equal(
            ieti.construct_global_solution_from_local_solutions(local_sols), u)

# }}}


# {{{ solution

@pytest.mark.parametrize("setup", ["two_squares", "artificial_1d", "artificial_2d"])
def test_restrict_and_reassemble(setup):
    if setup == "two_squares":
        geometry = _make_two_squares()
        bases, mapper = list(geometry.bases), geometry.make_dof_mapper()
    elif setup == "artificial_1d":
        bases, mapper, _ = _make_artificial_1d()
    else:
        bases, mapper, _ = _make_artificial_2d()

    ieti = IetiMapper(bases, mapper)

    rng = np.random.default_rng(seed=15)
    u = rng.normal(size=mapper.free_size)
    local_sols = ieti.restrict_global_solution(u)
    for k, local_sol in enumerate(local_sols):
        assert local_sol.shape == (ieti.dof_mapper_local(k).free_size,)

    assert np.array_equal(
            ieti.construct_global_solution_from_local_solutions(local_sols), u)

    u2 = rng.normal(size=(mapper.free_size, 3))
    assert np.array_equal(
            ieti.construct_global_solution_from_local_solutions(
                ieti.restrict_global_solution(u2)),
            u2)


def test_reassemble_later_patch_wins():
    geometry = _make_two_squares()
    ieti = IetiMapper(list(geometry.bases),
            geometry.make_dof_mapper(dirichlet=None))
    gmapper = ieti.dof_mapper_global

    u = ieti.construct_global_solution_from_local_solutions(
            [np.ones(16), 2*np.ones(16)])
    assert u.shape == (gmapper.free_size,)
    assert np.all(u[gmapper.index(np.arange(16), 1)] == 2)
    assert np.sum(u == 1) == 12


def test_reassemble_shape_mismatch():
    geometry = _make_two_squares()
    ieti = IetiMapper(list(geometry.bases), geometry.make_dof_mapper())
    nfree = [ieti.dof_mapper_local(k).free_size for k in range(2)]

    with pytest.raises(ShapeMismatchError):
        ieti.construct_global_solution_from_local_solutions([np.zeros(nfree[0])])
    with pytest.raises(ShapeMismatchError):
        ieti.construct_global_solution_from_local_solutions(
                [np.zeros(nfree[0]), np.zeros(nfree[1] + 1)])
    with pytest.raises(ShapeMismatchError):
        ieti.construct_global_solution_from_local_solutions(
                [np.zeros((nfree[0], 2)), np.zeros(nfree[1])])
    with pytest.raises(ShapeMismatchError):
        ieti.restrict_global_solution(np.zeros(3))

# }}}


if __name__ == "__main__":
    import sys
    if len(sys.argv) > 1:
        exec(sys.argv[1])
    else:
        from pytest import main
        main([__file__])

# vim: fdm=marker
