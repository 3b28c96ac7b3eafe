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

from warnings import warn

import numpy as np


__doc__ = """
.. autofunction:: find_point_to_point_mapping
.. autofunction:: default_point_tolerance
"""


def default_point_tolerance(points: np.ndarray,
        tol_multiplier: float | None = None) -> float:
    """Return a matching tolerance for *points* of shape ``(dim, npoints)``,
    relative to machine epsilon and the extent of the point cloud.
    """
    if tol_multiplier is None:
        tol_multiplier = 250

    scale = 1.0
    if points.size:
        scale = max(1.0, float(np.max(np.abs(points))))

    return float(np.finfo(points.dtype).eps * tol_multiplier * scale)


# {{{ find_point_to_point_mapping

def find_point_to_point_mapping(
        src_points: np.ndarray,
        tgt_points: np.ndarray, *,
        tol: float | None = None,
        tol_multiplier: float | None = None,
        _max_leaf_points: int | None = None) -> np.ndarray:
    """
    Compute a mapping from indices of points in *src_points* to the matching
    indices of points in *tgt_points*. Used to identify nodes of neighboring
    patches that lie on a common interface.

    :arg src_points: shaped ``(dim, npoints)``
    :arg tgt_points: shaped ``(dim, npoints)``
    :arg tol: the maximum distance allowed between matching points.
    :arg tol_multiplier: another way of specifying tolerance: as a multiplier of
        machine epsilon. Must not specify both *tol* and *tol_multiplier*.

    :returns: an array storing an index into *tgt_points* for each point in
        *src_points* if a match exists or ``-1`` if not.
    """

    if tol is not None and tol_multiplier is not None:
        raise ValueError("cannot specify both 'tol' and 'tol_multiplier'")

    if tol is None:
        tol = default_point_tolerance(
                np.concatenate([src_points, tgt_points], axis=1),
                tol_multiplier)

    if _max_leaf_points is None:
        _max_leaf_points = 2**8

    src_dim, n_src_points = src_points.shape
    tgt_dim, n_tgt_points = tgt_points.shape

    if tgt_dim != src_dim:
        raise ValueError(
            "source and target points must have the same ambient dimension: "
            f"got shape {src_points.shape} and {tgt_points.shape}")

    dim = src_dim

    if n_src_points == 0:
        return np.zeros(0, dtype=np.intp)
    if n_tgt_points == 0:
        return np.full(n_src_points, -1, dtype=np.intp)

    if n_src_points + n_tgt_points <= _max_leaf_points:
        displacements = (
            src_points.reshape(dim, -1, 1)
            - tgt_points.reshape(dim, 1, -1))
        distances_sq = np.sum(displacements**2, axis=0)

        nearest = np.argmin(distances_sq, axis=1)
        nearest_distances_sq = distances_sq[np.arange(n_src_points), nearest]

        return np.where(nearest_distances_sq < tol**2, nearest, -1)

    # split along the widest axis, keeping points within *tol* of the split
    # on both sides
    both_points = np.concatenate((tgt_points, src_points), axis=1)

    iaxis = np.argmax(
        np.max(both_points, axis=1)
        - np.min(both_points, axis=1))
    median_coord = np.median(both_points[iaxis, :])

    lower_src, = np.where(src_points[iaxis, :] <= median_coord + tol)
    lower_tgt, = np.where(tgt_points[iaxis, :] <= median_coord + tol)
    upper_src, = np.where(src_points[iaxis, :] >= median_coord - tol)
    upper_tgt, = np.where(tgt_points[iaxis, :] >= median_coord - tol)

    npoints = both_points.shape[1]
    if (len(lower_src) + len(lower_tgt) == npoints
            or len(upper_src) + len(upper_tgt) == npoints):
        # splitting makes no progress (e.g. many coincident points)
        warn("bad partitioning of points, falling back to brute force",
                stacklevel=2)
        return find_point_to_point_mapping(src_points, tgt_points, tol=tol,
                _max_leaf_points=npoints)

    lower_map = find_point_to_point_mapping(
        src_points[:, lower_src], tgt_points[:, lower_tgt],
        tol=tol, _max_leaf_points=_max_leaf_points)
    upper_map = find_point_to_point_mapping(
        src_points[:, upper_src], tgt_points[:, upper_tgt],
        tol=tol, _max_leaf_points=_max_leaf_points)

    result = np.full(n_src_points, -1, dtype=np.intp)

    matched, = np.where(lower_map >= 0)
    result[lower_src[matched]] = lower_tgt[lower_map[matched]]
    matched, = np.where(upper_map >= 0)
    result[upper_src[matched]] = upper_tgt[upper_map[matched]]

    return result

# }}}

# vim: foldmethod=marker
