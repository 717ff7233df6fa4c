import unittest
from unittest import mock

import numpy as np

from lscm_unwrap import logging_utils
from lscm_unwrap.lscm_solver import (
    LscmSolver,
    barycentric_gradients,
    find_boundary_vertices,
    find_farthest_pair,
    local_frame_2d,
    pack_islands,
)
from lscm_unwrap.mesh_loader import PolyMesh
from lscm_unwrap.seam_splitter import SplitResult, build_split


def _grid(nx: int = 5, ny: int = 4, jitter: float = 0.1, seed: int = 3):
    """CCW-triangulated planar grid with jittered interior vertices."""
    rng = np.random.default_rng(seed)
    pts = []
    for j in range(ny):
        for i in range(nx):
            x, y = float(i), float(j)
            if 0 < i < nx - 1 and 0 < j < ny - 1:
                x += rng.uniform(-jitter, jitter)
                y += rng.uniform(-jitter, jitter)
            pts.append([x, y])
    faces = []
    for j in range(ny - 1):
        for i in range(nx - 1):
            v00 = j * nx + i
            v10 = v00 + 1
            v01 = v00 + nx
            v11 = v01 + 1
            faces.append([v00, v10, v11])
            faces.append([v00, v11, v01])
    return np.asarray(pts, dtype=np.float64), faces


def _rotation(axis, angle: float) -> np.ndarray:
    axis = np.asarray(axis, dtype=np.float64)
    axis = axis / np.linalg.norm(axis)
    K = np.array(
        [
            [0.0, -axis[2], axis[1]],
            [axis[2], 0.0, -axis[0]],
            [-axis[1], axis[0], 0.0],
        ]
    )
    return np.eye(3) + np.sin(angle) * K + (1.0 - np.cos(angle)) * (K @ K)


def _similarity_residual(plane_xy: np.ndarray, uvs: np.ndarray) -> float:
    """Max residual of the best fit w = a*z + b (z, w as complex numbers)."""
    z = plane_xy[:, 0] + 1j * plane_xy[:, 1]
    w = uvs[:, 0] + 1j * uvs[:, 1]
    A = np.stack([z, np.ones_like(z)], axis=1)
    coef, *_ = np.linalg.lstsq(A, w, rcond=None)
    return float(np.max(np.abs(A @ coef - w)))


def _signed_area(poly: np.ndarray) -> float:
    x = poly[:, 0]
    y = poly[:, 1]
    return 0.5 * float(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


class TestLscmHelpers(unittest.TestCase):
    def test_barycentric_gradients_sum_to_zero(self):
        frame = local_frame_2d(
            np.array([0.0, 0.0, 0.0]), np.array([2.0, 0.0, 1.0]), np.array([0.5, 1.5, 0.0])
        )
        self.assertIsNotNone(frame)
        p0, p1, p2, area2 = frame
        self.assertGreater(area2, 0.0)
        self.assertAlmostEqual(p0[0], 0.0)
        self.assertAlmostEqual(p1[1], 0.0)

        g0, g1, g2 = barycentric_gradients(p0, p1, p2)
        np.testing.assert_allclose(g0 + g1 + g2, [0.0, 0.0], atol=1e-12)
        # gradient of barycentric i dotted with (p_j - p_i) is -1 at j != i
        self.assertAlmostEqual(float(g0 @ (p1 - p0)), -1.0)

    def test_local_frame_preserves_edge_lengths(self):
        v0 = np.array([1.0, 2.0, 3.0])
        v1 = np.array([2.0, 4.0, 3.5])
        v2 = np.array([0.0, 3.0, 5.0])
        p0, p1, p2, _ = local_frame_2d(v0, v1, v2)
        self.assertAlmostEqual(np.linalg.norm(p1 - p0), np.linalg.norm(v1 - v0))
        self.assertAlmostEqual(np.linalg.norm(p2 - p0), np.linalg.norm(v2 - v0))
        self.assertAlmostEqual(np.linalg.norm(p2 - p1), np.linalg.norm(v2 - v1))

    def test_degenerate_triangles_have_no_frame(self):
        a = np.array([0.0, 0.0, 0.0])
        self.assertIsNone(local_frame_2d(a, np.array([1.0, 0.0, 0.0]), np.array([3.0, 0.0, 0.0])))
        self.assertIsNone(local_frame_2d(a, a.copy(), np.array([0.0, 1.0, 0.0])))

    def test_boundary_vertices_of_quad(self):
        self.assertEqual(find_boundary_vertices(np.array([[0, 1, 2], [0, 2, 3]])), [0, 1, 2, 3])

    def test_boundary_excludes_interior_vertex(self):
        fan = np.array([[4, 0, 1], [4, 1, 2], [4, 2, 3], [4, 3, 0]])
        self.assertEqual(find_boundary_vertices(fan), [0, 1, 2, 3])

    def test_closed_surface_has_no_boundary(self):
        tet = np.array([[0, 2, 1], [0, 1, 3], [1, 2, 3], [0, 3, 2]])
        self.assertEqual(find_boundary_vertices(tet), [])

    def test_farthest_pair_prefers_first_diagonal(self):
        square = np.array(
            [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]]
        )
        self.assertEqual(find_farthest_pair(square, [0, 1, 2, 3]), (0, 2))

    def test_pack_islands_layout(self):
        uvs = np.array(
            [
                [0.0, 0.0], [2.0, 0.0], [2.0, 1.0],
                [5.0, 5.0], [6.0, 5.0], [6.0, 7.0],
            ]
        )
        ids = np.array([0, 0, 0, 1, 1, 1])
        pack_islands(uvs, ids, 2, padding=0.02)

        g = 1.52
        expected = np.array(
            [
                [0.0, 0.0], [1.0 / g, 0.0], [1.0 / g, 0.5 / g],
                [1.02 / g, 0.0], [1.0, 0.0], [1.0, 1.0 / g],
            ]
        )
        np.testing.assert_allclose(uvs, expected, atol=1e-12)

    def test_pack_single_island_normalizes_to_unit_box(self):
        uvs = np.array([[3.0, 1.0], [7.0, 1.0], [7.0, 3.0]])
        pack_islands(uvs, np.zeros(3, dtype=np.int64), 1)
        np.testing.assert_allclose(uvs, [[0.0, 0.0], [1.0, 0.0], [1.0, 0.5]])


class TestLscmSolver(unittest.TestCase):
    def test_unknown_backend_rejected(self):
        with self.assertRaises(ValueError):
            LscmSolver(backend="amg")

    def test_empty_split_fails(self):
        split = build_split(PolyMesh(), None, False)
        result = LscmSolver().solve(split)
        self.assertFalse(result.success)
        self.assertIsNone(result.uvs)
        self.assertEqual(result.error, "no triangles to unwrap")

    def test_unit_square(self):
        square = np.array(
            [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]]
        )
        split = build_split(PolyMesh.from_arrays(square, [[0, 1, 2], [0, 2, 3]]), None, False)
        result = LscmSolver().solve(split)

        self.assertTrue(result.success)
        self.assertEqual(result.island_count, 1)
        uvs = result.uvs
        self.assertEqual(uvs.shape, (4, 2))
        self.assertTrue(np.all(uvs >= -1e-9))
        self.assertTrue(np.all(uvs <= 1.0 + 1e-9))
        self.assertAlmostEqual(_signed_area(uvs), 0.5, places=6)
        np.testing.assert_allclose(
            uvs, [[0.0, 0.5], [0.5, 0.0], [1.0, 0.5], [0.5, 1.0]], atol=1e-6
        )

    def test_unpacked_result_keeps_pins(self):
        pts, faces = _grid(4, 3)
        mesh = PolyMesh.from_arrays(np.column_stack([pts, np.zeros(len(pts))]), faces)
        split = build_split(mesh, None, False)
        uvs = LscmSolver().solve(split, pack=False).uvs

        pinned_a = np.flatnonzero(np.all(np.isclose(uvs, [0.0, 0.0]), axis=1))
        pinned_b = np.flatnonzero(np.all(np.isclose(uvs, [1.0, 0.0]), axis=1))
        self.assertEqual(pinned_a.size, 1)
        self.assertEqual(pinned_b.size, 1)

    def test_flat_mesh_maps_by_similarity(self):
        pts, faces = _grid()
        positions = np.column_stack([pts, np.zeros(len(pts))])
        split = build_split(PolyMesh.from_arrays(positions, faces), None, False)
        result = LscmSolver().solve(split)

        self.assertTrue(result.success)
        self.assertLess(_similarity_residual(pts[split.uv_to_orig_vertex], result.uvs), 1e-6)

    def test_rotated_plane_maps_by_similarity(self):
        pts, faces = _grid(6, 5, seed=11)
        R = _rotation([1.0, 2.0, 0.5], 0.8)
        positions = np.column_stack([pts, np.zeros(len(pts))]) @ R.T + np.array([3.0, -1.0, 2.0])
        split = build_split(PolyMesh.from_arrays(positions, faces), None, False)
        result = LscmSolver().solve(split)

        self.assertTrue(result.success)
        self.assertLess(_similarity_residual(pts[split.uv_to_orig_vertex], result.uvs), 1e-6)

    def test_direct_backend_matches_similarity(self):
        pts, faces = _grid()
        positions = np.column_stack([pts, np.zeros(len(pts))])
        split = build_split(PolyMesh.from_arrays(positions, faces), None, False)

        direct = LscmSolver(backend="direct").solve(split)
        cg = LscmSolver(backend="cg").solve(split)

        self.assertTrue(direct.success)
        self.assertLess(_similarity_residual(pts[split.uv_to_orig_vertex], direct.uvs), 1e-6)
        np.testing.assert_allclose(direct.uvs, cg.uvs, atol=1e-6)

    def test_direct_backend_falls_back_to_cg_on_non_finite(self):
        key = "lscm_solver:direct_fallback"
        logging_utils._LOG_ONCE_KEYS.discard(key)
        self.addCleanup(logging_utils._LOG_ONCE_KEYS.discard, key)
        pts, faces = _grid()
        positions = np.column_stack([pts, np.zeros(len(pts))])
        split = build_split(PolyMesh.from_arrays(positions, faces), None, False)

        def nan_solve(A, b):
            return np.full(np.shape(b), np.nan)

        with mock.patch("lscm_unwrap.lscm_solver.spsolve", side_effect=nan_solve) as patched:
            with self.assertLogs("lscm_unwrap.lscm_solver", level="WARNING") as cm:
                direct = LscmSolver(backend="direct").solve(split)

        self.assertTrue(patched.called)
        self.assertTrue(any("falling back to conjugate gradient" in line for line in cm.output))
        self.assertTrue(direct.success)
        self.assertTrue(np.all(np.isfinite(direct.uvs)))
        cg = LscmSolver(backend="cg").solve(split)
        np.testing.assert_array_equal(direct.uvs, cg.uvs)

    def test_sliver_triangle_does_not_disturb_island(self):
        # 4번 정점은 0-1 엣지 위 (면적 ~1e-22인 삼각형)
        positions = np.array(
            [
                [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0],
                [0.5, 1e-22, 0.0],
            ]
        )
        mesh = PolyMesh.from_arrays(positions, [[0, 1, 2], [0, 2, 3], [0, 4, 1]])
        split = build_split(mesh, None, False)
        result = LscmSolver().solve(split, pack=False)

        self.assertTrue(result.success)
        self.assertEqual(result.island_count, 1)
        self.assertTrue(np.all(np.isfinite(result.uvs)))

        square = np.isin(split.uv_to_orig_vertex, [0, 1, 2, 3])
        plane = positions[split.uv_to_orig_vertex[square], :2]
        self.assertLess(_similarity_residual(plane, result.uvs[square]), 1e-6)

    def test_repeated_solves_are_identical(self):
        pts, faces = _grid(6, 5, seed=5)
        R = _rotation([0.3, -1.0, 2.0], 0.6)
        positions = np.column_stack([pts, np.zeros(len(pts))]) @ R.T
        mesh = PolyMesh.from_arrays(positions, faces)

        first = LscmSolver().solve(build_split(mesh, {(0, 7)}, True))
        second = LscmSolver().solve(build_split(mesh, {(0, 7)}, True))

        self.assertTrue(first.success)
        np.testing.assert_array_equal(first.uvs, second.uvs)

    def test_seam_split_islands_do_not_overlap(self):
        square = np.array(
            [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]]
        )
        mesh = PolyMesh.from_arrays(square, [[0, 1, 2], [0, 2, 3]])
        split = build_split(mesh, {(0, 2)}, False)
        result = LscmSolver().solve(split)

        self.assertTrue(result.success)
        self.assertEqual(result.island_count, 2)
        first = result.uvs[split.island_vertices(0)]
        second = result.uvs[split.island_vertices(1)]
        self.assertLess(first[:, 0].max(), second[:, 0].min())
        self.assertTrue(np.all(result.uvs >= -1e-9))
        self.assertTrue(np.all(result.uvs <= 1.0 + 1e-9))

    def test_small_and_degenerate_islands_get_zero_uvs(self):
        positions = np.array(
            [
                [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0],
                [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0],
                [5.0, 5.0, 5.0], [6.0, 5.0, 5.0],
            ]
        )
        split = SplitResult(
            positions=positions,
            triangles=[[0, 1, 2], [3, 4, 5]],
            uv_to_orig_vertex=np.arange(8),
            corner_to_uv_vertex=[0, 1, 2, 3, 4, 5],
            vertex_island_id=[0, 0, 0, 1, 1, 1, 2, 2],
            island_count=3,
            tri_to_orig_face=[0, 1],
            tri_corner_to_face_local=[0, 1, 2, 0, 1, 2],
        )
        result = LscmSolver().solve(split, pack=False)

        self.assertTrue(result.success)
        np.testing.assert_array_equal(result.uvs[3:], np.zeros((5, 2)))
        self.assertFalse(np.allclose(result.uvs[:3], 0.0))

    def test_closed_tetrahedron_gives_finite_uvs(self):
        positions = np.array(
            [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]
        )
        faces = [[0, 2, 1], [0, 1, 3], [1, 2, 3], [0, 3, 2]]
        split = build_split(PolyMesh.from_arrays(positions, faces), None, False)
        result = LscmSolver().solve(split)

        self.assertTrue(result.success)
        self.assertEqual(result.uvs.shape, (4, 2))
        self.assertTrue(np.all(np.isfinite(result.uvs)))


if __name__ == "__main__":
    unittest.main()
