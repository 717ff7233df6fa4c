import tempfile
import unittest
from pathlib import Path

import numpy as np
from PIL import Image

from lscm_unwrap.mesh_loader import PolyMesh
from lscm_unwrap.uv_layout_image import BACKGROUND, EDGE_COLOR, render_uv_layout, save_uv_layout


def _uv_square_mesh() -> PolyMesh:
    positions = [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]]
    uvs = [[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]]
    return PolyMesh.from_arrays(positions, [[0, 1, 2], [0, 2, 3]], uvs=uvs)


class TestUvLayoutImage(unittest.TestCase):
    def test_render_draws_diagonal(self):
        img = render_uv_layout(_uv_square_mesh(), 64, margin=4)

        self.assertEqual(img.size, (64, 64))
        self.assertEqual(img.mode, "RGB")
        # shared diagonal (0,0)-(1,1) runs from (4, 59) to (59, 4)
        self.assertEqual(img.getpixel((31, 32)), EDGE_COLOR)
        self.assertEqual(img.getpixel((4, 59)), EDGE_COLOR)
        self.assertEqual(img.getpixel((45, 20)), BACKGROUND)

    def test_hidden_faces_are_skipped(self):
        mesh = _uv_square_mesh()
        for face in mesh.faces:
            face.hidden = True
        arr = np.asarray(render_uv_layout(mesh, 32, margin=2))
        self.assertFalse(np.any(np.all(arr == EDGE_COLOR, axis=-1)))

        arr = np.asarray(render_uv_layout(mesh, 32, margin=2, include_hidden=True))
        self.assertTrue(np.any(np.all(arr == EDGE_COLOR, axis=-1)))

    def test_resolution_must_be_positive(self):
        with self.assertRaises(ValueError):
            render_uv_layout(_uv_square_mesh(), 1)

    def test_save_uv_layout(self):
        with tempfile.TemporaryDirectory() as td:
            out = save_uv_layout(_uv_square_mesh(), Path(td) / "out" / "layout.png", 48)
            with Image.open(out) as img:
                self.assertEqual(img.size, (48, 48))


if __name__ == "__main__":
    unittest.main()
