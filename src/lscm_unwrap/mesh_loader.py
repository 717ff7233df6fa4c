"""
Mesh Loader Module
폴리곤 메쉬 데이터 구조 및 파일 입출력

Supports: OBJ, PLY, STL, OFF, GLTF/GLB formats (via trimesh)

The in-memory model is polygon based: every vertex owns an ordered list of
UV coordinates and every face corner picks one of them through a UV
sub-index. Seams are expressed by a vertex carrying more than one UV.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

try:
    import trimesh
except ImportError:
    raise ImportError("trimesh is required. Install with: pip install trimesh")


EdgeKey = Tuple[int, int]
UV = Tuple[float, float]


def edge_key(a: int, b: int) -> EdgeKey:
    """Direction-independent key for the edge between vertices a and b."""
    a = int(a)
    b = int(b)
    return (a, b) if a < b else (b, a)


def normalize_edges(pairs: Optional[Iterable[Sequence[int]]]) -> set[EdgeKey]:
    """Build an edge-key set from any iterable of vertex-index pairs."""
    edges: set[EdgeKey] = set()
    if pairs is None:
        return edges
    for pair in pairs:
        items = list(pair)
        if len(items) != 2:
            raise ValueError(f"edge must have exactly 2 vertex indices, got {items!r}")
        a, b = int(items[0]), int(items[1])
        if a == b:
            continue
        edges.add(edge_key(a, b))
    return edges


@dataclass
class Vertex:
    """
    정점 데이터

    Attributes:
        position: (3,) 정점 좌표
        uvs: UV 좌표 목록 (face가 uv_indices로 참조)
        normals: 법선 목록 (face가 normal_indices로 참조)
    """
    position: np.ndarray
    uvs: List[UV] = field(default_factory=list)
    normals: List[np.ndarray] = field(default_factory=list)

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64).reshape(3)

    def add_uv(self, uv: Sequence[float]) -> int:
        self.uvs.append((float(uv[0]), float(uv[1])))
        return len(self.uvs) - 1


@dataclass
class Face:
    """
    면 데이터 (N각형)

    Attributes:
        vertex_indices: 정점 인덱스 목록
        uv_indices: 각 코너의 UV 서브 인덱스 (Vertex.uvs 참조)
        normal_indices: 각 코너의 법선 서브 인덱스
        material_index: 재질 인덱스
        hidden: 숨김 여부 (숨김 면은 펼침에서 제외)
    """
    vertex_indices: List[int]
    uv_indices: List[int] = field(default_factory=list)
    normal_indices: List[int] = field(default_factory=list)
    material_index: int = 0
    hidden: bool = False

    def __post_init__(self):
        self.vertex_indices = [int(v) for v in self.vertex_indices]
        n = len(self.vertex_indices)
        if len(self.uv_indices) != n:
            self.uv_indices = [0] * n
        if len(self.normal_indices) != n:
            self.normal_indices = [0] * n

    @property
    def vertex_count(self) -> int:
        return len(self.vertex_indices)

    @property
    def is_valid(self) -> bool:
        return self.vertex_count >= 3

    @property
    def triangle_count(self) -> int:
        return self.vertex_count - 2 if self.is_valid else 0

    def fan_triangles(self) -> List[Tuple[int, int, int]]:
        """Face-local corner triples of the vertex-0 fan: (0,1,2), (0,2,3), ..."""
        return [(0, k, k + 1) for k in range(1, self.vertex_count - 1)]


@dataclass
class PolyMesh:
    """
    폴리곤 메쉬 컨테이너

    Attributes:
        vertices: 정점 목록
        faces: 면 목록
        name: 메쉬 이름
        filepath: 원본 파일 경로
    """
    vertices: List[Vertex] = field(default_factory=list)
    faces: List[Face] = field(default_factory=list)
    name: str = "Mesh"
    filepath: Optional[Path] = None

    @property
    def n_vertices(self) -> int:
        return len(self.vertices)

    @property
    def n_faces(self) -> int:
        return len(self.faces)

    @property
    def n_triangles(self) -> int:
        """Triangles produced by fan triangulation of every valid face."""
        return sum(face.triangle_count for face in self.faces)

    @property
    def positions(self) -> np.ndarray:
        if not self.vertices:
            return np.zeros((0, 3), dtype=np.float64)
        return np.asarray([v.position for v in self.vertices], dtype=np.float64)

    @property
    def bounds(self) -> np.ndarray:
        """경계 박스 [[min_x, min_y, min_z], [max_x, max_y, max_z]]"""
        pts = self.positions
        if pts.shape[0] == 0:
            return np.zeros((2, 3), dtype=np.float64)
        return np.array([pts.min(axis=0), pts.max(axis=0)])

    @property
    def extents(self) -> np.ndarray:
        return self.bounds[1] - self.bounds[0]

    @property
    def has_uvs(self) -> bool:
        return any(v.uvs for v in self.vertices)

    def face_uvs(self, face_index: int) -> np.ndarray:
        """(K, 2) UV of each corner of a face; missing entries read as (0, 0)."""
        face = self.faces[face_index]
        out = np.zeros((face.vertex_count, 2), dtype=np.float64)
        for k, (vi, sub) in enumerate(zip(face.vertex_indices, face.uv_indices)):
            uvs = self.vertices[vi].uvs
            if 0 <= sub < len(uvs):
                out[k] = uvs[sub]
        return out

    def get_boundary_edges(self) -> List[EdgeKey]:
        """
        경계 엣지 목록

        열린 메쉬에서 보이는 면 하나에만 속하는 엣지를 경계로 간주합니다.
        """
        edge_count: dict[EdgeKey, int] = {}
        for face in self.faces:
            if face.hidden or not face.is_valid:
                continue
            idx = face.vertex_indices
            n = len(idx)
            for i in range(n):
                e = edge_key(idx[i], idx[(i + 1) % n])
                edge_count[e] = edge_count.get(e, 0) + 1
        return [e for e, c in edge_count.items() if c == 1]

    @classmethod
    def from_arrays(
        cls,
        vertices: Union[np.ndarray, Sequence[Sequence[float]]],
        faces: Iterable[Sequence[int]],
        *,
        uvs: Optional[Union[np.ndarray, Sequence[Sequence[float]]]] = None,
        name: str = "Mesh",
    ) -> "PolyMesh":
        """
        좌표 배열과 폴리곤 인덱스 목록으로 메쉬 생성

        Args:
            vertices: (N, 3) 정점 좌표
            faces: 면마다 정점 인덱스 목록 (길이가 서로 달라도 됨)
            uvs: (N, 2) 정점별 UV (선택)
        """
        pts = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
        uv_arr = None
        if uvs is not None:
            uv_arr = np.asarray(uvs, dtype=np.float64)
            if uv_arr.ndim != 2 or uv_arr.shape[0] != pts.shape[0] or uv_arr.shape[1] < 2:
                raise ValueError(
                    f"uvs must have shape ({pts.shape[0]}, 2), got {uv_arr.shape}"
                )

        verts: List[Vertex] = []
        for i, p in enumerate(pts):
            v = Vertex(position=p)
            if uv_arr is not None:
                v.add_uv(uv_arr[i, :2])
            verts.append(v)

        n = len(verts)
        face_list: List[Face] = []
        for fi, face in enumerate(faces):
            idx = [int(x) for x in face]
            bad = [x for x in idx if x < 0 or x >= n]
            if bad:
                raise ValueError(f"face {fi} references missing vertices {bad}")
            face_list.append(Face(vertex_indices=idx))

        return cls(vertices=verts, faces=face_list, name=name)

    @classmethod
    def from_trimesh(cls, mesh: "trimesh.Trimesh",
                     filepath: Optional[Path] = None) -> "PolyMesh":
        """trimesh 객체에서 생성 (정점별 UV가 있으면 유지)"""
        uv = None
        visual = getattr(mesh, "visual", None)
        raw_uv = getattr(visual, "uv", None) if visual is not None else None
        if raw_uv is not None:
            raw_uv = np.asarray(raw_uv, dtype=np.float64)
            if raw_uv.ndim == 2 and raw_uv.shape[0] == len(mesh.vertices) and raw_uv.shape[1] >= 2:
                uv = raw_uv[:, :2]

        name = filepath.stem if filepath is not None else "Mesh"
        out = cls.from_arrays(mesh.vertices, np.asarray(mesh.faces).tolist(), uvs=uv, name=name)
        out.filepath = filepath
        return out

    def to_trimesh(self) -> "trimesh.Trimesh":
        """
        trimesh 객체로 변환

        UV가 있으면 (정점, UV 서브 인덱스) 쌍마다 출력 정점을 하나씩 만들어
        seam을 따라 UV가 분리된 상태를 보존합니다.
        """
        with_uv = self.has_uvs
        out_index: dict[Tuple[int, int], int] = {}
        out_positions: list[np.ndarray] = []
        out_uvs: list[UV] = []
        out_faces: list[Tuple[int, int, int]] = []

        for face in self.faces:
            if not face.is_valid:
                continue
            corner_ids = []
            for vi, sub in zip(face.vertex_indices, face.uv_indices):
                key = (vi, sub if with_uv else 0)
                idx = out_index.get(key)
                if idx is None:
                    idx = len(out_positions)
                    out_index[key] = idx
                    vert = self.vertices[vi]
                    out_positions.append(vert.position)
                    if with_uv:
                        uvs = vert.uvs
                        out_uvs.append(uvs[sub] if 0 <= sub < len(uvs) else (0.0, 0.0))
                corner_ids.append(idx)
            for a, b, c in face.fan_triangles():
                out_faces.append((corner_ids[a], corner_ids[b], corner_ids[c]))

        vertices = (np.asarray(out_positions, dtype=np.float64)
                    if out_positions else np.zeros((0, 3), dtype=np.float64))
        faces = (np.asarray(out_faces, dtype=np.int64)
                 if out_faces else np.zeros((0, 3), dtype=np.int64))

        visual = None
        if with_uv:
            visual = trimesh.visual.TextureVisuals(uv=np.asarray(out_uvs, dtype=np.float64))

        return trimesh.Trimesh(vertices=vertices, faces=faces, visual=visual, process=False)


class MeshLoader:
    """
    다양한 3D 포맷의 메쉬 파일 로더

    Supported formats:
        - OBJ (Wavefront)
        - PLY (Polygon File Format)
        - STL (Stereolithography)
        - OFF (Object File Format)
        - GLTF/GLB (GL Transmission Format)
    """

    SUPPORTED_FORMATS = {
        '.obj': 'Wavefront OBJ',
        '.ply': 'Polygon File Format',
        '.stl': 'Stereolithography',
        '.off': 'Object File Format',
        '.gltf': 'GL Transmission Format',
        '.glb': 'GL Transmission Format (Binary)',
    }

    # 정점 인덱스를 저장하지 않는 포맷 (면마다 좌표를 따로 기록)
    INDEXLESS_FORMATS = ('.stl',)

    def _check_path(self, filepath: Union[str, Path]) -> Path:
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        ext = filepath.suffix.lower()
        if ext not in self.SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported format: {ext}\n"
                f"Supported formats: {list(self.SUPPORTED_FORMATS.keys())}"
            )
        return filepath

    def _load_trimesh(self, filepath: Path) -> "trimesh.Trimesh":
        # process=False: 정점 병합/재정렬을 하지 않아야 인덱스가 파일과 일치
        # force='mesh': Scene(glTF 등)은 로더가 단일 메쉬로 병합
        mesh = trimesh.load(str(filepath), force='mesh', process=False, maintain_order=True)

        if not isinstance(mesh, trimesh.Trimesh):
            raise TypeError(f"Expected trimesh.Trimesh, got {type(mesh).__name__}")

        # STL은 삼각형마다 정점을 따로 가지므로 같은 좌표를 합쳐 연결 정보를 복원
        if filepath.suffix.lower() in self.INDEXLESS_FORMATS:
            mesh.merge_vertices()
        return mesh

    def load(self, filepath: Union[str, Path]) -> PolyMesh:
        """
        메쉬 파일 로드

        Args:
            filepath: 메쉬 파일 경로

        Returns:
            PolyMesh: 로드된 메쉬 (삼각형 면)

        Raises:
            FileNotFoundError: 파일이 존재하지 않음
            ValueError: 지원하지 않는 포맷
        """
        filepath = self._check_path(filepath)
        return PolyMesh.from_trimesh(self._load_trimesh(filepath), filepath=filepath)

    def get_file_info(self, filepath: Union[str, Path]) -> dict:
        """
        파일 정보 미리보기

        Args:
            filepath: 메쉬 파일 경로

        Returns:
            dict: 파일 정보 딕셔너리
        """
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        ext = filepath.suffix.lower()
        info = {
            'filename': filepath.name,
            'format': self.SUPPORTED_FORMATS.get(ext, 'Unknown'),
            'extension': ext,
            'file_size_mb': round(filepath.stat().st_size / (1024 * 1024), 2),
        }

        try:
            mesh = self._load_trimesh(self._check_path(filepath))
            info['n_vertices'] = int(mesh.vertices.shape[0])
            info['n_faces'] = int(mesh.faces.shape[0])
            visual = getattr(mesh, "visual", None)
            info['has_uv'] = getattr(visual, "uv", None) is not None
        except (ValueError, TypeError, OSError) as e:
            info['error'] = str(e)

        return info


def save_unwrapped_mesh(mesh: PolyMesh, filepath: Union[str, Path]) -> str:
    """
    메쉬를 UV와 함께 파일로 저장

    Args:
        mesh: 저장할 메쉬
        filepath: 저장 경로 (확장자로 포맷 결정)
    """
    out_path = Path(filepath)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    mesh.to_trimesh().export(str(out_path))
    return str(out_path)
