"""
UV Layout Preview
UV 배치 미리보기 이미지 생성

Draws every face's UV polygon outline into a square image so a user can
check islands, seams and packing at a glance.
"""

from __future__ import annotations

from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image, ImageDraw

from .mesh_loader import PolyMesh

BACKGROUND = (255, 255, 255)
FRAME_COLOR = (200, 200, 200)
EDGE_COLOR = (0, 0, 0)


def render_uv_layout(mesh: PolyMesh, resolution: int = 1024, *, margin: int = 8,
                     include_hidden: bool = False) -> Image.Image:
    """
    UV 배치를 RGB 이미지로 렌더링

    Args:
        mesh: UV가 기록된 메쉬
        resolution: 이미지 한 변 픽셀 수
        margin: 가장자리 여백 (픽셀)
        include_hidden: hidden face도 그릴지 여부

    Returns:
        PIL.Image: (resolution x resolution) 이미지, [0,1]^2 UV 영역이 프레임 안에 들어감
    """
    resolution = int(resolution)
    if resolution < 2:
        raise ValueError(f"resolution must be >= 2, got {resolution}")
    margin = int(max(0, min(margin, resolution // 4)))

    img = Image.new("RGB", (resolution, resolution), BACKGROUND)
    draw = ImageDraw.Draw(img)

    span = float(resolution - 1 - 2 * margin)
    draw.rectangle([margin, margin, margin + span, margin + span], outline=FRAME_COLOR)

    for fi, face in enumerate(mesh.faces):
        if not face.is_valid or (face.hidden and not include_hidden):
            continue
        uv = mesh.face_uvs(fi)
        if not np.all(np.isfinite(uv)):
            continue
        # 이미지 좌표계는 y축이 아래 방향
        px = margin + uv[:, 0] * span
        py = margin + (1.0 - uv[:, 1]) * span
        points = [(float(x), float(y)) for x, y in zip(px, py)]
        points.append(points[0])
        draw.line(points, fill=EDGE_COLOR, width=1)

    return img


def save_uv_layout(mesh: PolyMesh, filepath: Union[str, Path], resolution: int = 1024) -> str:
    """UV 배치 이미지를 파일로 저장"""
    out_path = Path(filepath)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    render_uv_layout(mesh, resolution).save(str(out_path))
    return str(out_path)
