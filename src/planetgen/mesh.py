"""Triangulation of heightfield grids into renderable surfaces."""

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

# Above this many vertices indices need 32 bits
NARROW_INDEX_MAX_VERTICES = 65000

UP = np.array([0.0, 1.0, 0.0])


@dataclass(frozen=True, eq=False)
class TerrainMesh:
    """Vertex, UV, index and normal buffers for one surface."""

    vertices: NDArray[np.float64]
    uvs: NDArray[np.float64]
    triangles: NDArray[np.unsignedinteger]
    normals: NDArray[np.float64]

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles) // 3


def index_dtype(vertex_count: int) -> type[np.unsignedinteger]:
    """Pick the narrowest index type that can address every vertex."""
    return np.uint16 if vertex_count <= NARROW_INDEX_MAX_VERTICES else np.uint32


def grid_triangles(width: int, length: int) -> NDArray[np.unsignedinteger]:
    """Index buffer for a ``(width+1) x (length+1)`` vertex grid.

    Each cell emits ``(i0, i2, i1)`` and ``(i1, i2, i3)``, which faces +Y.
    """
    cols = width + 1
    xs, zs = np.meshgrid(np.arange(width), np.arange(length))
    i0 = (zs * cols + xs).ravel()
    i1 = i0 + 1
    i2 = i0 + cols
    i3 = i2 + 1

    triangles = np.stack([i0, i2, i1, i1, i2, i3], axis=-1).ravel()
    return triangles.astype(index_dtype(cols * (length + 1)))


def compute_vertex_normals(
    vertices: NDArray[np.float64],
    triangles: NDArray[np.unsignedinteger],
) -> NDArray[np.float64]:
    """Area-weighted vertex normals.

    Unnormalised face normals are summed onto their corners, then
    normalised. Vertices with no usable faces get +Y.

    Args:
        vertices: Vertex positions, shape (N, 3).
        triangles: Flat index buffer.

    Returns:
        Unit normals, shape (N, 3).
    """
    faces = triangles.astype(np.int64).reshape(-1, 3)
    v0 = vertices[faces[:, 0]]
    v1 = vertices[faces[:, 1]]
    v2 = vertices[faces[:, 2]]
    face_normals = np.cross(v1 - v0, v2 - v0)

    normals = np.zeros_like(vertices, dtype=np.float64)
    for corner in range(3):
        np.add.at(normals, faces[:, corner], face_normals)

    lengths = np.linalg.norm(normals, axis=1)
    degenerate = lengths <= 1e-12
    normals[degenerate] = UP
    lengths[degenerate] = 1.0
    return normals / lengths[:, None]


def build_mesh(
    positions: NDArray[np.float64],
    width: int,
    length: int,
) -> TerrainMesh:
    """Triangulate a row-major vertex grid.

    Args:
        positions: Vertex positions, shape ((width+1)*(length+1), 3).
        width: Cell count along x.
        length: Cell count along z.

    Returns:
        TerrainMesh with UVs in [0, 1] and per-vertex normals.
    """
    cols = width + 1
    rows = length + 1
    if positions.shape != (cols * rows, 3):
        raise ValueError(
            f"Expected {cols * rows} vertices for a {width}x{length} grid, "
            f"got {positions.shape[0]}"
        )

    us, vs = np.meshgrid(np.arange(cols) / width, np.arange(rows) / length)
    uvs = np.stack([us.ravel(), vs.ravel()], axis=-1)

    triangles = grid_triangles(width, length)
    vertices = np.array(positions, dtype=np.float64)
    normals = compute_vertex_normals(vertices, triangles)

    return TerrainMesh(vertices=vertices, uvs=uvs, triangles=triangles, normals=normals)


def build_tile_mesh(
    centers: NDArray[np.float64],
    tile_size: float,
) -> TerrainMesh:
    """One flat, separate quad per tile centre.

    Args:
        centers: Tile centre positions, shape (T, 3).
        tile_size: Edge length of each square tile.

    Returns:
        TerrainMesh with four vertices and two triangles per tile.
    """
    half = tile_size * 0.5
    corners = np.array([[-half, 0.0, -half], [half, 0.0, -half], [-half, 0.0, half], [half, 0.0, half]])
    vertices = (centers[:, None, :] + corners[None, :, :]).reshape(-1, 3)

    tile_uvs = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])
    uvs = np.tile(tile_uvs, (len(centers), 1))

    base = np.arange(len(centers)) * 4
    # Same corner ordering as grid cells: i0, i2, i1 / i1, i2, i3
    triangles = np.stack(
        [base, base + 2, base + 1, base + 1, base + 2, base + 3], axis=-1
    ).ravel()
    triangles = triangles.astype(index_dtype(len(vertices)))

    normals = np.tile(UP, (len(vertices), 1))
    return TerrainMesh(vertices=vertices, uvs=uvs, triangles=triangles, normals=normals)
