"""
Sharp Edge Extraction from Triangle Meshes
Collects crease and border edges of a mesh hierarchy as world-space segments
"""

import numpy as np
import trimesh
from trimesh.parent import Geometry
from dataclasses import dataclass
from typing import Iterator, List, Tuple, Union, Sequence
import logging
from tqdm import tqdm


MeshSource = Union[trimesh.Trimesh, trimesh.Scene, Sequence]


@dataclass
class Segment:
    """A world-space line segment between two 3D points"""
    start: np.ndarray
    end: np.ndarray

    @property
    def length(self) -> float:
        return float(np.linalg.norm(self.end - self.start))


def iter_world_meshes(source: MeshSource) -> Iterator[Tuple[str, trimesh.Trimesh, np.ndarray]]:
    """
    Walk a mesh hierarchy

    Args:
        source: Trimesh, Scene, or a (nested) sequence of them

    Yields:
        (name, mesh, 4x4 world matrix) for every triangle mesh
    """
    if isinstance(source, trimesh.Trimesh):
        yield source.metadata.get('name', 'mesh'), source, np.eye(4)

    elif isinstance(source, trimesh.Scene):
        for node_name in source.graph.nodes_geometry:
            transform, geometry_name = source.graph[node_name]
            geometry = source.geometry.get(geometry_name)
            if isinstance(geometry, trimesh.Trimesh):
                yield node_name, geometry, np.asarray(transform, dtype=np.float64)

    elif isinstance(source, (list, tuple)):
        for child in source:
            yield from iter_world_meshes(child)

    elif isinstance(source, Geometry):
        # Paths and point clouds carry no faces
        return

    else:
        raise TypeError(f"Unsupported mesh source: {type(source).__name__}")


def sharp_edge_pairs(mesh: trimesh.Trimesh, angle_threshold: float = 30.0) -> np.ndarray:
    """
    Endpoint pairs of the sharp edges of a triangle mesh, in local space

    An interior edge is sharp when the normals of its two faces differ by more
    than ``angle_threshold`` degrees. Border edges (one adjacent face) and
    non-manifold edges (three or more adjacent faces) are always included.

    Args:
        mesh: Triangle mesh
        angle_threshold: Dihedral threshold in degrees

    Returns:
        (K, 2, 3) array of endpoint pairs
    """
    if mesh.is_empty or len(mesh.faces) == 0:
        return np.zeros((0, 2, 3))

    # Coincident corners of separate faces must share adjacency
    merged = mesh.copy()
    merged.merge_vertices(merge_tex=True, merge_norm=True)

    pairs = []

    if len(merged.face_adjacency) > 0:
        sharp = merged.face_adjacency_angles > np.radians(angle_threshold)
        pairs.append(merged.face_adjacency_edges[sharp])

    unique_edges, counts = np.unique(merged.edges_sorted, axis=0, return_counts=True)
    open_or_fanned = (counts == 1) | (counts > 2)
    if np.any(open_or_fanned):
        pairs.append(unique_edges[open_or_fanned])

    if not pairs:
        return np.zeros((0, 2, 3))

    edge_indices = np.unique(np.vstack(pairs), axis=0)
    return merged.vertices[edge_indices].astype(np.float64)


class EdgeExtractor:
    """
    Turn a mesh hierarchy into world-space sharp-edge segments
    """

    def __init__(self,
                 angle_threshold: float = 30.0,
                 min_edge_length: float = 0.005,
                 show_progress: bool = False):
        """
        Initialize edge extractor

        Args:
            angle_threshold: Dihedral angle (degrees) above which an edge is sharp
            min_edge_length: Discard segments shorter than this (meters)
            show_progress: Show a progress bar over the meshes
        """
        self.angle_threshold = angle_threshold
        self.min_edge_length = min_edge_length
        self.show_progress = show_progress
        self.logger = logging.getLogger(__name__)

    def extract(self, source: MeshSource) -> List[Segment]:
        """
        Extract sharp edges from every mesh in the hierarchy

        Args:
            source: Mesh hierarchy

        Returns:
            Unordered list of world-space segments
        """
        meshes = list(iter_world_meshes(source))

        if not meshes:
            self.logger.warning("Mesh source contains no triangle meshes")
            return []

        segments: List[Segment] = []
        discarded = 0

        for name, mesh, transform in tqdm(meshes, desc="Extracting edges",
                                          disable=not self.show_progress):
            pairs = sharp_edge_pairs(mesh, self.angle_threshold)
            if len(pairs) == 0:
                continue

            world = self._transform_pairs(pairs, transform)
            lengths = np.linalg.norm(world[:, 1] - world[:, 0], axis=1)
            keep = lengths >= self.min_edge_length
            discarded += int(np.sum(~keep))

            for start, end in world[keep]:
                segments.append(Segment(start=start, end=end))

            self.logger.debug(f"Mesh '{name}': {int(np.sum(keep))} sharp edges")

        self.logger.info(f"Extracted {len(segments)} segments from {len(meshes)} meshes "
                         f"({discarded} below {self.min_edge_length} m discarded)")
        return segments

    @staticmethod
    def _transform_pairs(pairs: np.ndarray, transform: np.ndarray) -> np.ndarray:
        """Apply a 4x4 world matrix to (K, 2, 3) endpoint pairs"""
        flat = pairs.reshape(-1, 3)
        world = trimesh.transformations.transform_points(flat, transform)
        return world.reshape(-1, 2, 3)
