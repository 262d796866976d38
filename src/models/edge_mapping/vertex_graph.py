"""
Vertex Graph Construction
Welds segment endpoints into shared vertices with a uniform spatial hash
"""

import numpy as np
import networkx as nx
from scipy import sparse
from scipy.sparse.csgraph import connected_components
from collections import defaultdict
from typing import Dict, List, Set, Tuple, Optional
import logging

from .edge_extraction import Segment
from src.utils.geometry import bounding_box_diagonal


CellKey = Tuple[int, int, int]


class VertexGraph:
    """
    Deduplicated vertices plus an undirected, symmetric adjacency
    """

    def __init__(self,
                 vertices: Optional[np.ndarray] = None,
                 adjacency: Optional[List[Set[int]]] = None):
        """
        Initialize VertexGraph

        Args:
            vertices: (N, 3) vertex positions; index is the vertex identity
            adjacency: Neighbor index set per vertex
        """
        self.vertices = vertices if vertices is not None else np.zeros((0, 3))
        self.adjacency = adjacency if adjacency is not None else []

    @property
    def num_vertices(self) -> int:
        return len(self.vertices)

    @property
    def num_edges(self) -> int:
        return sum(len(neighbors) for neighbors in self.adjacency) // 2

    def degree(self, index: int) -> int:
        return len(self.adjacency[index])

    def edges(self) -> List[Tuple[int, int]]:
        """Canonical (min, max) edge pairs, sorted"""
        return sorted(
            (i, j) for i, neighbors in enumerate(self.adjacency) for j in neighbors if i < j
        )

    def bounding_box_diagonal(self) -> float:
        return bounding_box_diagonal(self.vertices)

    def to_adjacency_matrix(self) -> sparse.csr_matrix:
        """Symmetric sparse adjacency matrix"""
        n = self.num_vertices
        edges = self.edges()
        if not edges:
            return sparse.csr_matrix((n, n), dtype=bool)

        rows, cols = np.array(edges).T
        data = np.ones(2 * len(edges), dtype=bool)
        return sparse.csr_matrix(
            (data, (np.concatenate([rows, cols]), np.concatenate([cols, rows]))),
            shape=(n, n)
        )

    def count_components(self) -> int:
        """Connected components among vertices that have at least one edge"""
        connected = [i for i, neighbors in enumerate(self.adjacency) if neighbors]
        if not connected:
            return 0

        _, labels = connected_components(self.to_adjacency_matrix(), directed=False)
        return len(np.unique(labels[connected]))

    def to_networkx(self) -> nx.Graph:
        """Convert to NetworkX graph with a 'pos' attribute per node"""
        G = nx.Graph()
        for i, position in enumerate(self.vertices):
            G.add_node(i, pos=tuple(float(c) for c in position))
        G.add_edges_from(self.edges())
        return G

    def __repr__(self) -> str:
        return f"VertexGraph(vertices={self.num_vertices}, edges={self.num_edges})"


class VertexGraphBuilder:
    """
    Merge near-duplicate segment endpoints into a connectivity graph

    Points closer than ``tolerance`` resolve to the same vertex. Lookups scan the
    27 hash cells around the query point's cell (cell size = 2 x tolerance) and
    take the nearest registered vertex.
    """

    def __init__(self, tolerance: float = 0.001):
        """
        Initialize vertex graph builder

        Args:
            tolerance: Merge distance in meters (strict less-than); <= 0 disables merging
        """
        self.tolerance = tolerance
        self.logger = logging.getLogger(__name__)

    def build(self, segments: List[Segment]) -> VertexGraph:
        """
        Weld segment endpoints and connect them

        Args:
            segments: World-space segments

        Returns:
            VertexGraph with merged vertices and symmetric adjacency
        """
        vertices: List[np.ndarray] = []
        adjacency: List[Set[int]] = []
        cells: Dict[CellKey, List[int]] = defaultdict(list)
        self_loops = 0

        def find_or_add(point: np.ndarray) -> int:
            point = np.asarray(point, dtype=np.float64)

            if self.tolerance > 0:
                best_idx = self._find_nearest(point, vertices, cells)
                if best_idx is not None:
                    return best_idx

            idx = len(vertices)
            vertices.append(point.copy())
            adjacency.append(set())
            if self.tolerance > 0:
                cells[self._cell_of(point)].append(idx)
            return idx

        for segment in segments:
            a = find_or_add(segment.start)
            b = find_or_add(segment.end)
            if a != b:
                adjacency[a].add(b)
                adjacency[b].add(a)
            else:
                self_loops += 1

        graph = VertexGraph(
            vertices=np.array(vertices, dtype=np.float64).reshape(-1, 3),
            adjacency=adjacency
        )

        self.logger.info(f"Welded {2 * len(segments)} endpoints into {graph.num_vertices} vertices, "
                         f"{graph.num_edges} edges")
        if self_loops:
            self.logger.debug(f"Dropped {self_loops} degenerate segments")

        return graph

    def _cell_of(self, point: np.ndarray) -> CellKey:
        cell_size = 2 * self.tolerance
        return (int(round(point[0] / cell_size)),
                int(round(point[1] / cell_size)),
                int(round(point[2] / cell_size)))

    def _find_nearest(self,
                      point: np.ndarray,
                      vertices: List[np.ndarray],
                      cells: Dict[CellKey, List[int]]) -> Optional[int]:
        """Nearest registered vertex strictly within tolerance, or None"""
        cx, cy, cz = self._cell_of(point)
        best_idx = None
        best_dist = self.tolerance

        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for dz in (-1, 0, 1):
                    for idx in cells.get((cx + dx, cy + dy, cz + dz), ()):
                        dist = float(np.linalg.norm(vertices[idx] - point))
                        if dist < best_dist:
                            best_dist = dist
                            best_idx = idx

        return best_idx
