"""
Edge Mapping Pipeline
Orchestrates sharp-edge extraction, welding, chain tracing, simplification and filtering
"""

import numpy as np
from dataclasses import dataclass, asdict, field, fields
from typing import Dict, List, Optional, Any
import logging

from .edge_extraction import EdgeExtractor, MeshSource, Segment
from .vertex_graph import VertexGraphBuilder
from .chain_tracing import Chain, ChainTracer
from src.utils.path_simplification import simplify_path


@dataclass
class EdgeMappingConfig:
    """Configuration for edge mapping (lengths in meters)"""

    # Extraction
    angle_threshold: float = 30.0  # degrees
    min_edge_length: float = 0.005

    # Welding
    tolerance: float = 0.001

    # Simplification; None derives epsilon from the model size
    simplify_epsilon: Optional[float] = None
    epsilon_fraction: float = 0.005  # of the bounding-box diagonal

    # Filtering
    min_chain_length: float = 0.01

    show_progress: bool = False

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'EdgeMappingConfig':
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown edge mapping options: {sorted(unknown)}")
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def validate(self):
        if self.angle_threshold < 0:
            raise ValueError(f"angle_threshold must be >= 0, got {self.angle_threshold}")
        if self.min_edge_length < 0:
            raise ValueError(f"min_edge_length must be >= 0, got {self.min_edge_length}")
        if self.min_chain_length < 0:
            raise ValueError(f"min_chain_length must be >= 0, got {self.min_chain_length}")
        if self.simplify_epsilon is not None and self.simplify_epsilon < 0:
            raise ValueError(f"simplify_epsilon must be >= 0, got {self.simplify_epsilon}")


@dataclass
class EdgeMappingResult:
    """Chains produced by one mapping run plus diagnostics"""
    chains: List[Chain] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=lambda: {
        'edge_count': 0,
        'vertex_count': 0,
        'chain_count': 0
    })
    metadata: Dict[str, Any] = field(default_factory=dict)

    def total_length(self) -> float:
        return float(sum(chain.length for chain in self.chains))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'chains': [chain.to_dict() for chain in self.chains],
            'stats': dict(self.stats),
            'metadata': self.metadata
        }

    def get_summary(self) -> str:
        """Get human-readable summary of the mapping run"""
        summary = ["=== Edge Mapping Summary ==="]
        summary.append(f"Sharp edges: {self.stats['edge_count']}")
        summary.append(f"Welded vertices: {self.stats['vertex_count']}")
        summary.append(f"Chains: {self.stats['chain_count']}")

        closed = sum(1 for chain in self.chains if chain.closed)
        summary.append(f"  open: {len(self.chains) - closed}")
        summary.append(f"  closed: {closed}")

        epsilon = self.metadata.get('simplify_epsilon')
        if epsilon is not None:
            summary.append(f"Simplify epsilon: {epsilon:.5f} m")
        summary.append(f"Total length: {self.total_length():.3f} m")

        return "\n".join(summary)

    def __repr__(self) -> str:
        return f"EdgeMappingResult(chains={len(self.chains)})"


class EdgeMapper:
    """
    Main facade: model in, simplified polyline chains out
    """

    def __init__(self, config: Optional[EdgeMappingConfig] = None):
        """
        Initialize edge mapper

        Args:
            config: Mapping parameters (defaults if omitted)
        """
        self.config = config or EdgeMappingConfig()
        self.config.validate()
        self.logger = logging.getLogger(__name__)

        self.extractor = EdgeExtractor(
            angle_threshold=self.config.angle_threshold,
            min_edge_length=self.config.min_edge_length,
            show_progress=self.config.show_progress
        )
        self.graph_builder = VertexGraphBuilder(tolerance=self.config.tolerance)
        self.tracer = ChainTracer()

    def map_edges(self, source: MeshSource) -> EdgeMappingResult:
        """
        Extract sharp edges from a model and assemble them into chains

        Args:
            source: Mesh hierarchy (Trimesh, Scene, or a sequence of them)

        Returns:
            EdgeMappingResult with chains and stats
        """
        self.logger.info("Step 1: Extracting sharp edges")
        segments = self.extractor.extract(source)
        return self.map_segments(segments)

    def map_segments(self, segments: List[Segment]) -> EdgeMappingResult:
        """
        Weld, trace, simplify and filter already-extracted segments

        Args:
            segments: World-space segments

        Returns:
            EdgeMappingResult with chains and stats
        """
        if not segments:
            self.logger.warning("No sharp edges found, returning empty result")
            return EdgeMappingResult(metadata={'config': self.config.to_dict()})

        self.logger.info("Step 2: Welding vertices")
        graph = self.graph_builder.build(segments)

        self.logger.info("Step 3: Tracing chains")
        raw_chains = self.tracer.trace(graph)

        epsilon = self.config.simplify_epsilon
        if epsilon is None:
            epsilon = graph.bounding_box_diagonal() * self.config.epsilon_fraction

        self.logger.info(f"Step 4: Simplifying and filtering (epsilon={epsilon:.5f} m)")
        chains = self._simplify_and_filter(raw_chains, epsilon)

        self.logger.info(f"Edge mapping completed: {len(chains)} chains kept of {len(raw_chains)}")

        return EdgeMappingResult(
            chains=chains,
            stats={
                'edge_count': len(segments),
                'vertex_count': graph.num_vertices,
                'chain_count': len(chains)
            },
            metadata={
                'simplify_epsilon': float(epsilon),
                'raw_chain_count': len(raw_chains),
                'component_count': graph.count_components(),
                'config': self.config.to_dict()
            }
        )

    def _simplify_and_filter(self, chains: List[Chain], epsilon: float) -> List[Chain]:
        kept = []
        for chain in chains:
            points = simplify_path(chain.points, epsilon, closed=chain.closed)
            simplified = Chain(points=points, closed=chain.closed)

            if len(simplified) < 2 or simplified.length < self.config.min_chain_length:
                self.logger.debug(f"Dropping chain with {len(simplified)} points, "
                                  f"length {simplified.length:.4f} m")
                continue

            kept.append(simplified)

        return kept

    def get_mapping_summary(self) -> str:
        """Get summary of mapping parameters"""
        epsilon = self.config.simplify_epsilon
        summary = ["=== Edge Mapping Configuration ==="]
        summary.append(f"Angle threshold: {self.config.angle_threshold} deg")
        summary.append(f"Min edge length: {self.config.min_edge_length} m")
        summary.append(f"Merge tolerance: {self.config.tolerance} m")
        if epsilon is None:
            summary.append(f"Simplify epsilon: auto ({self.config.epsilon_fraction:.1%} of bbox diagonal)")
        else:
            summary.append(f"Simplify epsilon: {epsilon} m")
        summary.append(f"Min chain length: {self.config.min_chain_length} m")

        return "\n".join(summary)


def map_edges(source: MeshSource, **options) -> EdgeMappingResult:
    """
    Convenience wrapper around EdgeMapper

    Args:
        source: Mesh hierarchy
        **options: EdgeMappingConfig fields

    Returns:
        EdgeMappingResult
    """
    return EdgeMapper(EdgeMappingConfig.from_dict(options)).map_edges(source)
