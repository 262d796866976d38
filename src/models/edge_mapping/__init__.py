"""
Edge Mapping Module for Tube Layout

This module implements the pipeline that turns an arbitrary triangulated model
into continuous polylines suitable as tube paths.

Key Components:
- EdgeMapper: Main pipeline orchestrator
- EdgeExtractor: Sharp-edge extraction from a mesh hierarchy
- VertexGraphBuilder: Endpoint welding with a spatial hash
- VertexGraph: Welded vertices and adjacency
- ChainTracer: Walks the graph into open and closed chains
- Chain: Ordered polyline with a closed flag

The pipeline:
1. Extraction: Crease and border edges in world space
2. Welding: Near-duplicate endpoints merged into one vertex graph
3. Tracing: Open-ended chains first, then remaining loops
4. Simplification: Douglas-Peucker with a model-scaled epsilon
5. Filtering: Degenerate and short chains dropped
"""

from .edge_mapper import EdgeMapper, EdgeMappingConfig, EdgeMappingResult, map_edges
from .edge_extraction import EdgeExtractor, Segment, iter_world_meshes, sharp_edge_pairs
from .vertex_graph import VertexGraph, VertexGraphBuilder
from .chain_tracing import Chain, ChainTracer, edge_key

__all__ = [
    'EdgeMapper',
    'EdgeMappingConfig',
    'EdgeMappingResult',
    'map_edges',
    'EdgeExtractor',
    'Segment',
    'iter_world_meshes',
    'sharp_edge_pairs',
    'VertexGraph',
    'VertexGraphBuilder',
    'Chain',
    'ChainTracer',
    'edge_key'
]
