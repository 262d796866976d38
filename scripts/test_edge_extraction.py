#!/usr/bin/env python
"""
Test script for sharp edge extraction from trimesh models
"""

import sys
import logging
from pathlib import Path

import numpy as np
import pytest
import trimesh

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from src.models.edge_mapping import EdgeExtractor, iter_world_meshes, sharp_edge_pairs


def create_unit_cube() -> trimesh.Trimesh:
    """1 m cube centred on the origin"""
    return trimesh.creation.box(extents=(1.0, 1.0, 1.0))


def test_cube_has_twelve_sharp_edges():
    segments = EdgeExtractor(angle_threshold=30, min_edge_length=0).extract(create_unit_cube())

    assert len(segments) == 12
    assert all(s.length == pytest.approx(1.0) for s in segments)


def test_coplanar_diagonals_are_not_sharp():
    pairs = sharp_edge_pairs(create_unit_cube(), angle_threshold=30)

    assert pairs.shape == (12, 2, 3)
    lengths = np.linalg.norm(pairs[:, 1] - pairs[:, 0], axis=1)
    np.testing.assert_allclose(lengths, 1.0)


def test_threshold_above_dihedral_finds_nothing():
    assert EdgeExtractor(angle_threshold=120).extract(create_unit_cube()) == []


def test_smooth_sphere_has_no_sharp_edges():
    sphere = trimesh.creation.icosphere(subdivisions=3, radius=1.0)
    assert EdgeExtractor(angle_threshold=30).extract(sphere) == []


def test_border_edges_are_included():
    quad = trimesh.Trimesh(
        vertices=[[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]],
        faces=[[0, 1, 2], [0, 2, 3]]
    )

    segments = EdgeExtractor(angle_threshold=30, min_edge_length=0).extract(quad)

    assert len(segments) == 4
    assert all(s.length == pytest.approx(1.0) for s in segments)


def test_unmerged_faces_share_edges():
    """Faces with their own copies of shared corners still count as adjacent"""
    cube = create_unit_cube()
    soup = trimesh.Trimesh(
        vertices=cube.vertices[cube.faces].reshape(-1, 3),
        faces=np.arange(len(cube.faces) * 3).reshape(-1, 3),
        process=False
    )

    assert len(EdgeExtractor(min_edge_length=0).extract(soup)) == 12


def test_edges_shared_by_three_faces_are_included():
    """Three fins hinged on one edge, 120 degrees apart"""
    fins = trimesh.Trimesh(
        vertices=[
            [0, 0, 0], [0, 0, 1],
            [1, 0, 0.5], [-0.5, np.sqrt(3) / 2, 0.5], [-0.5, -np.sqrt(3) / 2, 0.5],
        ],
        faces=[[0, 1, 2], [0, 1, 3], [0, 1, 4]]
    )

    segments = EdgeExtractor(angle_threshold=30, min_edge_length=0).extract(fins)

    assert len(segments) == 7
    hinge = {(0.0, 0.0, 0.0), (0.0, 0.0, 1.0)}
    assert sum({tuple(s.start), tuple(s.end)} == hinge for s in segments) == 1


def test_short_edges_discarded():
    slab = trimesh.creation.box(extents=(1.0, 1.0, 0.002))

    segments = EdgeExtractor(angle_threshold=30, min_edge_length=0.005).extract(slab)

    assert len(segments) == 8
    assert all(s.length >= 0.005 for s in segments)


def test_scene_transforms_applied():
    scene = trimesh.Scene()
    scene.add_geometry(create_unit_cube(), node_name='cube',
                       transform=trimesh.transformations.translation_matrix([5.0, 0.0, 0.0]))

    segments = EdgeExtractor(min_edge_length=0).extract(scene)

    assert len(segments) == 12
    xs = np.concatenate([[s.start[0], s.end[0]] for s in segments])
    assert set(np.round(xs, 6)) == {4.5, 5.5}


def test_hierarchy_of_meshes():
    scene = trimesh.Scene()
    scene.add_geometry(create_unit_cube(), node_name='a')
    scene.add_geometry(create_unit_cube(), node_name='b',
                       transform=trimesh.transformations.translation_matrix([0.0, 3.0, 0.0]))

    names = [name for name, _, _ in iter_world_meshes([scene, create_unit_cube()])]

    assert len(names) == 3
    assert len(EdgeExtractor(min_edge_length=0).extract([scene, create_unit_cube()])) == 36


def test_non_triangle_geometry_is_skipped():
    path = trimesh.load_path(np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0]]))
    cloud = trimesh.PointCloud(np.random.default_rng(0).uniform(size=(20, 3)))

    names = [name for name, _, _ in iter_world_meshes([create_unit_cube(), path, cloud])]
    assert len(names) == 1

    scene = trimesh.Scene([create_unit_cube(), path])
    assert len(EdgeExtractor(min_edge_length=0).extract([scene, (cloud,)])) == 12
    assert EdgeExtractor().extract(cloud) == []


def test_empty_sources():
    extractor = EdgeExtractor()

    assert extractor.extract(trimesh.Scene()) == []
    assert extractor.extract([]) == []


def test_unsupported_source_raises():
    with pytest.raises(TypeError):
        EdgeExtractor().extract("model.glb")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(pytest.main([__file__, "-v"]))
