#!/usr/bin/env python
"""
Map the sharp edges of a 3D model to tube rail chains
"""

import sys
import json
import logging
from pathlib import Path

import trimesh

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from src.models.edge_mapping import EdgeMapper, EdgeMappingConfig
from src.models.rail_selection import RailClassifier, SelectionConfirmed
from src.utils.geometry import mm_to_m


def build_config(args) -> EdgeMappingConfig:
    """Build mapping configuration from command line options"""
    defaults = EdgeMappingConfig()

    def length(value, default):
        if value is None:
            return default
        return mm_to_m(value) if args.mm else value

    return EdgeMappingConfig(
        angle_threshold=args.angle,
        min_edge_length=length(args.min_edge_length, defaults.min_edge_length),
        tolerance=length(args.tolerance, defaults.tolerance),
        simplify_epsilon=length(args.epsilon, defaults.simplify_epsilon),
        min_chain_length=length(args.min_chain_length, defaults.min_chain_length),
        show_progress=args.progress
    )


def map_model(model_path: Path, config: EdgeMappingConfig, output_path: Path = None) -> bool:
    """Run edge mapping and automatic rail selection on one model file"""
    logger = logging.getLogger(__name__)

    logger.info(f"Loading model {model_path}")
    model = trimesh.load(str(model_path))

    mapper = EdgeMapper(config)
    logger.info(mapper.get_mapping_summary())

    result = mapper.map_edges(model)
    logger.info(result.get_summary())

    if not result.chains:
        logger.warning("No chains found, nothing to select")
        return False

    # Accept the automatic rail selection as-is
    classifier = RailClassifier()
    classifier.activate(result.chains)
    logger.info(classifier.session.status_text())
    event = classifier.confirm()

    if not isinstance(event, SelectionConfirmed):
        logger.error("Rail selection did not confirm")
        return False

    rails = list(event.chains)
    logger.info(f"Selected {len(rails)} main rails of {len(result.chains)} chains")

    if output_path is not None:
        data = result.to_dict()
        data['rails'] = [chain.to_dict() for chain in rails]
        with open(output_path, 'w') as f:
            json.dump(data, f, indent=2)
        logger.info(f"Chains saved to {output_path}")

    return True


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Extract tube rail chains from the sharp edges of a 3D model')
    parser.add_argument('input', type=str,
                        help='Model file readable by trimesh (glb, obj, stl, ...)')
    parser.add_argument('--angle', type=float, default=30.0,
                        help='Sharp edge angle threshold in degrees (default: 30)')
    parser.add_argument('--min-edge-length', type=float, default=None,
                        help='Discard edges shorter than this (default: 0.005 m)')
    parser.add_argument('--tolerance', type=float, default=None,
                        help='Vertex merge distance (default: 0.001 m)')
    parser.add_argument('--epsilon', type=float, default=None,
                        help='Simplification tolerance (default: 0.5%% of bbox diagonal)')
    parser.add_argument('--min-chain-length', type=float, default=None,
                        help='Discard chains shorter than this (default: 0.01 m)')
    parser.add_argument('--output', type=str, default=None,
                        help='Write chains and selected rails as JSON')
    parser.add_argument('--mm', action='store_true',
                        help='Read length options as millimeters instead of meters')
    parser.add_argument('--progress', action='store_true',
                        help='Show a progress bar over the meshes')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable debug logging')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger(__name__)

    model_path = Path(args.input)
    if not model_path.exists():
        logger.error(f"Model file not found: {model_path}")
        sys.exit(1)

    output_path = Path(args.output) if args.output else None
    success = map_model(model_path, build_config(args), output_path)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
