"""ORB feature extraction, descriptors and descriptor matching on NumPy images."""

__version__ = "0.1.0"

__all__ = [
    "descriptor",
    "extractor",
    "imaging",
    "initialization",
    "keypoint",
    "matching",
    "octree",
    "pattern",
]