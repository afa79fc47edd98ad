# orbfeatures

Oriented FAST and rotated BRIEF (ORB) feature extraction and matching on
grey-scale images held as NumPy arrays.

The extractor builds a scale pyramid, detects FAST corners in cells over each
level, spreads them evenly across the image with a quadtree, gives each
keypoint an intensity-centroid orientation and computes a 256-bit steered
BRIEF descriptor for it. The matching helpers compare descriptors by Hamming
distance, apply a nearest-neighbour ratio test and reject matches whose
rotation disagrees with the dominant rotations of the set.

## Installation

```
pip install .
```

The only runtime dependency is NumPy.

## Extracting features

```python
import numpy as np
from orbfeatures.extractor import ORBExtractor

image = np.asarray(my_grey_image, dtype=np.uint8)   # 2-D, 8-bit

extractor = ORBExtractor(nfeatures=1000, scale_factor=1.2, nlevels=8,
                         ini_th_fast=20, min_th_fast=7)
keypoints, descriptors = extractor(image, None)
```

`keypoints` is a list of `orbfeatures.keypoint.KeyPoint`, with coordinates in
the frame of the input image, the pyramid level in `octave`, the patch size in
`size`, the orientation in degrees in `angle` and the FAST score in
`response`. `descriptors` is a `uint8` array with one row of 32 bytes per
keypoint, in the same order. The mask argument is accepted and ignored. An
empty image gives no keypoints and a `(0, 32)` array; an image that is not
2-D 8-bit raises `ValueError`.

The extractor exposes its settings and the per-level values as properties:
`levels`, `scale_factor`, `scale_factors`, `inverse_scale_factors`,
`scale_sigma_squares`, `inverse_scale_sigma_squares`, `features_per_level`,
`descriptor_bytes`, `name`, and, once an image has been processed,
`image_pyramid`.

Keypoint detection can also be run step by step. `compute_pyramid(image)`
builds the pyramid; after it, `compute_keypoints_octtree()` returns the
keypoints of each level spread with the quadtree (the method a call uses),
and `compute_keypoints_grid()` returns them selected by score in a fixed grid
instead. Both return one list per level, with coordinates in that level's
frame, and raise `RuntimeError` if no pyramid has been built.

## Matching

```python
from orbfeatures.matching import ORBMatcher, descriptor_distance
from orbfeatures.initialization import search_for_initialization

distance = descriptor_distance(descriptors[0], descriptors[1])

matcher = ORBMatcher(nn_ratio=0.9, check_orientation=True)
count, matches12, positions = search_for_initialization(
    matcher, keypoints1, descriptors1, keypoints2, descriptors2,
    prev_matched=[kp.pt for kp in keypoints1], window_size=100,
)
```

- `orbfeatures.matching` holds `descriptor_distance` (Hamming distance
  normalised to 32 bytes), `rotation_bin`, `RotationHistogram` with its
  `add` and `inconsistent` methods, `compute_three_maxima`,
  `radius_by_viewing_cos`, `check_dist_epipolar_line`, the thresholds
  `TH_HIGH` and `TH_LOW`, and `ORBMatcher`, which carries the ratio and
  orientation-check settings.
- `orbfeatures.initialization` matches the finest-level keypoints of one frame
  to a second frame inside a square window around previously matched
  positions (`search_for_initialization`). It returns the number of matches,
  the index matched in the second frame for each keypoint of the first (or
  -1) and the updated search positions. `features_in_area` is the window
  query it uses.

## Lower-level pieces

- `orbfeatures.keypoint`: the `KeyPoint` record and `retain_best`.
- `orbfeatures.imaging`: FAST detection, Gaussian blur, bilinear resize and
  reflected borders on NumPy arrays.
- `orbfeatures.descriptor`: `fast_atan2`, intensity-centroid orientation and
  descriptor computation for individual keypoints or lists of them.
- `orbfeatures.pattern`: the 256-pair sampling pattern and the circular patch
  row extents.
- `orbfeatures.octree`: `ExtractorNode` and `distribute_oct_tree`, the
  quadtree that spreads keypoints evenly.

## What it does not do

The package works on keypoints and descriptors alone. It has no visual
vocabulary, so it offers no matching restricted to shared vocabulary nodes,
and it keeps no map, camera poses or 3-D points, so there is no matching by
projecting points into a frame, no point fusion and no pose optimisation. It
has no command-line tool.

## Running the tests

```
pip install ".[test]"
pytest
```