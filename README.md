# sfmcore

Building blocks for global structure-from-motion: scene containers, rigid
transforms, two-view geometry, view-graph analysis, and the filtering and
clean-up steps that run between relative-pose estimation and global
positioning. Everything works on plain Python dictionaries keyed by id
(`{image_id: Image}`, `{camera_id: Camera}`, `{track_id: Track}`) and on
NumPy arrays.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `sfmcore.types` | `Rigid3d` (`inverse`, `compose`, `transform`), `TwoViewConfig`, `InlierThresholdOptions`, the constants `EPS` and `MAX_NUM_IMAGES` |
| `sfmcore.rigid3d` | `calc_angle`, `calc_rotation_angle`, `calc_trans`, `calc_trans_angle`, `deg_to_rad`, `rad_to_deg`, angle-axis conversions |
| `sfmcore.gravity` | `get_align_rot`, `rot_up_to_angle`, `angle_to_rot_up` |
| `sfmcore.union_find` | `UnionFind` (`find`, `union`, `clear`) with path compression |
| `sfmcore.scene` | `Camera`, `Image`, `GravityInfo`, `Track`, `ImagePair`, `image_pair_to_pair_id`, `pair_id_to_image_pair` |
| `sfmcore.two_view_geometry` | `essential_from_motion`, `fundamental_from_motion_and_cameras`, `sampson_error`, `sampson_error_rays`, `homography_error`, `check_cheirality`, `get_orientation_signum` |
| `sfmcore.view_graph` | `ViewGraph` with adjacency and connected-component handling |
| `sfmcore.tree` | `WeightType`, `bfs`, `maximum_spanning_tree` |
| `sfmcore.l1_solver` | `L1Solver`, `L1SolverOptions`, `L1SolverError`: ADMM for `min ‖Ax − b‖₁` |
| `sfmcore.gravity_io` | `read_gravity` |
| `sfmcore.image_pair_inliers` | `ImagePairInliers`, `image_pairs_inlier_count` |
| `sfmcore.image_undistorter` | `undistort_images` |
| `sfmcore.reconstruction_normalizer` | `Sim3d`, `transform_camera_world`, `normalize_reconstruction` |
| `sfmcore.relpose_filter` | `filter_rotations`, `filter_inlier_num`, `filter_inlier_ratio` |
| `sfmcore.track_filter` | `filter_tracks_by_reprojection`, `filter_tracks_by_angle`, `filter_track_triangulation_angle` |
| `sfmcore.view_graph_manipulation` | `StrongClusterCriteria`, `sparsify_graph`, `establish_strong_clusters`, `update_image_pairs_config` |
| `sfmcore.reconstruction_pruning` | `prune_weakly_connected_images` |

### Cameras

`Camera` supports the models `SIMPLE_PINHOLE`, `PINHOLE`, `SIMPLE_RADIAL`,
`RADIAL` and `OPENCV`; the length of `params` is checked against the model.
`cam_from_img` maps a pixel to undistorted normalised coordinates (the
distortion is inverted iteratively), and `img_from_cam` projects a 3D point
in the camera frame to pixels, raising `ValueError` for points not in front
of the camera.

### Image pairs

`ImagePair(image_id1, image_id2)` computes its `pair_id` with
`image_pair_to_pair_id`, which does not depend on the order of the two ids.
`pair_id_to_image_pair` returns the two ids, smaller first. `matches` is an
`(N, 2)` integer array of feature indices, and `inliers` lists the rows of
`matches` that `ImagePairInliers.score_error` accepted, scored against the
pair's essential, fundamental or homography geometry depending on `config`.

### Return values

The filters in `relpose_filter` and `track_filter` change the view graph or
tracks in place and return how many pairs or tracks they changed.
`maximum_spanning_tree` returns the root image id and a map from each image
id to its parent. `normalize_reconstruction` returns the `Sim3d` it applied.
`establish_strong_clusters` and `prune_weakly_connected_images` set each
image's `cluster_id` and return the number of clusters;
`prune_weakly_connected_images` raises `ValueError` when no pair shares
enough tracks. `sparsify_graph` takes an optional `random.Random` for
reproducible results.

## Example

```python
from sfmcore.relpose_filter import filter_inlier_num
from sfmcore.scene import Image, ImagePair
from sfmcore.view_graph import ViewGraph

images = {i: Image(i, camera_id=1, file_name=f"{i:04d}.jpg") for i in range(1, 4)}

graph = ViewGraph()
for a, b in [(1, 2), (2, 3)]:
    pair = ImagePair(a, b)
    pair.inliers = list(range(40))
    graph.image_pairs[pair.pair_id] = pair

filter_inlier_num(graph, 30)                      # 0 pairs invalidated
largest = graph.keep_largest_connected_components(images)
print(largest)                                    # 3
print([img.is_registered for img in images.values()])  # [True, True, True]
```

## Gravity files

`read_gravity(path, images)` reads lines of the form

```
image_name gx gy gz
```

separated by single spaces, where the vector is the direction of `[0, 1, 0]`
in the image frame. Blank lines are skipped and a line with fewer than three
values raises `ValueError`. Images whose name appears get their gravity set,
and their rotation is replaced by one aligned with it. The function returns
the number of lines that matched an image.

## What the package does not do

- It has no command-line program; it is used as a library.
- It does not read feature databases or write reconstructions to disk; the
  only file it reads is the gravity file above. Scenes are built by filling
  the dictionaries and objects yourself.
- It does not estimate two-view geometry or decompose it into relative
  poses; `ImagePair` geometry (`E`, `F`, `H`, `cam2_from_cam1`, `config`) is
  expected to be supplied.
- It has no rotation averaging, global positioning, triangulation or bundle
  adjustment; it provides the steps around them.