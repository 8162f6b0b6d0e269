"""Visualization engine: trajectory generators, projection and scene drawing."""

from psychoscope.visual.projector import FOCAL_LENGTH, ProjectedPoint, project, project_array
from psychoscope.visual.scene import SceneConfig, SceneRenderer
from psychoscope.visual.trajectory import (
    TrajectoryPoint,
    VizVariant,
    attractor,
    generate_trajectory,
    lissajous,
    resolve_variant,
    torus_knot,
)
