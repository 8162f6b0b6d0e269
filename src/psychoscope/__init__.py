"""
Psychoscope: generative 3D trajectories and five-voice music from condition
profiles.
"""

__version__ = "0.1.0"

from psychoscope.profiles import CONDITIONS, PROFILES, Condition, ConditionProfile, get_profile
from psychoscope.audio.engine import AudioEngine, EngineConfig, EngineState
from psychoscope.visual import SceneConfig, SceneRenderer, VizVariant, generate_trajectory
