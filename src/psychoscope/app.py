"""
Interactive pygame driver.

Owns the render clock, mouse-drag rotation and the window loop, and forwards
key presses to the audio engine:

- 1-5    select a condition
- V      cycle the trajectory variant
- L      switch between the five-up grid and the single view
- Space  toggle audio for the selected condition (initialises on first use)
- Esc    quit
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

import pygame

from psychoscope.audio.engine import AudioEngine, EngineConfig
from psychoscope.errors import AudioInitError
from psychoscope.profiles import CONDITIONS, Condition, condition_rgb, resolve_condition
from psychoscope.visual.scene import SceneConfig, SceneRenderer
from psychoscope.visual.trajectory import VizVariant, resolve_variant

logger = logging.getLogger(__name__)

GRID_COLUMNS = 3
GRID_ROWS = 2
GRID_GAP = 4
BORDER_WIDTH = 2


@dataclass
class FrameClock:
    """Visual clock and camera rotation, advanced once per rendered frame."""

    time: float = 0.0
    rotation_x: float = 0.3
    rotation_y: float = 0.0
    time_step: float = 0.008
    spin_step: float = 0.002
    drag_sensitivity: float = 0.005

    def tick(self):
        self.time += self.time_step
        self.rotation_y += self.spin_step

    def drag(self, dx: float, dy: float):
        self.rotation_y += dx * self.drag_sensitivity
        self.rotation_x += dy * self.drag_sensitivity


class Layout(str, Enum):
    GRID = "grid"
    SINGLE = "single"


@dataclass
class AppConfig:
    """Configuration for the interactive window."""

    width: int = 1000
    height: int = 520
    fps: int = 60
    condition: str = "healthy"
    variant: str = "lissajous"
    layout: str = "grid"
    audio: bool = True
    seed: Optional[int] = None


def grid_cells(width: int, height: int) -> List[pygame.Rect]:
    """
    Cell rectangles for the five conditions: three on top, two below.

    The last condition sits in the middle column of the bottom row.
    """
    cell_w = (width - GRID_GAP * (GRID_COLUMNS + 1)) // GRID_COLUMNS
    cell_h = (height - GRID_GAP * (GRID_ROWS + 1)) // GRID_ROWS
    slots = [(0, 0), (1, 0), (2, 0), (0, 1), (1, 1)]
    return [
        pygame.Rect(
            GRID_GAP + col * (cell_w + GRID_GAP),
            GRID_GAP + row * (cell_h + GRID_GAP),
            cell_w,
            cell_h,
        )
        for col, row in slots[: len(CONDITIONS)]
    ]


class SonificationApp:
    """Window, input handling and per-frame drawing."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        engine: Optional[AudioEngine] = None,
        renderer: Optional[SceneRenderer] = None,
    ):
        self.config = config or AppConfig()
        self.condition: Condition = resolve_condition(self.config.condition)
        self.variant: VizVariant = resolve_variant(self.config.variant)
        self.layout = Layout(self.config.layout)
        self.clock = FrameClock()
        self.renderer = renderer or SceneRenderer(SceneConfig(width=self.config.width, height=self.config.height))
        if engine is None and self.config.audio:
            engine = AudioEngine(config=EngineConfig(seed=self.config.seed))
        self.engine = engine
        self.running = False
        self._dragging = False

    # -- state changes ------------------------------------------------------

    @property
    def playing(self) -> bool:
        return self.engine is not None and self.engine.playing

    def select(self, condition):
        """Select a condition; switch the music if it is playing."""
        condition = resolve_condition(condition)
        if condition == self.condition:
            return
        self.condition = condition
        if self.playing:
            self.engine.play_condition(condition)

    def cycle_variant(self):
        variants = list(VizVariant)
        self.variant = variants[(variants.index(self.variant) + 1) % len(variants)]

    def toggle_layout(self):
        self.layout = Layout.SINGLE if self.layout == Layout.GRID else Layout.GRID

    def toggle_audio(self) -> bool:
        """Toggle playback of the selected condition. Returns playing state."""
        if self.engine is None:
            return False
        if not self.engine.initialized:
            try:
                self.engine.init()
            except AudioInitError as e:
                logger.warning("Audio unavailable, continuing without sound: %s", e)
                return False
        return self.engine.toggle(self.condition)

    # -- input --------------------------------------------------------------

    def cell_at(self, pos: Tuple[int, int], size: Tuple[int, int]) -> Optional[Condition]:
        if self.layout != Layout.GRID:
            return None
        for condition, rect in zip(CONDITIONS, grid_cells(*size)):
            if rect.collidepoint(pos):
                return condition
        return None

    def handle_event(self, event, size: Tuple[int, int]):
        if event.type == pygame.QUIT:
            self.running = False
        elif event.type == pygame.KEYDOWN:
            if event.key == pygame.K_ESCAPE:
                self.running = False
            elif pygame.K_1 <= event.key <= pygame.K_5:
                self.select(CONDITIONS[event.key - pygame.K_1])
            elif event.key == pygame.K_v:
                self.cycle_variant()
            elif event.key == pygame.K_l:
                self.toggle_layout()
            elif event.key == pygame.K_SPACE:
                self.toggle_audio()
        elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            self._dragging = True
            clicked = self.cell_at(event.pos, size)
            if clicked is not None:
                self.select(clicked)
        elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
            self._dragging = False
        elif event.type == pygame.MOUSEMOTION and self._dragging:
            dx, dy = event.rel
            self.clock.drag(dx, dy)
        elif event.type == pygame.WINDOWLEAVE:
            self._dragging = False

    # -- drawing ------------------------------------------------------------

    def draw(self, surface: pygame.Surface):
        """Draw the current layout into ``surface``."""
        c = self.clock
        if self.layout == Layout.SINGLE:
            self.renderer.draw(
                surface, c.time, self.condition, self.variant, c.rotation_x, c.rotation_y, pulse=self.playing
            )
            return

        surface.fill((0, 0, 0))
        for condition, rect in zip(CONDITIONS, grid_cells(*surface.get_size())):
            active = condition == self.condition
            cell = surface.subsurface(rect)
            self.renderer.draw(
                cell, c.time, condition, self.variant, c.rotation_x, c.rotation_y,
                pulse=self.playing and active,
            )
            if active:
                pygame.draw.rect(surface, condition_rgb(condition), rect, BORDER_WIDTH)

    def _caption(self) -> str:
        state = "playing" if self.playing else "stopped"
        return f"psychoscope | {self.condition} | {self.variant.value} | {state}"

    def run(self):
        """Open the window and loop until quit. Disposes the engine on exit."""
        pygame.init()
        screen = pygame.display.set_mode((self.config.width, self.config.height), pygame.RESIZABLE)
        frame_timer = pygame.time.Clock()
        self.running = True
        logger.info("Window opened at %dx%d", self.config.width, self.config.height)

        try:
            while self.running:
                for event in pygame.event.get():
                    self.handle_event(event, screen.get_size())

                self.clock.tick()
                self.draw(screen)
                pygame.display.set_caption(self._caption())
                pygame.display.flip()
                frame_timer.tick(self.config.fps)
        finally:
            if self.engine is not None:
                self.engine.dispose()
            pygame.quit()
            logger.info("Window closed")
