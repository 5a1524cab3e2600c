# visualization.py
"""
Handles the visualization of the particle simulation using Pygame.
"""
import logging
import pygame
import numpy as np
from typing import Optional

from config import SimulationConfig
from constants import (
    BACKGROUND_COLOR, DEFAULT_PARTICLE_RADIUS, UI_PANEL_WIDTH,
    MOTION_BLUR_ALPHA, PARTICLE_HALO_RATIO, PARTICLE_HALO_ALPHA,
    UI_BACKGROUND_ALPHA, POSITIVE_CHARGE_COLOR, NEGATIVE_CHARGE_COLOR
)
from particle import ParticleSystem
from simulation import SimulationObserver


# --- Data Contracts ---
#
# class Visualizer(SimulationObserver):
#   - __init__(self, config: SimulationConfig):
#     - Side Effects: None. The window is only created by start().
#
#   - start(self, particles: ParticleSystem) -> None:
#     - Side Effects: Initializes Pygame, opens a window of the simulation
#       size plus the UI panel and draws the initial particle state.
#
#   - on_cycle_snapshot(self, positions, charges, cycles_per_second) -> None:
#     - Side Effects: Handles window events and renders the snapshot. After
#       the user closes the window, snapshots are ignored; the simulation
#       itself keeps running.
#
#   - stop(self) -> None:
#     - Side Effects: Shuts Pygame down. Safe to call more than once.

class Visualizer(SimulationObserver):
    """
    Renders periodic particle snapshots, coloured by charge sign.
    """
    def __init__(self, config: SimulationConfig):
        self.config = config
        self.sim_width = int(config.width)
        self.sim_height = int(config.height)
        self.running = False
        self.screen: Optional[pygame.Surface] = None
        self.cycles_per_second = 0.0

        self.text_color_key = (200, 200, 200)
        self.text_color_value = (255, 255, 255)

        # Parameters shown in the UI panel
        self.panel_rows = [
            ("Mode", config.mode.value),
            ("Particles", str(config.particle_count)),
            ("Cycles", str(config.cycles)),
            ("Seed", str(config.seed)),
            ("Boundary", f"{config.boundary_charge:.1f}"),
            ("Max Speed", f"{config.max_speed:.2f}"),
            ("Clumping", "on" if config.clumping else "off"),
        ]

    def start(self, particles: ParticleSystem) -> None:
        pygame.init()
        pygame.font.init()

        self.screen = pygame.display.set_mode((self.sim_width + UI_PANEL_WIDTH, self.sim_height))
        pygame.display.set_caption("Particles")

        self.sim_surface = pygame.Surface((self.sim_width, self.sim_height))
        self.sim_surface.fill(BACKGROUND_COLOR)
        # Drawn over the previous frame each snapshot to leave fading trails.
        self.blur_surface = pygame.Surface((self.sim_width, self.sim_height), pygame.SRCALPHA)
        self.blur_surface.fill((BACKGROUND_COLOR[0], BACKGROUND_COLOR[1], BACKGROUND_COLOR[2], MOTION_BLUR_ALPHA))
        self.ui_panel_surface = pygame.Surface((UI_PANEL_WIDTH, self.sim_height), pygame.SRCALPHA)
        self.ui_panel_surface.fill((40, 40, 40, UI_BACKGROUND_ALPHA))

        self.font_main = pygame.font.SysFont(None, 20)
        self.font_main_bold = pygame.font.SysFont(None, 20, bold=True)

        self.colors = {
            True: pygame.Color(POSITIVE_CHARGE_COLOR),
            False: pygame.Color(NEGATIVE_CHARGE_COLOR),
        }
        self.halo_surfaces = self._pre_render_halos()

        self.running = True
        logging.info(f"Visualizer initialized with Pygame display ({self.sim_width}x{self.sim_height}).")
        self._draw(particles.positions, particles.charges)

    def on_cycle_snapshot(self, positions: np.ndarray, charges: np.ndarray, cycles_per_second: float) -> None:
        if not self.running:
            return
        self.cycles_per_second = cycles_per_second
        if not self._handle_events():
            # The simulation continues without a display.
            self.stop()
            return
        self._draw(positions, charges)

    def stop(self) -> None:
        if self.screen is None:
            return
        self.running = False
        self.screen = None
        pygame.font.quit()
        pygame.display.quit()
        logging.info("Visualizer closed.")

    def _handle_events(self) -> bool:
        """Returns False once the user asked to close the window."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                logging.info("Quit event received. Shutting down visualizer.")
                return False
            if event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                logging.info("ESC key pressed. Shutting down visualizer.")
                return False
        return True

    def _pre_render_halos(self) -> dict:
        """
        Pre-renders one halo surface per charge sign.
        """
        halo_radius = int(DEFAULT_PARTICLE_RADIUS * PARTICLE_HALO_RATIO)
        diameter = halo_radius * 2
        surfaces = {}
        for positive, color in self.colors.items():
            halo_surf = pygame.Surface((diameter, diameter), pygame.SRCALPHA)
            halo_color = pygame.Color(color.r, color.g, color.b, PARTICLE_HALO_ALPHA)
            pygame.draw.circle(halo_surf, halo_color, (halo_radius, halo_radius), halo_radius)
            surfaces[positive] = halo_surf
        return surfaces

    def _draw(self, positions: np.ndarray, charges: np.ndarray) -> None:
        self.sim_surface.blit(self.blur_surface, (0, 0))

        halo_radius = int(DEFAULT_PARTICLE_RADIUS * PARTICLE_HALO_RATIO)
        for (x, y), charge in zip(positions, charges):
            positive = bool(charge >= 0)
            draw_pos = (int(x), int(y))
            self.sim_surface.blit(self.halo_surfaces[positive], (draw_pos[0] - halo_radius, draw_pos[1] - halo_radius))
            pygame.draw.circle(self.sim_surface, self.colors[positive], draw_pos, DEFAULT_PARTICLE_RADIUS)

        self.screen.blit(self.sim_surface, (0, 0))
        self.screen.blit(self.ui_panel_surface, (self.sim_width, 0))
        self._draw_panel()
        pygame.display.flip()

    def _draw_panel(self) -> None:
        """Renders throughput and run parameters as key/value rows."""
        rows = [("Cycles/s", f"{self.cycles_per_second:.0f}")] + self.panel_rows
        line_height = self.font_main.get_linesize() + 4
        x_key = self.sim_width + 12
        x_value = self.sim_width + UI_PANEL_WIDTH // 2
        y = 12
        for key, value in rows:
            self.screen.blit(self.font_main_bold.render(key, True, self.text_color_key), (x_key, y))
            self.screen.blit(self.font_main.render(value, True, self.text_color_value), (x_value, y))
            y += line_height
