# constants.py
"""
Application-level constants.

These values are static and do not change between simulation runs.
They cover the fixed physics settings that are not part of the
experimental configuration and the rendering properties of the
optional visualizer.
"""

# --- Physics ---
# Scales both the force-to-velocity and velocity-to-position steps.
SLOW_DOWN = 0.1
# Distance from a wall at which the boundary charge starts pushing back.
WALL_MARGIN = 15.0
# Wall distances are clamped to this value before the inverse-square falloff.
MIN_WALL_DISTANCE = 1.0
# Fraction of the velocity component kept after hitting a wall.
BOUNCE_FACTOR = 0.2

# --- Run control ---
# Seconds between progress reports of the cycle driver.
REPORT_INTERVAL = 1.0

# --- Visualization settings ---
FPS = 60
UI_PANEL_WIDTH = 220
BACKGROUND_COLOR = (24, 24, 24) # Dark Gray
DEFAULT_PARTICLE_RADIUS = 3

# Alpha value for the motion blur effect (0-255). Lower is a longer trail.
MOTION_BLUR_ALPHA = 90
# Ratio of the halo size to the particle radius.
PARTICLE_HALO_RATIO = 2
# Alpha value for the particle halo (0-255).
PARTICLE_HALO_ALPHA = 40
# Alpha for the UI panel background
UI_BACKGROUND_ALPHA = 100

POSITIVE_CHARGE_COLOR = (255, 0, 102)   # Hot Pink
NEGATIVE_CHARGE_COLOR = (0, 255, 255)   # Cyan
