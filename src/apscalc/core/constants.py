"""Core constants and configuration for apscalc.

This module defines system-wide invariants such as:
- The module slot budget and enumeration steps
- Loader length brackets used by the leaderboard
- Ballistic model coefficients
"""

from __future__ import annotations

# Slot budget
# Every shell holds at most 20 modules, casings included
MAX_MODULE_SLOTS = 20

# GP casings may be fractional (scaled down by the loader), in hundredths
GP_STEPS_PER_CASING = 100

# Tolerance when converting float budgets to integer iteration bounds
SLOT_EPS = 1e-6

# Leaderboard brackets: (label, max total length in mm)
BELT_LABEL = "1 m (belt)"
LENGTH_BRACKETS: tuple[tuple[str, float], ...] = (
    ("1 m", 1000.0),
    ("2 m", 2000.0),
    ("4 m", 4000.0),
    ("6 m", 6000.0),
    ("8 m", 8000.0),
)
BELT_MAX_LENGTH_MM = 1000.0

# Ballistic model
# Reference gauge for gauge scaling (mm) and its exponent
GAUGE_REFERENCE_MM = 500.0
GAUGE_EXPONENT = 1.8

# Recoil produced per GP casing at reference gauge
GP_RECOIL_PER_CASING = 2500.0

# Rail draw accepted per projectile module and per RG casing at reference gauge
DRAW_PER_MODULE = 12500.0
DRAW_PER_RG_CASING = 0.5 * DRAW_PER_MODULE

# Velocity: v = sqrt((draw + recoil) * K * gauge / (gauge_coef * length)) * mod
VELOCITY_CONSTANT = 85.0

# Flight time (s) used for effective range at accuracy modifier 1.0
EFFECTIVE_FLIGHT_TIME_S = 10.0

# Damage
KINETIC_DAMAGE_CONSTANT = 3.5
ARMOR_PIERCE_CONSTANT = 0.0175
CHEM_PAYLOAD_CONSTANT = 1.0

# Reload: 17.5 s per module-equivalent at reference gauge
RELOAD_CONSTANT = 17.5
RELOAD_GAUGE_EXPONENT = 1.35
RELOAD_CASING_WEIGHT = 0.25

# Support volume (blocks)
LOADER_INTAKE_VOLUME = 1.0  # ammo intake attached to every loader
RECOIL_PER_ABSORBER = 120.0  # recoil per second absorbed by one block
DRAW_PER_CHARGER = 200.0  # draw per second supplied by one block
COOLING_PER_BLOCK = 0.5  # GP casings per second cooled by one block at reference gauge

# Belt-fed loaders: 1 m shells only, faster cycle, partial uptime, single block
BELT_RELOAD_MULTIPLIER = 0.75
BELT_UPTIME = 0.4
BELT_LOADER_VOLUME = 1.0
