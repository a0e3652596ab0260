"""Numerical and biological constants for size-spectrum modelling.

This module centralizes magic numbers used throughout PySizeSpec so that
tolerances and fixed biological ratios are defined in one place.
"""

# ============================================================================
# BIOLOGICAL CONSTANTS
# ============================================================================

# Fraction of spawners that are female; eggs come from females only
SEX_RATIO = 0.5

# Stages of the rate pipeline, in evaluation order
RATE_STAGES = (
    "Rates",
    "Encounter",
    "FeedingLevel",
    "EReproAndGrowth",
    "ERepro",
    "EGrowth",
    "PredRate",
    "PredMort",
    "FMort",
    "Mort",
    "RDI",
    "RDD",
    "ResourceMort",
)

# Names of the entries of a rate bundle, in the order they are returned
RATE_NAMES = (
    "encounter",
    "feeding_level",
    "e",
    "e_repro",
    "e_growth",
    "pred_rate",
    "pred_mort",
    "f_mort",
    "mort",
    "rdi",
    "rdd",
    "resource_mort",
)

# Stage computing each rate
STAGE_OF = {
    "encounter": "Encounter",
    "feeding_level": "FeedingLevel",
    "e": "EReproAndGrowth",
    "e_repro": "ERepro",
    "e_growth": "EGrowth",
    "pred_rate": "PredRate",
    "pred_mort": "PredMort",
    "f_mort": "FMort",
    "mort": "Mort",
    "rdi": "RDI",
    "rdd": "RDD",
    "resource_mort": "ResourceMort",
}

# Rates each stage is given as input
NEEDS = {
    "encounter": (),
    "feeding_level": ("encounter",),
    "e": ("encounter", "feeding_level"),
    "e_repro": ("encounter", "feeding_level", "e"),
    "e_growth": ("encounter", "feeding_level", "e_repro", "e"),
    "pred_rate": ("feeding_level",),
    "pred_mort": ("pred_rate",),
    "f_mort": ("e_growth", "pred_mort"),
    "mort": ("f_mort", "pred_mort"),
    "rdi": ("e_growth", "mort", "e_repro"),
    "rdd": ("rdi",),
    "resource_mort": ("pred_rate",),
}

# ============================================================================
# SIZE GRID
# ============================================================================

MIN_NO_W = 10  # Grids need strictly more bins than this
MAX_W_REL_TOLERANCE = 1e-6  # Allowed excess of a species' w_max over max_w

# ============================================================================
# NUMERICAL THRESHOLDS
# ============================================================================

# Machine epsilon used when locating egg sizes on the grid
DOUBLE_EPS = 2.220446049250313e-16

# Convolution results below this are treated as zero (FFT round-off)
FFT_ZERO_CUTOFF = 1e-18

# Relative tolerance when checking that t_save is a multiple of dt
SAVE_CADENCE_TOLERANCE = 1e-8

# Relative tolerance when comparing w labels of user-supplied frames
W_LABEL_TOLERANCE = 1e-10

# Tolerance when matching effort times to projection times
TIME_TOLERANCE = 1e-10
