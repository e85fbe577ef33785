"""
Shared constants for mean/variance analysis and error-model fitting.
"""

# Quantile thresholds used for the initial low/high-signal split
DEFAULT_LOW_QUANTILE = 0.05
DEFAULT_HIGH_QUANTILE = 0.95

MAX_ITERATIONS = 25
MIN_REPLICATES = 2
MIN_POINTS_FOR_FIT = 3

FIT_CURVE_SAMPLES = 200
FIT_CURVE_EPSILON = 1e-9

# Condition that always leads the grid columns
CONTROL_CONDITION = "Control"

DEFAULT_SUPERGROUP = "Default"
DEFAULT_CONDITION = "Group1"

COMBINED_SUPERGROUP = "Combined"
COMBINED_CONDITION = "All panes combined"

PLOT_TYPES = ("SD", "CV", "SNR")
