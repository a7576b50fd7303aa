# tiny_theta/core/constants.py
"""
Library-wide constants for tiny-theta.

Sampling keys and theta values are stored in signed 64-bit slots
(``array.array("q")``), so the largest representable theta is 2^63 - 1.
A theta equal to MAX_THETA means "sampling probability 1.0", i.e. every
key is retained.

Hash table sizing:
- MIN_LG_NOM_LONGS: floor on log2 of any table this library allocates
- MAX_LOAD_FACTOR: a table built for n entries has at least n / 0.75 slots

Updatable sketch tuning:
- RESIZE_THRESHOLD: load at which a growing table is resized
- REBUILD_THRESHOLD: load at which a full-size table lowers theta
"""

# =============================================================================
# Sampling
# =============================================================================

MAX_THETA = (1 << 63) - 1

# Seed used when hashing items into sampling keys. Sketches built with
# different seeds cannot be intersected meaningfully.
DEFAULT_UPDATE_SEED = 9001


# =============================================================================
# Hash tables
# =============================================================================

MIN_LG_NOM_LONGS = 4  # 16 slots
MIN_LG_ARR_LONGS = 5  # 32 slots, starting size of an updatable sketch

MAX_LOAD_FACTOR = 0.75

# Probe stride is derived from the key bits just above the index bits.
STRIDE_HASH_BITS = 7
STRIDE_MASK = (1 << STRIDE_HASH_BITS) - 1


# =============================================================================
# Updatable sketches
# =============================================================================

DEFAULT_LG_NOM_ENTRIES = 12
DEFAULT_NOMINAL_ENTRIES = 1 << DEFAULT_LG_NOM_ENTRIES

RESIZE_THRESHOLD = 0.5
REBUILD_THRESHOLD = 15.0 / 16.0
RESIZE_FACTOR_LG = 3  # grow by 8x

assert 0 < RESIZE_THRESHOLD < REBUILD_THRESHOLD < 1, "Load thresholds out of order"
