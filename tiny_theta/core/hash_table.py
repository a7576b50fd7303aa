"""
Open-addressing hash table primitives for sampling keys.

Tables are plain ``array.array("q")`` instances whose length is a power of
two. A slot holding 0 is empty, so callers must never store the key 0;
sampling keys equal to 0 are rejected before they reach a table.

Probing is deterministic and driven by the key's own bits: the start slot
is ``key & mask`` and the stride is an odd number taken from the bits just
above the index bits. An odd stride visits every slot of a power-of-two
table before returning to the start.
"""

import array
import math

from tiny_theta.core.constants import MAX_LOAD_FACTOR, MIN_LG_NOM_LONGS, STRIDE_MASK


def ceiling_power_of_2(n: int) -> int:
    """
    Smallest power of two that is greater than or equal to n.

    Args:
        n: Any integer; values below 1 map to 1.

    Returns:
        A power of two.
    """
    if n <= 1:
        return 1
    return 1 << (n - 1).bit_length()


def lg_table_size_for(count: int, min_lg: int = MIN_LG_NOM_LONGS) -> int:
    """
    Log2 of the table size needed to hold count keys.

    The table keeps at most 75% of its slots occupied and is never smaller
    than 2^min_lg slots.

    Args:
        count: Number of keys the table must hold.
        min_lg: Floor on the returned value.

    Returns:
        log2 of the table length.
    """
    table_size = max(
        ceiling_power_of_2(math.ceil(count / MAX_LOAD_FACTOR)), 1 << min_lg
    )
    return table_size.bit_length() - 1


def new_key_array(lg_table_size: int) -> array.array:
    """Allocate a table of 2^lg_table_size empty slots."""
    return array.array("q", bytes(8 << lg_table_size))


def _stride(key: int, lg_table_size: int) -> int:
    return 2 * ((key >> lg_table_size) & STRIDE_MASK) + 1


def search(keys: array.array, lg_table_size: int, key: int) -> int:
    """
    Find the slot holding key.

    Args:
        keys: The table.
        lg_table_size: log2 of len(keys).
        key: Non-zero key to look for.

    Returns:
        The slot index, or -1 if the probe reaches an empty slot first.
    """
    mask = (1 << lg_table_size) - 1
    stride = _stride(key, lg_table_size)
    index = key & mask
    start = index
    while True:
        current = keys[index]
        if current == 0:
            return -1
        if current == key:
            return index
        index = (index + stride) & mask
        if index == start:
            return -1


def insert_only(keys: array.array, lg_table_size: int, key: int) -> int:
    """
    Store a key known not to be present yet.

    The table is never resized here; it must have been sized (see
    lg_table_size_for) so that an empty slot exists.

    Args:
        keys: The table.
        lg_table_size: log2 of len(keys).
        key: Non-zero key to store.

    Returns:
        The slot index the key was stored in.

    Raises:
        RuntimeError: If the probe wraps without finding an empty slot.
    """
    mask = (1 << lg_table_size) - 1
    stride = _stride(key, lg_table_size)
    index = key & mask
    start = index
    while keys[index] != 0:
        index = (index + stride) & mask
        if index == start:
            raise RuntimeError("No empty slot in table")
    keys[index] = key
    return index


def find_or_insert(keys: array.array, lg_table_size: int, key: int) -> int:
    """
    Find a key, storing it in the first empty slot if it is absent.

    Args:
        keys: The table.
        lg_table_size: log2 of len(keys).
        key: Non-zero key.

    Returns:
        The slot index if the key was already present, otherwise ``~index``
        (a negative number) of the slot it was just stored in.

    Raises:
        RuntimeError: If the table has neither the key nor an empty slot.
    """
    mask = (1 << lg_table_size) - 1
    stride = _stride(key, lg_table_size)
    index = key & mask
    start = index
    while True:
        current = keys[index]
        if current == 0:
            keys[index] = key
            return ~index
        if current == key:
            return index
        index = (index + stride) & mask
        if index == start:
            raise RuntimeError("Key not found and no empty slot in table")
