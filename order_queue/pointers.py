"""
Production Cycle Client - Order Queue Pointer Arithmetic

Queue pointers are 1-based: a queue of length L addresses slots 1..L and the
pointer after L is 1. The zero-based array slot for a pointer is ``pointer - 1``.
"""

from typing import Any


def next_pointer(pointer: int, queue_length: int) -> int:
    """
    Increment an order queue pointer, wrapping around the queue length.

    Parameters
    ----------
    pointer : int
        Current 1-based pointer value.
    queue_length : int
        Number of slots in the queue.

    Returns
    -------
    int
        ``pointer + 1``, or ``1`` when that would pass ``queue_length``.
    """
    pointer += 1
    if pointer > queue_length:
        pointer = 1
    return pointer


def is_valid_pointer(pointer: Any, queue_length: int) -> bool:
    """Return True if ``pointer`` is an integer in ``[1, queue_length]``."""
    if isinstance(pointer, bool) or not isinstance(pointer, int):
        return False
    return 1 <= pointer <= queue_length


def slot_index(pointer: int) -> int:
    """Zero-based array index addressed by a 1-based pointer."""
    return pointer - 1


def pending_count(read_pointer: int, write_pointer: int, queue_length: int) -> int:
    """Number of occupied slots between a read and a write pointer."""
    return (write_pointer - read_pointer) % queue_length
