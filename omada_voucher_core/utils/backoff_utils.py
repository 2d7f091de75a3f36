"""
Retry delay calculation shared by the sync scheduler.
"""

import random


def calculate_exponential_backoff(
    retry_count: int,
    base_delay: float = 1,
    max_delay: float = 300,
    multiplier: float = 2.0,
    jitter: bool = True,
) -> float:
    """
    Calculate exponential backoff delay with optional jitter.

    Args:
        retry_count: Current retry attempt (0-based)
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds
        multiplier: Exponential multiplier
        jitter: Whether to add +/-25% randomization

    Returns:
        Delay in seconds before next retry

    Example (base_delay=2, no jitter):
        retry_count=0: 2s
        retry_count=1: 4s
        retry_count=2: 8s
    """
    if retry_count < 0:
        return base_delay

    delay = min(base_delay * (multiplier**retry_count), max_delay)

    if jitter:
        jitter_range = delay * 0.25
        delay = delay + random.uniform(-jitter_range, jitter_range)

    # Never below base_delay, never above max_delay
    return min(max(delay, base_delay), max_delay)
