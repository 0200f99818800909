"""
quality — Pure numeric quality analyzers for decoded audio and images.

No I/O and no side effects: each analyzer maps a sample buffer to a frozen
metrics record with a single [0, 1] quality score.
"""
