"""
preprocess — Media decoding plus analysis-ready normalisation of audio and
images, reporting before/after quality metrics.
"""
