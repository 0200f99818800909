"""
aac — Symbol vocabulary, sequence composition and sentence construction.

Turns an ordered run of tapped AAC symbols (plus free-text phrases) into
terse, standard and expanded sentence renderings with a confidence score.
"""
