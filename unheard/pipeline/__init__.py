"""
pipeline — Input envelope, envelope validation and the dispatcher.

The dispatcher validates each envelope, runs the matching processor under a
deadline and always hands back exactly one ProcessingResult.
"""
