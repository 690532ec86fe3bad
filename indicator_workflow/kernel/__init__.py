"""
Kernel layer: persistence models and the event infrastructure the
workflow engines build on.
"""
