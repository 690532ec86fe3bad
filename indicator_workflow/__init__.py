"""
Indicator verification and submission workflow engine.
"""

__version__ = "1.0.0"
