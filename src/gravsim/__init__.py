"""
gravsim: 2D point-mass gravity with elastic collisions in a bounded square domain.
"""

__version__ = "0.1.0"
