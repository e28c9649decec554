"""
Frame classifier: per-frame inference and decision pipeline for an
embedded camera module.
"""

__version__ = "1.0.0"
