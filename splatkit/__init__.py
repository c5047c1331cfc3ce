"""Gaussian splat PLY import and export, scene datasets and numeric helpers."""

__version__ = "0.2.0"