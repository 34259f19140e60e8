"""
Price Matrix Optimizer Package

Tiered markup optimization for parts-based businesses.
Reads itemized sales exports, buckets them into cost-range pricing tiers,
and recommends a revised set of tier multipliers that reach a profit target.
"""

__version__ = "1.0.0"
