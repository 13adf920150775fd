"""
Multi-branch restaurant ordering core.

Order lifecycle, ingredient/dish availability, branch-scoped access
control and realtime propagation of order and stock changes.
"""

__version__ = "1.0.0"
