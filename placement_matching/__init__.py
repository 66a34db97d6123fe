"""
Placement matching engine.

Scores candidate profiles against job opportunities and keeps the
persisted scores fresh through a prioritized recomputation queue.
"""

from placement_matching.utils.constants import APP_NAME, VERSION

__app_name__ = APP_NAME
__version__ = VERSION
