"""
Data layer for the matching engine: models, database access and stores.
"""

from placement_matching.data.database import DatabaseManager, get_database_manager

__all__ = ["DatabaseManager", "get_database_manager"]
