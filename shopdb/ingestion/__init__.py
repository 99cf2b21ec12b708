"""
Data Ingestion Module
"""
from .seeder import DataSeeder, EntityDataSource, SampleRecords, SeedResult

__all__ = [
    "DataSeeder",
    "EntityDataSource",
    "SampleRecords",
    "SeedResult",
]
