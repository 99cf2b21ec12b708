"""
shopdb - transactional persistence layer for an e-commerce schema
"""

__version__ = "1.0.0"
