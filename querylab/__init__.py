"""
querylab
========

Query composition and transactional mutation layer over SQLAlchemy.
"""

__version__ = "0.1.0"
