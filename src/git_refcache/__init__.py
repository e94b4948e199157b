"""git reference repository cache manager"""

__version__ = "0.1.0"
