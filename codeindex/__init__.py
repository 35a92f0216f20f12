"""
codeindex - incremental directory indexing into a pgvector store
"""

__version__ = "1.0.0"
