"""
Exception types raised by codeindex components
"""


class CodeIndexError(Exception):
    """Base class for all codeindex errors"""


class ConfigurationError(CodeIndexError):
    """Invalid or inconsistent settings"""


class DirectoryNotFoundError(CodeIndexError):
    """The directory to index does not exist"""


class EmbeddingError(CodeIndexError):
    """The embedding backend failed or returned an unusable response"""


class DimensionMismatchError(EmbeddingError):
    """An embedding does not have the dimension of the vector column"""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}"
        )


class ClockSkewError(CodeIndexError):
    """The database clock went backwards relative to the indexing run"""
