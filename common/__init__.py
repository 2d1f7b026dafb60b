from .errors import AlignmentError, DegenerateCorrespondences, InsufficientMatches, InvalidImage

__all__ = ["AlignmentError", "DegenerateCorrespondences", "InsufficientMatches", "InvalidImage"]
