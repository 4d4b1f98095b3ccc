from .text_extractors import TextExtractor

__all__ = ["TextExtractor"]
