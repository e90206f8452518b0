"""Response parsing: annotation extraction, chunk decoding, accumulation."""

from streamchat.parser.accumulator import ProgressCallback, StreamAccumulator
from streamchat.parser.annotations import ExtractionResult, extract

__all__ = ["ExtractionResult", "ProgressCallback", "StreamAccumulator", "extract"]
