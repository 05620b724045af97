"""Stream decoders, one per backend wire dialect."""

from codeh.llm.decoders.base import StreamDecoder
from codeh.llm.decoders.block import BlockStreamDecoder
from codeh.llm.decoders.delta import DONE_SENTINEL, DeltaStreamDecoder
from codeh.llm.decoders.generic import GenericStreamDecoder
from codeh.llm.decoders.ndjson import CumulativeLineDecoder

__all__ = [
    "BlockStreamDecoder",
    "CumulativeLineDecoder",
    "DONE_SENTINEL",
    "DeltaStreamDecoder",
    "GenericStreamDecoder",
    "StreamDecoder",
]
