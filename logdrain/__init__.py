"""
Online Log Template Mining

A Python library that clusters a stream of free-text log lines into
templates such as ``Failed password for <*> from <*> port <*> ssh2``
in a single pass, using the Drain fixed-depth prefix tree algorithm.
"""

__version__ = "1.0.0"
__author__ = "Log Template Mining System"

from .models import ConfigurationError, DrainConfig, LogCluster, PARAM_MARKER
from .tokenizer import tokenize
from .drain import DrainEngine
from .io_utils import StateCodec, StateFormatError, JSONLWriter, JSONLReader

__all__ = [
    "ConfigurationError",
    "DrainConfig",
    "DrainEngine",
    "LogCluster",
    "PARAM_MARKER",
    "tokenize",
    "StateCodec",
    "StateFormatError",
    "JSONLWriter",
    "JSONLReader"
]
