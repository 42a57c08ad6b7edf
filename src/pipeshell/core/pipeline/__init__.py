"""
Pipeline & Filter Architecture

Filters, connectors and the pipeline composer.
"""

from .interfaces import (
    Filter, ByteFilter, CharFilter, CharToByteAdapter,
    FunctionByteFilter, FunctionCharFilter, byte_filter, char_filter
)
from .connector import Connector
from .executor import Pipeline, BytePipeline, CharPipeline, byte_pipeline, char_pipeline

__all__ = [
    'Filter',
    'ByteFilter',
    'CharFilter',
    'CharToByteAdapter',
    'FunctionByteFilter',
    'FunctionCharFilter',
    'byte_filter',
    'char_filter',
    'Connector',
    'Pipeline',
    'BytePipeline',
    'CharPipeline',
    'byte_pipeline',
    'char_pipeline',
]
