"""
Storage Module - device-local key/value persistence for community state
"""

from .interface import KeyValueStore
from .memory import MemoryKeyValueStore
from .json_file import JsonFileKeyValueStore

__all__ = [
    'KeyValueStore',
    'MemoryKeyValueStore',
    'JsonFileKeyValueStore',
]
