"""Input record loading."""

from .records import (
    InputRecord,
    RecordError,
    load_records,
    parse_delete_flag,
    parse_replacements,
)

__all__ = [
    'InputRecord',
    'RecordError',
    'load_records',
    'parse_delete_flag',
    'parse_replacements',
]
