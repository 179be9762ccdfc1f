"""Shared Firestore query helpers.

Filters are passed as ``FieldFilter`` keywords, which newer Firestore SDKs
require; plain test doubles without keyword support get positional filters.
"""

from google.cloud.firestore_v1.base_query import FieldFilter


def apply_where(query, field_path, op_string, value):
    try:
        return query.where(filter=FieldFilter(field_path, op_string, value))
    except TypeError:
        return query.where(field_path, op_string, value)


def chunked(items, size):
    items = list(items)
    for start in range(0, len(items), size):
        yield items[start:start + size]
