"""
A pretty-printer for jpscript values.
"""
import json
import math

from jpscript.jpscript_datatypes import Value, NodeType


class Printer:
    """Formats Values as JSON text. Non-finite numbers print as NaN/Infinity."""

    def __init__(self, indent_width=2, compact=True):
        self._indent_char = " " * indent_width
        self.compact = compact
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format a Value. Anything else falls back to repr."""
        if not isinstance(obj, Value):
            return repr(obj)
        handler = self._handlers[obj.tag]
        return handler(obj, level)

    def _create_handlers(self):
        return {
            NodeType.NULL: self._pformat_null,
            NodeType.BOOL: self._pformat_bool,
            NodeType.NUMERIC: self._pformat_numeric,
            NodeType.STRING: self._pformat_str,
            NodeType.ARRAY: self._pformat_array,
            NodeType.OBJECT: self._pformat_object,
        }

    def _pformat_null(self, obj, level):
        return 'null'

    def _pformat_bool(self, obj, level):
        return 'true' if obj.payload else 'false'

    def _pformat_numeric(self, obj, level):
        num = obj.payload
        if math.isnan(num):
            return 'NaN'
        if math.isinf(num):
            return 'Infinity' if num > 0 else '-Infinity'
        # Integral values print without a trailing '.0'
        if num == math.floor(num) and abs(num) < 1e16:
            return str(int(num))
        return repr(num)

    def _pformat_str(self, obj, level):
        return json.dumps(obj.payload, ensure_ascii=False)

    def _pformat_array(self, obj, level):
        if not obj.payload:
            return '[]'
        items = [self.pformat(c, level + 1) for c in obj.payload]
        return self._wrap('[', ']', items, level)

    def _pformat_object(self, obj, level):
        if not obj.payload:
            return '{}'
        items = [
            f"{json.dumps(k, ensure_ascii=False)}: {self.pformat(v, level + 1)}"
            for k, v in obj.payload.items()
        ]
        return self._wrap('{', '}', items, level)

    def _wrap(self, open_, close, items, level):
        if self.compact:
            return f"{open_}{', '.join(items)}{close}"
        inner = self._indent_char * (level + 1)
        outer = self._indent_char * level
        body = ",\n".join(f"{inner}{item}" for item in items)
        return f"{open_}\n{body}\n{outer}{close}"
