"""
Make query results JSON-encodable.

Values FastAPI's encoder cannot emit as strict JSON are normalised:
non-finite floats become null and binary values become base64 text.
Everything else is passed through for ``jsonable_encoder``.
"""

import base64
import math
from decimal import Decimal


def make_json_safe(obj):
    if isinstance(obj, dict):
        return {k: make_json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [make_json_safe(v) for v in obj]
    if isinstance(obj, float):
        return obj if math.isfinite(obj) else None
    if isinstance(obj, Decimal):
        return obj if obj.is_finite() else None
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    return obj
