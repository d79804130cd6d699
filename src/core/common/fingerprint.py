import hashlib
import json
from typing import Any

from pydantic import BaseModel


def request_fingerprint(payload: BaseModel | dict[str, Any]) -> str:
    """Stable digest of a request body, used to detect idempotency-key reuse."""
    data = payload.model_dump(mode="json") if isinstance(payload, BaseModel) else payload
    encoded = json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return f"sha256:{hashlib.sha256(encoded).hexdigest()}"
