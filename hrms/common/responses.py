"""Success envelope shared by every router: ``{success, data, message}``."""

from typing import Any, Optional

from pydantic import BaseModel


def success_response(data: Any = None, message: Optional[str] = None) -> dict[str, Any]:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    elif isinstance(data, list):
        data = [
            d.model_dump(mode="json", by_alias=True) if isinstance(d, BaseModel) else d
            for d in data
        ]
    body: dict[str, Any] = {"success": True, "data": data}
    if message is not None:
        body["message"] = message
    return body
