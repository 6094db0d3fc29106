from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict

from piscan.data.rpc.schemas import RpcErrorBody


class ExplorerResponse(BaseModel):
    status: Optional[str] = None
    message: Optional[str] = None
    result: Optional[Any] = None
    jsonrpc: Optional[str] = None
    id: Optional[Union[int, str]] = None
    error: Optional[RpcErrorBody] = None

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    @property
    def is_error_status(self) -> bool:
        return self.status is not None and self.status.strip() == "0"


__all__ = ["ExplorerResponse"]
