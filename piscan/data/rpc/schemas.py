from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict


class RpcErrorBody(BaseModel):
    code: Optional[int] = None
    message: str = ""
    data: Optional[Any] = None

    model_config = ConfigDict(extra="allow")


class RpcResponse(BaseModel):
    jsonrpc: Optional[str] = None
    id: Optional[Union[int, str]] = None
    result: Optional[Any] = None
    error: Optional[RpcErrorBody] = None

    model_config = ConfigDict(extra="allow")


__all__ = ["RpcErrorBody", "RpcResponse"]
