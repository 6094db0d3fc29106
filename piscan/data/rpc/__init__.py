from piscan.data.rpc.provider import JsonRpcSource, block_range_chunks
from piscan.data.rpc.request_factory import RpcRequestFactory, rpc_call_for

__all__ = ["JsonRpcSource", "RpcRequestFactory", "block_range_chunks", "rpc_call_for"]
