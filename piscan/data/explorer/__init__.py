from piscan.data.explorer.provider import EXPLORER_CAPABILITIES, ExplorerSource
from piscan.data.explorer.request_factory import ExplorerRequestFactory, explorer_query_for

__all__ = ["EXPLORER_CAPABILITIES", "ExplorerRequestFactory", "ExplorerSource", "explorer_query_for"]
