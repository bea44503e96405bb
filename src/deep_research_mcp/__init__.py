"""deep-research-mcp - deliver deep research results over MCP.

Wraps an external research pipeline as the `deepResearch.run` tool and
handles everything around it: fingerprint caching, inline-vs-offload
delivery of large reports, and three transport bindings (stdio, stateless
HTTP, SSE) with API-key gating.

Quick Start:
    >>> from deep_research_mcp import ResultCache, RequestDispatcher, ServerFactory, get_settings
    >>> from deep_research_mcp.storage import BlobOffloader
    >>>
    >>> settings = get_settings()
    >>> dispatcher = RequestDispatcher(my_pipeline, ResultCache(600, 50),
    ...                                BlobOffloader.from_settings(settings.storage))
    >>> ServerFactory(dispatcher, settings)().run()  # stdio

Serving:
    $ MCP_HTTP_MODE=true MCP_API_KEY=s3cret DEEP_RESEARCH_PIPELINE=mypkg.research:run deep-research-mcp serve
"""

from __future__ import annotations

from .config import SERVER_VERSION

__version__ = SERVER_VERSION

from .cache import ResultCache, fingerprint, make_key
from .config import DeepResearchSettings, get_settings
from .delivery import SIZE_THRESHOLD_KB, DeliveryMode, decide
from .dispatcher import OFFLOAD_ERROR_MARKER, RequestDispatcher
from .errors import ErrorCode, ResearchError, StorageError
from .models import ResearchOutcome, ResearchParams, ResearchResult, ResultMetadata
from .progress import ResearchProgress
from .server import CAPABILITIES_URI, TOOL_NAME, ServerFactory

__all__ = [
    "__version__",
    "CAPABILITIES_URI",
    "OFFLOAD_ERROR_MARKER",
    "SIZE_THRESHOLD_KB",
    "TOOL_NAME",
    "DeepResearchSettings",
    "DeliveryMode",
    "ErrorCode",
    "RequestDispatcher",
    "ResearchError",
    "ResearchOutcome",
    "ResearchParams",
    "ResearchProgress",
    "ResearchResult",
    "ResultCache",
    "ResultMetadata",
    "ServerFactory",
    "StorageError",
    "decide",
    "fingerprint",
    "get_settings",
    "make_key",
]
