# === NAVMAP v1 ===
# {
#   "module": "TypedAPI.concurrency.__init__",
#   "purpose": "Worker executors for request phases that run off the event loop.",
#   "sections": []
# }
# === /NAVMAP ===

"""
Worker executors for request phases that run off the event loop.

Preprocessing and retry-condition evaluation are user code that may block.
They run on a worker executor; :func:`create_executor` builds a dedicated
thread pool for callers that do not want to share the loop's default one.
"""

from .executors import create_executor

__all__ = ["create_executor"]
