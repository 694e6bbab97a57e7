"""
DialogPro relay: backend for the floating chat widget.

Modules:
- settings: frozen configuration object
- logging_config: shared logging setup
- sanitizer: message validation, emoticons, safe HTML
- session: session id + token budget over cookie or Redis backends
- cache / history: Redis-backed response cache and bounded history
- upstream: chat API client and connectivity probe
- relay: the message pipeline
- routes: FastAPI app factory; *_routes: HTTP endpoints
"""
