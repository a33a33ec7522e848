"""Bridge Cloudflare Workers Logpush deliveries to OTLP/HTTP log backends."""

__version__ = "0.1.0"
