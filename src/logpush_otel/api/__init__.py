"""HTTP API for receiving Logpush deliveries."""
