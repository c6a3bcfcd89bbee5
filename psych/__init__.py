"""psych — multi-site uptime/latency probe."""
