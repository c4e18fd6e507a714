"""taskpool: shared task pool with rule-driven workflow automation."""
