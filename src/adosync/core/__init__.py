"""Core sync engine: batch coalescing, fan-out execution and work-item helpers."""
