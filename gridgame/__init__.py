"""Grid adventure game service: movement engine, session lifecycle, and HTTP surface."""
