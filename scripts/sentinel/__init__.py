"""Code Sentinel review pipeline primitives."""
