"""core/ -- Process configuration. Kernel layer: imports nothing from auth/."""
