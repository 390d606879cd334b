"""
Application services.

Services orchestrate atomic components from src/components/ over the
repository ports.
"""
