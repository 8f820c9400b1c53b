"""Terminal dashboard: rendering and the interactive event loop."""
