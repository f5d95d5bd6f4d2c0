"""Host-side adapters: settings, conversation sources, macros, prompt hooks."""
