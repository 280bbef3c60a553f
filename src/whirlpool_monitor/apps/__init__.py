"""Applications built on the core library."""
