"""Client patcher: keeps a local game installation in sync with a patch server."""
