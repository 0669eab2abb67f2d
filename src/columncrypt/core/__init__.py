"""Core infrastructure: settings, logging, cipher, checkpoints, table configs, row store."""
