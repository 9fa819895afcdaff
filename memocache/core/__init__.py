"""Core infrastructure (logging) for memocache."""
