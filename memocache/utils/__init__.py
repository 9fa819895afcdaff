"""Runtime utilities shared across memocache."""
