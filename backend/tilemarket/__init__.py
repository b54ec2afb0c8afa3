"""Tile state reconciliation backend."""
