"""HTTP API for EquiLens."""
