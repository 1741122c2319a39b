"""EquiLens - equestrian video analysis toolkit."""

__version__ = "0.1.0"
