"""TourneyGate: tenant resolution and access gate."""

__version__ = "0.1.0"
