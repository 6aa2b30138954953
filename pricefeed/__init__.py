"""Exchange price collection, consolidation and voting-period scheduling for an oracle feeder."""

__version__ = "1.0.3"