"""Culture Tracker: daily culture ratings backed by a CSV file in a Git repository."""

__version__ = "1.0.0"
