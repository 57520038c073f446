"""UniTrack client core: bulk student import, paged course views and the backend API client."""

__version__ = "1.0.0"
