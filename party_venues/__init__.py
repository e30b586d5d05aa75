"""Party Venues - content pipeline for a children's party venue directory."""

__version__ = "0.1.0"
