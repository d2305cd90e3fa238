"""mastoutil - local storage for a Mastodon account-monitoring utility."""

__version__ = "0.1.0"
