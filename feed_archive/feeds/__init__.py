"""
Feed normalization and the live feed set.
"""

from .parser import load_subscription_list, parse_feed
from .reader import DEFAULT_FEEDS, FeedReader, date_window, filter_by_date, sort_newest_first

__all__ = [
    "DEFAULT_FEEDS",
    "FeedReader",
    "date_window",
    "filter_by_date",
    "load_subscription_list",
    "parse_feed",
    "sort_newest_first",
]
