import re
from datetime import datetime, date, timedelta

from dateutil import parser  # pip install python-dateutil

LATEST_POSTS_COUNT = 2
LOOKBACK_DAYS = 15

LATEST_LABEL = "Latest articles"
OLDER_LABEL = "Older articles"

# Jekyll writes front-matter dates like "2015-08-08 10:00:00 +0200"
JEKYLL_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"

# A full calendar day, optionally followed by a time
FULL_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}(?:$|[Tt ])")


class InvalidDateFormat(ValueError):
    """A post date could not be read as a calendar date."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid post date: {value!r}")


def to_date(value) -> date:
    """
    Normalize a post date to a calendar date.

    Accepts a datetime (its own calendar date is kept, no tz conversion),
    a date, or a string in ISO 8601 or Jekyll front-matter form.
    """
    # datetime is a subclass of date, check it first
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidDateFormat(value)

    text = value.strip()
    # isoparse also takes "2015" or "2015-08"; a post needs a full day
    if not FULL_DATE_RE.match(text):
        raise InvalidDateFormat(value)
    try:
        return parser.isoparse(text).date()
    except (ValueError, OverflowError):
        pass
    try:
        return datetime.strptime(text, JEKYLL_DATE_FORMAT).date()
    except ValueError:
        raise InvalidDateFormat(value) from None


def post_date(post) -> date:
    """Read the date of a mapping-style or attribute-style post."""
    if isinstance(post, dict):
        value = post.get("date")
    else:
        value = getattr(post, "date", None)
    if value is None:
        raise InvalidDateFormat(value)
    return to_date(value)


def find_threshold(day: date, interval_days: int) -> date:
    """Go back `interval_days` and round down to the first of that month."""
    exact = day - timedelta(days=interval_days)
    return exact.replace(day=1)


def month_label(day: date) -> str:
    return day.strftime("%B %Y")


def group_by_date(posts, *, latest_count: int = LATEST_POSTS_COUNT,
                  lookback_days: int = LOOKBACK_DAYS) -> dict:
    """
    Group posts (newest first) for the archive navigation:

      {
        "Latest articles": [first `latest_count` posts],
        "August 2015": [...],
        "July 2015": [...],
        "Older articles": [...],   # only if something is before the threshold
      }

    The threshold is the first day of the month reached by going back
    `lookback_days` from the newest post outside the latest bucket.
    Posts are not re-sorted; each group keeps the input order.
    """
    posts = list(posts)
    latest = posts[:latest_count]
    older = posts[latest_count:]

    grouped = {LATEST_LABEL: latest}
    if not older:
        return grouped

    threshold = find_threshold(post_date(older[0]), lookback_days)

    for post in older:
        day = post_date(post)
        key = OLDER_LABEL if day < threshold else month_label(day)
        grouped.setdefault(key, []).append(post)

    return grouped
