from datetime import datetime, timedelta

from sqlalchemy import asc, desc, func

from models import Visitor

TOP_GROUPS = 10
UNKNOWN_LABEL = 'Unknown'


def display_label(value):
    """Presentation label for a possibly-null group key"""
    return value if value else UNKNOWN_LABEL


class VisitorStats:
    """Dashboard summary over the visitor table, computed on every call"""

    BREAKDOWNS = {
        'visitorsByCountry': 'country',
        'visitorsByDevice': 'device',
        'visitorsByBrowser': 'browser',
        'visitorsByOs': 'os',
    }

    def __init__(self, db):
        self.db = db

    def _count(self, *criteria):
        query = self.db.session.query(func.count(Visitor.id))
        if criteria:
            query = query.filter(*criteria)
        return query.scalar() or 0

    def total_visitors(self):
        return self._count()

    def unique_visitors(self):
        return self._count(Visitor.is_unique.is_(True))

    def today_visitors(self, now=None):
        now = now or datetime.now()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return self._count(
            Visitor.last_visit >= midnight,
            Visitor.last_visit < midnight + timedelta(days=1)
        )

    def last_week_visitors(self, now=None):
        now = now or datetime.now()
        return self._count(Visitor.last_visit >= now - timedelta(days=7))

    def visitors_by(self, field, limit=TOP_GROUPS):
        """Top groups for a visitor column, nulls excluded.

        Ordered by count descending, ties broken by the group key.
        """
        column = getattr(Visitor, field)
        count = func.count(Visitor.id).label('count')
        rows = (self.db.session.query(column, count)
                .filter(column.isnot(None))
                .group_by(column)
                .order_by(desc(count), asc(column))
                .limit(limit)
                .all())
        return [{field: key, 'count': total} for key, total in rows]

    def get_visitor_stats(self, now=None):
        now = now or datetime.now()
        stats = {
            'totalVisitors': self.total_visitors(),
            'uniqueVisitors': self.unique_visitors(),
            'todayVisitors': self.today_visitors(now),
            'lastWeekVisitors': self.last_week_visitors(now),
        }
        for name, field in self.BREAKDOWNS.items():
            stats[name] = self.visitors_by(field)
        return stats
