from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

db = SQLAlchemy()


def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.Text, unique=True, nullable=False)
    email = db.Column(db.Text, unique=True, nullable=False)
    password = db.Column(db.Text, nullable=False)
    salt = db.Column(db.Text, nullable=False)
    role = db.Column(db.Text, default='user', nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)
    last_login = db.Column(db.DateTime)

    @property
    def is_admin(self):
        return self.role == 'admin'

    def to_dict(self):
        # password and salt never leave the store
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'role': self.role,
            'isActive': self.is_active,
            'createdAt': _iso(self.created_at),
            'lastLogin': _iso(self.last_login)
        }


class Message(db.Model):
    __tablename__ = 'messages'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.Text, nullable=False)
    email = db.Column(db.Text, nullable=False)
    subject = db.Column(db.Text, nullable=False)
    message = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'subject': self.subject,
            'message': self.message,
            'createdAt': _iso(self.created_at)
        }


class Visitor(db.Model):
    __tablename__ = 'visitors'

    # fields a visit observation may carry, with their column lengths
    DESCRIPTIVE_FIELDS = {
        'ip_address': 50,
        'user_agent': None,
        'referrer': None,
        'language': 50,
        'country': 100,
        'city': 100,
        'device': 50,
        'browser': 50,
        'os': 50,
    }

    id = db.Column(db.Integer, primary_key=True)
    ip_address = db.Column(db.String(50), unique=True)
    user_agent = db.Column(db.Text)
    referrer = db.Column(db.Text)
    language = db.Column(db.String(50))
    country = db.Column(db.String(100), index=True)
    city = db.Column(db.String(100))
    device = db.Column(db.String(50), index=True)
    browser = db.Column(db.String(50), index=True)
    os = db.Column(db.String(50), index=True)
    is_unique = db.Column(db.Boolean, default=True)
    visit_count = db.Column(db.Integer, default=1)
    last_visit = db.Column(db.DateTime, default=datetime.now, nullable=False, index=True)
    first_visit = db.Column(db.DateTime, default=datetime.now, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'ipAddress': self.ip_address,
            'userAgent': self.user_agent,
            'referrer': self.referrer,
            'language': self.language,
            'country': self.country,
            'city': self.city,
            'device': self.device,
            'browser': self.browser,
            'os': self.os,
            'isUnique': self.is_unique,
            'visitCount': self.visit_count,
            'lastVisit': _iso(self.last_visit),
            'firstVisit': _iso(self.first_visit)
        }
