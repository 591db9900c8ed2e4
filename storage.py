import logging
from datetime import datetime

from sqlalchemy import desc, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from credentials import generate_salt, hash_password, verify_password
from models import User, Message, Visitor

logger = logging.getLogger(__name__)

# dialects that support INSERT ... ON CONFLICT DO UPDATE
UPSERT_INSERTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


class DuplicateKeyError(Exception):
    """Raised when a unique column (username, email) already holds the value"""


def visitor_fields(fields):
    """Keep only known, non-null visitor columns"""
    return {
        key: value for key, value in fields.items()
        if key in Visitor.DESCRIPTIVE_FIELDS and value is not None
    }


class DatabaseStorage:
    """Typed access to users, messages and visitors"""

    def __init__(self, db):
        self.db = db

    @property
    def session(self):
        return self.db.session

    # Users

    def get_user(self, user_id):
        return self.session.get(User, user_id)

    def get_user_by_username(self, username):
        return User.query.filter_by(username=username).first()

    def get_user_by_email(self, email):
        return User.query.filter_by(email=email).first()

    def get_users(self):
        return User.query.order_by(desc(User.created_at), desc(User.id)).all()

    def create_user(self, username, email, password, role=None):
        """Hash the password with a fresh salt and persist the user.

        Raises DuplicateKeyError if the username or email is taken.
        """
        salt = generate_salt()
        user = User(
            username=username,
            email=email,
            password=hash_password(password, salt),
            salt=salt,
            role=role or 'user'
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateKeyError('Username or email already exists') from e
        return user

    def verify_user(self, username, password):
        """Return the user if the credentials are valid, otherwise None.

        Unknown, inactive and wrong-password all yield None.
        """
        user = self.get_user_by_username(username)
        if not user or not user.is_active:
            return None
        if not verify_password(password, user.salt, user.password):
            return None
        return user

    def update_last_login(self, user_id):
        User.query.filter_by(id=user_id).update({User.last_login: datetime.now()})
        self.session.commit()

    def update_user_password(self, user_id, new_password):
        try:
            user = self.get_user(user_id)
            if not user:
                return False

            salt = generate_salt()
            user.salt = salt
            user.password = hash_password(new_password, salt)
            self.session.commit()
            return True
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Error updating password for user %s", user_id)
            return False

    # Messages

    def create_message(self, name, email, subject, message):
        msg = Message(name=name, email=email, subject=subject, message=message)
        self.session.add(msg)
        self.session.commit()
        return msg

    def get_messages(self):
        return Message.query.order_by(desc(Message.created_at), desc(Message.id)).all()

    def get_message(self, message_id):
        return self.session.get(Message, message_id)

    # Visitors

    def create_visitor(self, **fields):
        now = datetime.now()
        visitor = Visitor(
            is_unique=True,
            visit_count=1,
            first_visit=now,
            last_visit=now,
            **visitor_fields(fields)
        )
        self.session.add(visitor)
        self.session.commit()
        return visitor

    def get_visitors(self, limit=100, offset=0):
        return (Visitor.query
                .order_by(desc(Visitor.last_visit), desc(Visitor.id))
                .limit(limit)
                .offset(offset)
                .all())

    def get_visitor(self, visitor_id):
        return self.session.get(Visitor, visitor_id)

    def get_visitor_by_ip(self, ip_address):
        return Visitor.query.filter_by(ip_address=ip_address).first()

    def count_visitors(self):
        return self.session.query(func.count(Visitor.id)).scalar()

    def update_visitor(self, visitor_id, **fields):
        """Overwrite the given fields and count one more visit"""
        visitor = self.get_visitor(visitor_id)
        if visitor is None:
            return None

        for key, value in visitor_fields(fields).items():
            setattr(visitor, key, value)
        visitor.visit_count = Visitor.visit_count + 1
        visitor.last_visit = datetime.now()
        self.session.commit()
        return visitor

    def record_visit(self, **fields):
        """Insert a visitor for an unseen IP or count a repeat visit.

        Visits without an IP always create a new row. Known IPs are merged in
        one INSERT ... ON CONFLICT statement where the dialect supports it.
        """
        fields = visitor_fields(fields)
        ip_address = fields.get('ip_address')
        if not ip_address:
            return self.create_visitor(**fields)

        make_insert = UPSERT_INSERTS.get(self.db.engine.dialect.name)
        if make_insert is None:
            existing = self.get_visitor_by_ip(ip_address)
            if existing:
                return self.update_visitor(existing.id, **fields)
            return self.create_visitor(**fields)

        now = datetime.now()
        table = Visitor.__table__
        stmt = make_insert(table).values(
            is_unique=True,
            visit_count=1,
            first_visit=now,
            last_visit=now,
            **fields
        )
        # is_unique keeps whatever the first sighting stored
        updates = {key: stmt.excluded[key] for key in fields if key != 'ip_address'}
        updates['visit_count'] = table.c.visit_count + 1
        updates['last_visit'] = now
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.ip_address],
            set_=updates
        )

        self.session.execute(stmt)
        self.session.commit()
        return self.get_visitor_by_ip(ip_address)
