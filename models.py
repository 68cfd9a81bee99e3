# models.py
from datetime import datetime

from flask import current_app
from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from itsdangerous import URLSafeTimedSerializer as Serializer, BadSignature
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()

AUTH_TOKEN_SALT = 'auth-token'


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(20), nullable=False, default='agent')
    notify_on_new_loops = db.Column(db.Boolean, nullable=False, default=True)
    notify_on_updated_loops = db.Column(db.Boolean, nullable=False, default=True)
    suspended = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                           onupdate=datetime.utcnow)
    last_active = db.Column(db.DateTime)

    @property
    def is_admin(self):
        return self.role == 'admin'

    @property
    def is_active(self):
        # Flask-Login refuses inactive users
        return not self.suspended

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def get_auth_token(self):
        s = Serializer(current_app.config['SECRET_KEY'], salt=AUTH_TOKEN_SALT)
        return s.dumps({'user_id': self.id})

    @staticmethod
    def verify_auth_token(token, max_age=None):
        s = Serializer(current_app.config['SECRET_KEY'], salt=AUTH_TOKEN_SALT)
        if max_age is None:
            max_age = current_app.config.get('AUTH_TOKEN_MAX_AGE')
        try:
            user_id = s.loads(token, max_age=max_age)['user_id']
        except (BadSignature, KeyError, TypeError):
            return None
        return db.session.get(User, user_id)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'suspended': self.suspended,
            'notify_on_new_loops': self.notify_on_new_loops,
            'notify_on_updated_loops': self.notify_on_updated_loops,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'last_active': self.last_active.isoformat() if self.last_active else None,
        }

    def __repr__(self):
        return f'<User {self.email}>'


class Loop(db.Model):
    """A real-estate transaction tracked through its status lifecycle."""
    __tablename__ = 'loops'

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(100), nullable=False)
    sale = db.Column(db.Numeric(14, 2), nullable=True)
    creator_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                           onupdate=datetime.utcnow)
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    tags = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='pre-offer')
    property_address = db.Column(db.String(255), nullable=False)
    client_name = db.Column(db.String(200))
    client_email = db.Column(db.String(120))
    client_phone = db.Column(db.String(30))
    notes = db.Column(db.Text)
    # Ordered manifest: [{filename, originalName, size, mimetype, uploadDate}]
    images = db.Column(db.JSON, nullable=True)
    archived = db.Column(db.Boolean, nullable=False, default=False)

    creator = db.relationship('User', lazy='joined',
                              backref=db.backref('loops', lazy=True, passive_deletes=True))

    @property
    def creator_name(self):
        return self.creator.name if self.creator else None

    @property
    def image_list(self):
        return list(self.images or [])

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'sale': float(self.sale) if self.sale is not None else None,
            'status': self.status,
            'property_address': self.property_address,
            'client_name': self.client_name,
            'client_email': self.client_email,
            'client_phone': self.client_phone,
            'notes': self.notes,
            'tags': self.tags,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'archived': self.archived,
            'creator_id': self.creator_id,
            'creator_name': self.creator_name,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'images': self.image_list,
        }

    def __repr__(self):
        return f'<Loop {self.id} {self.property_address}>'


class DocumentTemplate(db.Model):
    """An uploaded document with {{placeholder}} field mappings."""
    __tablename__ = 'document_templates'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(50), nullable=False)
    file_path = db.Column(db.String(500), nullable=False)
    file_name = db.Column(db.String(255), nullable=False)
    file_type = db.Column(db.String(10), nullable=False)
    file_size = db.Column(db.Integer, nullable=False)
    fields_mapped = db.Column(db.Boolean, nullable=False, default=False)
    # Ordered list of {name, loopField, type}
    field_mappings = db.Column(db.JSON, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                           onupdate=datetime.utcnow)

    creator = db.relationship('User', lazy='joined')

    @property
    def created_by_name(self):
        return self.creator.name if self.creator else None

    @property
    def mappings(self):
        """Field mappings as typed FieldMapping objects."""
        from services.documents.types import FieldMapping
        return [FieldMapping.from_dict(m) for m in (self.field_mappings or [])]

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'file_name': self.file_name,
            'file_type': self.file_type,
            'file_size': self.file_size,
            'fields_mapped': self.fields_mapped,
            'field_mappings': list(self.field_mappings or []),
            'created_by': self.created_by,
            'created_by_name': self.created_by_name,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<DocumentTemplate {self.name}>'


class ActivityLog(db.Model):
    """Append-only audit trail of user actions."""
    __tablename__ = 'activity_logs'

    # Action types
    LOGIN = 'LOGIN'
    LOGOUT = 'LOGOUT'
    LOOP_CREATED = 'LOOP_CREATED'
    LOOP_UPDATED = 'LOOP_UPDATED'
    LOOP_STATUS_CHANGED = 'LOOP_STATUS_CHANGED'
    LOOP_DELETED = 'LOOP_DELETED'
    LOOP_ARCHIVED = 'LOOP_ARCHIVED'
    LOOP_UNARCHIVED = 'LOOP_UNARCHIVED'
    LOOP_IMAGE_DELETED = 'LOOP_IMAGE_DELETED'
    PASSWORD_CHANGED = 'PASSWORD_CHANGED'
    SETTINGS_UPDATED = 'SETTINGS_UPDATED'
    EXPORT_DATA = 'EXPORT_DATA'
    USER_SUSPENDED = 'USER_SUSPENDED'
    USER_UNSUSPENDED = 'USER_UNSUSPENDED'
    USER_PROMOTED = 'USER_PROMOTED'
    USER_IMPORTED = 'USER_IMPORTED'
    TEMPLATE_UPLOADED = 'TEMPLATE_UPLOADED'
    TEMPLATE_UPDATED = 'TEMPLATE_UPDATED'
    TEMPLATE_DELETED = 'TEMPLATE_DELETED'
    TEMPLATE_FIELDS_MAPPED = 'TEMPLATE_FIELDS_MAPPED'
    DOCUMENT_GENERATED = 'DOCUMENT_GENERATED'
    DOCUMENT_DELETED = 'DOCUMENT_DELETED'

    ACTION_TYPES = (
        LOGIN, LOGOUT, LOOP_CREATED, LOOP_UPDATED, LOOP_STATUS_CHANGED,
        LOOP_DELETED, LOOP_ARCHIVED, LOOP_UNARCHIVED, LOOP_IMAGE_DELETED,
        PASSWORD_CHANGED, SETTINGS_UPDATED, EXPORT_DATA, USER_SUSPENDED,
        USER_UNSUSPENDED, USER_PROMOTED, USER_IMPORTED, TEMPLATE_UPLOADED,
        TEMPLATE_UPDATED, TEMPLATE_DELETED, TEMPLATE_FIELDS_MAPPED,
        DOCUMENT_GENERATED, DOCUMENT_DELETED,
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    action_type = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(500), nullable=False)
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(500))
    event_data = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    user = db.relationship('User', lazy='joined')

    @classmethod
    def log(cls, action_type, description, user_id=None, event_data=None,
            ip_address=None, user_agent=None):
        """Create and commit a log entry."""
        entry = cls(
            user_id=user_id,
            action_type=action_type,
            description=description[:500],
            event_data=event_data,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.session.add(entry)
        db.session.commit()
        return entry

    def __repr__(self):
        return f'<ActivityLog {self.action_type} user={self.user_id}>'
