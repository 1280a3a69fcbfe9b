"""Subject and timetable slots.

Both are owned by the scheduling side of the campus system; attendance only
reads them to resolve a slot's subject, room, roster and class coordinates.
"""
from campus_attendance import db
from campus_attendance.models.base import BaseModel


class Subject(BaseModel):
    """Subject taught in a semester."""

    __tablename__ = 'subjects'

    code = db.Column(db.String(20), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    credits = db.Column(db.Integer, nullable=False, default=3)
    semester = db.Column(db.Integer, nullable=True)
    branch = db.Column(db.String(20), nullable=True)

    def to_summary(self) -> dict:
        return {'id': self.id, 'code': self.code, 'name': self.name}

    def __repr__(self):
        return f'<Subject {self.code}>'


class Timetable(BaseModel):
    """Weekly timetable slot for a class section."""

    __tablename__ = 'timetables'

    day = db.Column(db.String(10), nullable=False)
    subject_id = db.Column(db.Integer, db.ForeignKey('subjects.id'), nullable=False)
    faculty_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    semester = db.Column(db.Integer, nullable=False)
    branch = db.Column(db.String(20), nullable=False)
    section = db.Column(db.String(10), nullable=False, default='A')
    start_time = db.Column(db.String(5), nullable=False)  # "09:00"
    end_time = db.Column(db.String(5), nullable=False)
    room = db.Column(db.String(50), nullable=False)

    # Expected classroom coordinates
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    is_active = db.Column(db.Boolean, default=True)

    # Relationships
    subject = db.relationship('Subject')
    faculty = db.relationship('User')

    def __repr__(self):
        return f'<Timetable {self.day} {self.start_time} {self.room}>'
