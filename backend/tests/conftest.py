"""Shared fixtures: app, client, users, timetable and auth headers."""
import pytest
from flask_jwt_extended import create_access_token

from campus_attendance import create_app, db
from campus_attendance.models.subject import Subject, Timetable
from campus_attendance.models.user import User, UserRole

CLASS_LATITUDE = 21.2500
CLASS_LONGITUDE = 81.6300


@pytest.fixture
def app():
    """Create test app."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


def make_user(email, role, password='password123', **fields):
    user = User(email=email, name=fields.pop('name', email.split('@')[0].title()), role=role, **fields)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def make_student(number, **fields):
    defaults = {
        'name': f'Student {number}',
        'roll_number': f'CSE5A{number:03d}',
        'semester': 5,
        'branch': 'CSE',
        'section': 'A'
    }
    defaults.update(fields)
    return make_user(f'student{number}@campus.edu', UserRole.STUDENT, **defaults)


@pytest.fixture
def admin(app):
    return make_user('admin@campus.edu', UserRole.ADMIN, name='System Admin')


@pytest.fixture
def faculty(app):
    return make_user('anita.sharma@campus.edu', UserRole.FACULTY, name='Anita Sharma', employee_id='FAC001')


@pytest.fixture
def other_faculty(app):
    return make_user('rahul.verma@campus.edu', UserRole.FACULTY, name='Rahul Verma', employee_id='FAC002')


@pytest.fixture
def students(app):
    """Three students in semester 5 CSE section A."""
    return [make_student(number) for number in (1, 2, 3)]


@pytest.fixture
def outsider(app):
    """Student from another section; never on the roster."""
    return make_student(99, section='B')


@pytest.fixture
def subject(app):
    subject = Subject(code='CS501', name='Computer Networks', credits=4, semester=5, branch='CSE')
    db.session.add(subject)
    db.session.commit()
    return subject


@pytest.fixture
def timetable(app, faculty, subject):
    slot = Timetable(
        day='monday',
        subject_id=subject.id,
        faculty_id=faculty.id,
        semester=5,
        branch='CSE',
        section='A',
        start_time='09:00',
        end_time='10:00',
        room='LH-101',
        latitude=CLASS_LATITUDE,
        longitude=CLASS_LONGITUDE
    )
    db.session.add(slot)
    db.session.commit()
    return slot


@pytest.fixture
def auth_headers(app):
    """Build bearer headers for a user."""
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {'Authorization': f'Bearer {token}'}
    return _headers
