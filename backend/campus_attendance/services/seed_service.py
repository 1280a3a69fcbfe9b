"""Database seeding service for demo data."""
from flask import current_app

from campus_attendance import db
from campus_attendance.models.subject import Subject, Timetable
from campus_attendance.models.user import User, UserRole

# Demo classroom coordinates
CAMPUS_LATITUDE = 21.2500
CAMPUS_LONGITUDE = 81.6300


class SeedService:
    """Service to seed database with demo data."""

    @staticmethod
    def seed_all():
        """Seed all demo data."""
        SeedService.seed_admin()
        faculty = SeedService.seed_faculty()
        SeedService.seed_students()
        subjects = SeedService.seed_subjects()
        SeedService.seed_timetable(faculty, subjects)

    @staticmethod
    def _get_or_create_user(email: str, password: str, **fields) -> User:
        user = User.query.filter_by(email=email).first()
        if user:
            return user

        user = User(email=email, **fields)
        user.set_password(password)
        db.session.add(user)
        return user

    @staticmethod
    def seed_admin():
        SeedService._get_or_create_user(
            'admin@campus.edu', 'admin123456', name='System Admin', role=UserRole.ADMIN
        )
        db.session.commit()

    @staticmethod
    def seed_faculty():
        """Seed demo faculty members."""
        faculty_data = [
            ('Anita Sharma', 'anita.sharma', 'FAC001', 'Computer Science'),
            ('Rahul Verma', 'rahul.verma', 'FAC002', 'Computer Science'),
        ]

        faculty = [
            SeedService._get_or_create_user(
                f"{username}@campus.edu", 'faculty123',
                name=name,
                role=UserRole.FACULTY,
                employee_id=employee_id,
                department=department
            )
            for name, username, employee_id, department in faculty_data
        ]

        db.session.commit()
        current_app.logger.info(f"Seeded {len(faculty)} faculty")
        return faculty

    @staticmethod
    def seed_students(count: int = 20):
        """Seed one class of students: semester 5, CSE, section A."""
        for number in range(1, count + 1):
            SeedService._get_or_create_user(
                f"student{number:02d}@campus.edu", 'student123',
                name=f"Student {number:02d}",
                role=UserRole.STUDENT,
                roll_number=f"CSE5A{number:03d}",
                semester=5,
                branch='CSE',
                section='A'
            )

        db.session.commit()
        current_app.logger.info(f"Seeded {count} students")

    @staticmethod
    def seed_subjects():
        subjects_data = [
            ('CS501', 'Computer Networks', 4),
            ('CS502', 'Database Systems', 4),
            ('CS503', 'Operating Systems', 3),
        ]

        subjects = []
        for code, name, credits in subjects_data:
            subject = Subject.query.filter_by(code=code).first()
            if not subject:
                subject = Subject(code=code, name=name, credits=credits, semester=5, branch='CSE')
                db.session.add(subject)
            subjects.append(subject)

        db.session.commit()
        return subjects

    @staticmethod
    def seed_timetable(faculty, subjects):
        """One weekly slot per subject, alternating faculty."""
        slots = [
            ('monday', '09:00', '10:00', 'LH-101'),
            ('tuesday', '11:00', '12:00', 'LH-102'),
            ('wednesday', '14:00', '15:00', 'LAB-2'),
        ]

        for index, (day, start, end, room) in enumerate(slots):
            subject = subjects[index % len(subjects)]
            exists = Timetable.query.filter_by(day=day, subject_id=subject.id, section='A').first()
            if exists:
                continue

            db.session.add(Timetable(
                day=day,
                subject_id=subject.id,
                faculty_id=faculty[index % len(faculty)].id,
                semester=5,
                branch='CSE',
                section='A',
                start_time=start,
                end_time=end,
                room=room,
                latitude=CAMPUS_LATITUDE,
                longitude=CAMPUS_LONGITUDE
            ))

        db.session.commit()
        current_app.logger.info(f"Timetable has {Timetable.query.count()} slots")
