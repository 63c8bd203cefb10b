"""
models.py - Database Models for UniPilot
Student courses, weighted grade items and the cumulative academic record
"""

import math
from dataclasses import dataclass
from datetime import date, datetime

from flask_login import UserMixin

from extensions import db
from grading import RecordState, compute_course_mark, gpa_points, letter_grade, risk_status, total_weight


GRADE_ITEM_KINDS = ('quiz', 'midterm', 'final', 'assignment', 'project', 'lab', 'presentation')
PLANNER_EVENT_TYPES = ('exam', 'study', 'project', 'other')


class CourseAlreadyFinalizedError(RuntimeError):
    """Raised when something tries to finalize a course a second time."""


class User(UserMixin, db.Model):
    """
    Base User Model - Authentication for students and admins
    """
    __tablename__ = 'user'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='student')  # 'admin', 'student'
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    courses = db.relationship('StudentCourse', backref='user', lazy='dynamic', cascade='all, delete-orphan')
    notes = db.relationship('Note', backref='user', lazy='dynamic', cascade='all, delete-orphan')
    academic_record = db.relationship('AcademicRecord', backref='user', uselist=False, cascade='all, delete-orphan')
    ledger = db.relationship('FinalizedCourse', backref='user', lazy='dynamic', cascade='all, delete-orphan')
    events = db.relationship('PlannerEvent', backref='user', lazy='dynamic', cascade='all, delete-orphan')
    tasks = db.relationship('PlannerTask', backref='user', lazy='dynamic', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'

    def is_admin(self):
        return self.role == 'admin'

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
            'created_at': _iso(self.created_at),
        }


class CatalogCourse(db.Model):
    """
    Catalog Course - Master list a student can enroll from
    """
    __tablename__ = 'catalog_course'

    id = db.Column(db.Integer, primary_key=True)
    course_code = db.Column(db.String(20), nullable=False, index=True)  # "CS201"
    course_name = db.Column(db.String(200), nullable=False)
    department = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    credit_hours = db.Column(db.Integer, nullable=False, default=3)
    order = db.Column(db.Integer, nullable=False, default=1)
    prerequisite_id = db.Column(db.Integer, db.ForeignKey('catalog_course.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    prerequisite = db.relationship('CatalogCourse', remote_side=[id])
    grade_scheme = db.relationship(
        'CatalogGradeItem', backref='catalog_course', cascade='all, delete-orphan',
        order_by='CatalogGradeItem.sort_order'
    )
    resources = db.relationship(
        'CatalogResource', backref='catalog_course', cascade='all, delete-orphan',
        order_by='CatalogResource.id'
    )

    def __repr__(self):
        return f'<CatalogCourse {self.course_code} - {self.course_name}>'

    def set_grade_scheme(self, items):
        """
        Replace the grade scheme from a list of dicts
        Validates that weights total 100%
        """
        if not isinstance(items, list) or not items:
            raise ValueError("Grade distribution is required: add at least one item")

        weights = [_finite(it.get('weight') or 0, 'weight') for it in items]
        total = sum(weights)
        if abs(total - 100) > 0.01:
            raise ValueError(f"Total weight must equal 100%, got {total:g}%")

        self.grade_scheme = []
        for index, it in enumerate(items):
            kind = it.get('item_type') if it.get('item_type') in GRADE_ITEM_KINDS else 'quiz'
            max_score = _finite(it.get('max_score') or 100, 'max_score')
            if max_score <= 0:
                raise ValueError("Max score must be greater than 0")
            self.grade_scheme.append(CatalogGradeItem(
                item_type=kind,
                title=(it.get('title') or '').strip() or kind,
                weight=weights[index],
                max_score=max_score,
                sort_order=index,
            ))

    def to_dict(self):
        return {
            'id': self.id,
            'course_code': self.course_code,
            'course_name': self.course_name,
            'department': self.department,
            'description': self.description,
            'credit_hours': self.credit_hours,
            'order': self.order,
            'prerequisite_id': self.prerequisite_id,
            'created_at': _iso(self.created_at),
        }


class CatalogGradeItem(db.Model):
    """
    One row of a catalog course's grade distribution
    """
    __tablename__ = 'catalog_grade_item'

    id = db.Column(db.Integer, primary_key=True)
    catalog_course_id = db.Column(db.Integer, db.ForeignKey('catalog_course.id'), nullable=False, index=True)
    item_type = db.Column(db.String(20), nullable=False, default='quiz')
    title = db.Column(db.String(200), nullable=False)
    weight = db.Column(db.Float, nullable=False, default=0)
    max_score = db.Column(db.Float, nullable=False, default=100)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            'id': self.id,
            'catalog_course_id': self.catalog_course_id,
            'item_type': self.item_type,
            'title': self.title,
            'weight': self.weight,
            'max_score': self.max_score,
            'sort_order': self.sort_order,
        }


class CatalogResource(db.Model):
    """
    A file or link attached to a catalog course
    """
    __tablename__ = 'catalog_resource'

    id = db.Column(db.Integer, primary_key=True)
    catalog_course_id = db.Column(db.Integer, db.ForeignKey('catalog_course.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'catalog_course_id': self.catalog_course_id,
            'title': self.title,
            'url': self.url,
            'created_at': _iso(self.created_at),
        }


# === COURSE STATUS ===
# finalized_at and passed move together; these read them as one value.

@dataclass(frozen=True)
class Open:
    is_finalized = False


@dataclass(frozen=True)
class Finalized:
    passed: bool
    at: datetime
    is_finalized = True


class StudentCourse(db.Model):
    """
    Student Course - A course a student is taking or has finished
    """
    __tablename__ = 'student_course'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'catalog_course_id', name='uq_student_course_catalog'),
        db.CheckConstraint(
            '(finalized_at IS NULL AND passed IS NULL) OR '
            '(finalized_at IS NOT NULL AND passed IS NOT NULL)',
            name='ck_student_course_finalized_passed'
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    catalog_course_id = db.Column(db.Integer, db.ForeignKey('catalog_course.id'), nullable=True, index=True)

    # === COURSE INFO ===
    course_name = db.Column(db.String(200), nullable=False)
    course_code = db.Column(db.String(20), nullable=False, default='')
    credit_hours = db.Column(db.Integer, nullable=False, default=3)
    semester = db.Column(db.String(40), nullable=True)
    difficulty = db.Column(db.Integer, default=5)
    target_grade = db.Column(db.Float, default=85)
    professor_name = db.Column(db.String(200), nullable=True)
    description = db.Column(db.Text, nullable=True)

    # === DERIVED GRADE STATE (written only by finalization.py) ===
    current_grade = db.Column(db.Float, nullable=True)
    finalized_at = db.Column(db.DateTime, nullable=True)
    passed = db.Column(db.Boolean, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # === RELATIONSHIPS ===
    catalog_course = db.relationship('CatalogCourse')
    grade_items = db.relationship(
        'GradeItem', backref='student_course', cascade='all, delete-orphan',
        order_by='GradeItem.created_at'
    )

    def __repr__(self):
        return f'<StudentCourse {self.course_code} user:{self.user_id} ({self.status})>'

    @property
    def status(self):
        if self.finalized_at is None:
            return Open()
        return Finalized(passed=bool(self.passed), at=self.finalized_at)

    @property
    def is_finalized(self):
        return self.status.is_finalized

    def mark_finalized(self, passed, at=None):
        """
        One-way transition to Finalized. Sets both columns together.
        """
        if self.is_finalized:
            raise CourseAlreadyFinalizedError(f"Course {self.id} is already finalized")
        self.finalized_at = at or datetime.utcnow()
        self.passed = bool(passed)

    def compute_mark(self):
        """Course mark from the full current item set"""
        return compute_course_mark(self.grade_items)

    def total_item_weight(self):
        return total_weight(self.grade_items)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'catalog_course_id': self.catalog_course_id,
            'course_name': self.course_name,
            'course_code': self.course_code,
            'credit_hours': self.credit_hours,
            'semester': self.semester,
            'difficulty': self.difficulty,
            'target_grade': self.target_grade,
            'professor_name': self.professor_name,
            'description': self.description,
            'current_grade': self.current_grade,
            'letter_grade': letter_grade(self.current_grade),
            'gpa_points': gpa_points(self.current_grade),
            'grade_status': risk_status(self.current_grade),
            'finalized_at': _iso(self.finalized_at),
            'passed': self.passed,
            'created_at': _iso(self.created_at),
        }


class GradeItem(db.Model):
    """
    Grade Item - One weighted score (quiz, midterm, ...) in a student course
    """
    __tablename__ = 'grade_item'

    id = db.Column(db.Integer, primary_key=True)
    student_course_id = db.Column(db.Integer, db.ForeignKey('student_course.id'), nullable=False, index=True)

    item_type = db.Column(db.String(20), nullable=False, default='quiz')
    title = db.Column(db.String(200), nullable=False)
    score = db.Column(db.Float, nullable=False, default=0)
    max_score = db.Column(db.Float, nullable=False, default=100)
    weight = db.Column(db.Float, nullable=False, default=0)  # percentage points, not enforced

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<GradeItem {self.title} {self.score}/{self.max_score} w:{self.weight}>'

    def apply_changes(self, item_type=None, title=None, score=None, max_score=None, weight=None):
        """
        Update fields that were provided, keeping the others

        Raises:
            ValueError: If validation fails
        """
        if item_type is not None:
            if item_type not in GRADE_ITEM_KINDS:
                raise ValueError(f"Unknown grade item type: {item_type}")
            self.item_type = item_type

        if title is not None:
            if not str(title).strip():
                raise ValueError("Title cannot be empty")
            self.title = str(title).strip()

        if max_score is None:
            max_score = self.max_score if self.max_score is not None else 100
        if score is None:
            score = self.score or 0

        new_max = _finite(max_score, 'max_score')
        new_score = _finite(score, 'score')

        if new_max <= 0:
            raise ValueError("Max score must be greater than 0")
        if new_score < 0:
            raise ValueError("Score cannot be negative")
        if new_score > new_max:
            raise ValueError(f"Score ({new_score:g}) cannot exceed max score ({new_max:g})")

        self.max_score = new_max
        self.score = new_score

        if weight is not None:
            self.weight = _finite(weight, 'weight')

    @classmethod
    def build(cls, student_course, item_type='quiz', title=None, score=0, max_score=100, weight=0):
        item = cls(student_course=student_course)
        item.apply_changes(
            item_type=item_type or 'quiz',
            title=title or 'Grade',
            score=score if score is not None else 0,
            max_score=max_score if max_score is not None else 100,
            weight=weight if weight is not None else 0,
        )
        return item

    def to_dict(self):
        return {
            'id': self.id,
            'student_course_id': self.student_course_id,
            'item_type': self.item_type,
            'title': self.title,
            'score': self.score,
            'max_score': self.max_score,
            'weight': self.weight,
            'created_at': _iso(self.created_at),
        }


class AcademicRecord(db.Model):
    """
    Academic Record - One row per user, created on first finalization
    Only finalization.py writes these columns.
    """
    __tablename__ = 'academic_record'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, unique=True)

    cgpa = db.Column(db.Float, nullable=False, default=0)
    cumulative_percent = db.Column(db.Float, nullable=False, default=0)
    total_credits_completed = db.Column(db.Float, nullable=False, default=0)
    total_credits_carried = db.Column(db.Float, nullable=False, default=0)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<AcademicRecord user:{self.user_id} cgpa:{self.cgpa}>'

    def to_state(self):
        return RecordState(
            cgpa=self.cgpa or 0.0,
            cumulative_percent=self.cumulative_percent or 0.0,
            credits_completed=self.total_credits_completed or 0.0,
            credits_carried=self.total_credits_carried or 0.0,
        )

    def load_state(self, state):
        self.cgpa = state.cgpa
        self.cumulative_percent = state.cumulative_percent
        self.total_credits_completed = state.credits_completed
        self.total_credits_carried = state.credits_carried
        self.updated_at = datetime.utcnow()


class FinalizedCourse(db.Model):
    """
    Ledger - Append-only row per finalized course
    The academic record is a fold over these rows in id order.
    """
    __tablename__ = 'finalized_course'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    student_course_id = db.Column(db.Integer, db.ForeignKey('student_course.id', ondelete='SET NULL'),
                                  nullable=True, unique=True)

    course_code = db.Column(db.String(20), nullable=True)
    course_name = db.Column(db.String(200), nullable=True)
    mark = db.Column(db.Float, nullable=False)
    credit_hours = db.Column(db.Integer, nullable=False)
    passed = db.Column(db.Boolean, nullable=False)
    gpa_points = db.Column(db.Float, nullable=False)
    mode = db.Column(db.String(20), nullable=False)  # 'automatic', 'manual'
    finalized_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f'<FinalizedCourse course:{self.student_course_id} mark:{self.mark} passed:{self.passed}>'

    def to_dict(self):
        return {
            'id': self.id,
            'student_course_id': self.student_course_id,
            'course_code': self.course_code,
            'course_name': self.course_name,
            'mark': self.mark,
            'credit_hours': self.credit_hours,
            'passed': self.passed,
            'gpa_points': self.gpa_points,
            'mode': self.mode,
            'finalized_at': _iso(self.finalized_at),
        }


class Note(db.Model):
    """
    Note - Written by the student ('student') or generated from grades ('app')
    """
    __tablename__ = 'note'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    student_course_id = db.Column(db.Integer, db.ForeignKey('student_course.id', ondelete='SET NULL'),
                                  nullable=True, index=True)
    content = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(20), nullable=False, default='student')  # 'student', 'app'
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    student_course = db.relationship('StudentCourse')

    def to_dict(self):
        return {
            'id': self.id,
            'student_course_id': self.student_course_id,
            'course_name': self.student_course.course_name if self.student_course else None,
            'content': self.content,
            'type': self.type,
            'created_at': _iso(self.created_at),
        }


class PlannerEvent(db.Model):
    """
    Planner Event - A dated block in the student's calendar (exam, study session, ...)
    """
    __tablename__ = 'planner_event'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    student_course_id = db.Column(db.Integer, db.ForeignKey('student_course.id', ondelete='SET NULL'),
                                  nullable=True, index=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    start_date = db.Column(db.Date, nullable=False, index=True)
    end_date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.String(5), nullable=False, default='09:00')  # "HH:MM"
    end_time = db.Column(db.String(5), nullable=False, default='11:00')
    event_type = db.Column(db.String(20), nullable=False, default='study')  # 'exam', 'study', 'project', 'other'
    completed = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    student_course = db.relationship('StudentCourse')

    def __repr__(self):
        return f'<PlannerEvent {self.title} {self.start_date}>'

    def apply_changes(self, data):
        """
        Update the fields present in data; new events get today 09:00-11:00 study defaults

        Raises:
            ValueError: If a date or time is malformed, or the event ends before it starts
        """
        creating = self.id is None

        if 'title' in data or creating:
            self.title = (data.get('title') or '').strip() or 'Event'
        if 'description' in data:
            self.description = data.get('description') or None

        if data.get('start_date') or creating:
            self.start_date = _parse_date(data.get('start_date'), 'start_date')
        if data.get('end_date'):
            self.end_date = _parse_date(data['end_date'], 'end_date')
        elif creating:
            self.end_date = self.start_date

        if data.get('start_time') or creating:
            self.start_time = _parse_time(data.get('start_time') or '09:00', 'start_time')
        if data.get('end_time') or creating:
            self.end_time = _parse_time(data.get('end_time') or '11:00', 'end_time')

        if data.get('event_type') in PLANNER_EVENT_TYPES:
            self.event_type = data['event_type']
        elif creating:
            self.event_type = 'study'

        if 'completed' in data:
            self.completed = bool(data['completed'])

        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")

    def to_dict(self):
        return {
            'id': self.id,
            'student_course_id': self.student_course_id,
            'course_name': self.student_course.course_name if self.student_course else None,
            'title': self.title,
            'description': self.description,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'start_time': self.start_time,
            'end_time': self.end_time,
            'event_type': self.event_type,
            'completed': self.completed,
            'created_at': _iso(self.created_at),
        }


class PlannerTask(db.Model):
    """
    Planner Task - A to-do item due on a given day
    """
    __tablename__ = 'planner_task'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    student_course_id = db.Column(db.Integer, db.ForeignKey('student_course.id', ondelete='SET NULL'),
                                  nullable=True, index=True)

    title = db.Column(db.String(200), nullable=False)
    due_date = db.Column(db.Date, nullable=False, index=True)
    due_time = db.Column(db.String(5), nullable=True)
    priority = db.Column(db.Integer, nullable=False, default=3)  # 1 (low) .. 5 (high)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    source = db.Column(db.String(20), nullable=False, default='student')  # 'student', 'app'
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    student_course = db.relationship('StudentCourse')

    def __repr__(self):
        return f'<PlannerTask {self.title} due:{self.due_date}>'

    def apply_changes(self, data):
        """
        Update the fields present in data; new tasks are due today with priority 3

        Raises:
            ValueError: If a date or time is malformed
        """
        creating = self.id is None

        if 'title' in data or creating:
            self.title = (data.get('title') or '').strip() or 'Task'
        if data.get('due_date') or creating:
            self.due_date = _parse_date(data.get('due_date'), 'due_date')
        if 'due_time' in data:
            self.due_time = _parse_time(data['due_time'], 'due_time') if data['due_time'] else None
        if 'priority' in data or creating:
            self.priority = clamp_priority(data.get('priority'))
        if creating:
            self.source = 'app' if data.get('source') == 'app' else 'student'
        if 'completed' in data:
            self.completed = bool(data['completed'])

    def to_dict(self):
        return {
            'id': self.id,
            'student_course_id': self.student_course_id,
            'course_name': self.student_course.course_name if self.student_course else None,
            'title': self.title,
            'due_date': _iso(self.due_date),
            'due_time': self.due_time,
            'priority': self.priority,
            'completed': self.completed,
            'source': self.source,
            'sort_order': self.sort_order,
            'created_at': _iso(self.created_at),
        }


class SystemSettings(db.Model):
    """
    System-wide settings stored in database
    Allows admin to override auto-calculated values
    """
    __tablename__ = 'system_settings'

    id = db.Column(db.Integer, primary_key=True)
    setting_key = db.Column(db.String(100), unique=True, nullable=False, index=True)
    setting_value = db.Column(db.String(200), nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    updated_by = db.Column(db.String(100), nullable=True)  # Email of admin who updated

    def __repr__(self):
        return f'<SystemSettings {self.setting_key}={self.setting_value}>'

    @staticmethod
    def get_setting(key, default=None):
        setting = SystemSettings.query.filter_by(setting_key=key).first()
        return setting.setting_value if setting else default

    @staticmethod
    def set_setting(key, value, updated_by=None):
        """
        Set a setting value in database
        Creates new setting if doesn't exist. Caller commits.
        """
        setting = SystemSettings.query.filter_by(setting_key=key).first()
        if setting:
            setting.setting_value = value
            setting.updated_at = datetime.utcnow()
            setting.updated_by = updated_by
        else:
            setting = SystemSettings(
                setting_key=key,
                setting_value=value,
                updated_by=updated_by
            )
            db.session.add(setting)
        return setting

    @staticmethod
    def delete_setting(key):
        """Delete a setting (revert to auto-calculation). Caller commits."""
        setting = SystemSettings.query.filter_by(setting_key=key).first()
        if setting:
            db.session.delete(setting)
            return True
        return False


def _iso(value):
    return value.isoformat() if value else None


def _finite(value, field):
    """float(value), rejecting text, NaN and infinities"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be a number")
    if not math.isfinite(number):
        raise ValueError(f"{field} must be a finite number")
    return number


def clamp_priority(value):
    """Task priority as an int in 1..5; missing or unreadable values give 3"""
    try:
        priority = int(value)
    except (TypeError, ValueError):
        return 3
    return min(5, max(1, priority))


def _parse_date(value, field):
    """ISO "YYYY-MM-DD" to a date; empty means today"""
    if not value:
        return date.today()
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValueError(f"{field} must be a date (YYYY-MM-DD)")


def _parse_time(value, field):
    """Normalise "H:MM" / "HH:MM" to "HH:MM" """
    try:
        return datetime.strptime(str(value), '%H:%M').strftime('%H:%M')
    except ValueError:
        raise ValueError(f"{field} must be a time (HH:MM)")
