import unittest

from app import create_app
from extensions import bcrypt, db
from models import StudentCourse, User


class AppTestCase(unittest.TestCase):
    """Fresh app and in-memory database per test, with a logged-in student."""

    login_as_student = True

    def setUp(self):
        self.app = create_app('testing')
        self.ctx = self.app.app_context()
        self.ctx.push()
        db.create_all()
        self.client = self.app.test_client()

        if self.login_as_student:
            resp = self.client.post('/api/auth/register', json={
                'email': 'student@example.edu',
                'password': 'secret123',
                'full_name': 'Test Student',
            })
            self.assertEqual(resp.status_code, 201)
            self.user_id = resp.get_json()['user']['id']

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.ctx.pop()

    def make_user(self, email, password='secret123', role='student'):
        user = User(
            email=email,
            password=bcrypt.generate_password_hash(password).decode('utf-8'),
            full_name=email.split('@')[0],
            role=role,
        )
        db.session.add(user)
        db.session.commit()
        return user

    def create_course(self, **fields):
        payload = {'course_name': 'Algorithms', 'course_code': 'CS301', 'credit_hours': 3}
        payload.update(fields)
        resp = self.client.post('/api/student/courses', json=payload)
        self.assertEqual(resp.status_code, 201, resp.get_json())
        return resp.get_json()

    def add_grade(self, course_id, score, weight, max_score=100, item_type='quiz', title='Grade'):
        return self.client.post(f'/api/courses/{course_id}/grades', json={
            'item_type': item_type,
            'title': title,
            'score': score,
            'max_score': max_score,
            'weight': weight,
        })

    def course(self, course_id):
        return db.session.get(StudentCourse, course_id)
