import unittest

from extensions import db
from models import CatalogCourse, GradeItem, StudentCourse
from tests.base import AppTestCase


class AuthTests(AppTestCase):
    login_as_student = False

    def test_anonymous_gets_json_401(self):
        resp = self.client.get('/api/student/courses')
        self.assertEqual(resp.status_code, 401)
        self.assertFalse(resp.get_json()['success'])

    def test_register_login_me(self):
        resp = self.client.post('/api/auth/register', json={
            'email': 'Someone@Example.edu', 'password': 'abc123', 'full_name': 'Someone',
        })
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.get_json()['user']['email'], 'someone@example.edu')
        self.assertEqual(resp.get_json()['user']['role'], 'student')

        self.client.post('/api/auth/logout')
        resp = self.client.post('/api/auth/login', json={'email': 'someone@example.edu', 'password': 'wrong1'})
        self.assertEqual(resp.status_code, 401)

        resp = self.client.post('/api/auth/login', json={'email': 'someone@example.edu', 'password': 'abc123'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get('/api/auth/me').get_json()['user']['full_name'], 'Someone')

    def test_register_validation(self):
        resp = self.client.post('/api/auth/register', json={'email': 'a@b.c', 'password': '123', 'full_name': 'A'})
        self.assertEqual(resp.status_code, 400)

        self.make_user('taken@example.edu')
        resp = self.client.post('/api/auth/register', json={
            'email': 'taken@example.edu', 'password': 'abc123', 'full_name': 'B',
        })
        self.assertEqual(resp.status_code, 400)

    def test_health(self):
        self.assertEqual(self.client.get('/api/health').get_json(), {'status': 'ok'})


class CourseRouteTests(AppTestCase):
    def test_create_uses_defaults(self):
        course = self.create_course(semester='Fall 2026')
        self.assertEqual(course['semester'], 'Fall 2026')
        self.assertEqual(course['target_grade'], 85)
        self.assertIsNone(course['current_grade'])
        self.assertIsNone(course['letter_grade'])
        self.assertEqual(course['grade_status'], 'normal')

    def test_derived_fields_are_read_only(self):
        course = self.create_course()
        resp = self.client.patch(f"/api/student/courses/{course['id']}", json={'current_grade': 99})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('current_grade', resp.get_json()['error'])

    def test_update_details(self):
        course = self.create_course()
        resp = self.client.patch(f"/api/student/courses/{course['id']}",
                                 json={'professor_name': 'Dr. Ada', 'credit_hours': 4})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()['professor_name'], 'Dr. Ada')
        self.assertEqual(resp.get_json()['credit_hours'], 4)

    def test_other_users_course_is_404(self):
        other = self.make_user('other@example.edu')
        theirs = StudentCourse(user_id=other.id, course_name='Secret', course_code='X1', credit_hours=3)
        db.session.add(theirs)
        db.session.commit()

        self.assertEqual(self.client.get(f'/api/student/courses/{theirs.id}').status_code, 404)
        self.assertEqual(self.add_grade(theirs.id, score=50, weight=10).status_code, 404)
        self.assertEqual(self.client.post(f'/api/courses/{theirs.id}/finalize').status_code, 404)

        item = GradeItem.build(theirs, title='Quiz', score=5, max_score=10, weight=10)
        db.session.add(item)
        db.session.commit()
        self.assertEqual(self.client.patch(f'/api/grades/{item.id}', json={'score': 1}).status_code, 404)
        self.assertEqual(self.client.delete(f'/api/grades/{item.id}').status_code, 404)


class GradeRouteTests(AppTestCase):
    def test_score_above_max_rejected(self):
        course = self.create_course()
        resp = self.add_grade(course['id'], score=11, weight=10, max_score=10)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(GradeItem.query.count(), 0)

    def test_invalid_values_rejected(self):
        course = self.create_course()
        self.assertEqual(self.add_grade(course['id'], score=-1, weight=10).status_code, 400)
        self.assertEqual(self.add_grade(course['id'], score=1, weight=10, max_score=0).status_code, 400)
        self.assertEqual(self.add_grade(course['id'], score='abc', weight=10).status_code, 400)
        self.assertEqual(self.add_grade(course['id'], score=1, weight=10, item_type='bonus').status_code, 400)
        self.assertEqual(GradeItem.query.count(), 0)
        self.assertIsNone(self.course(course['id']).current_grade)

    def test_non_finite_numbers_rejected(self):
        course = self.create_course()
        url = f"/api/courses/{course['id']}/grades"

        resp = self.client.post(url, data='{"title": "Quiz", "score": NaN, "max_score": 100, "weight": 100}',
                                content_type='application/json')
        self.assertEqual(resp.status_code, 400)
        self.assertIn('score', resp.get_json()['error'])

        resp = self.add_grade(course['id'], score=50, weight='nan')
        self.assertEqual(resp.status_code, 400)
        self.assertIn('weight', resp.get_json()['error'])

        resp = self.add_grade(course['id'], score=50, weight=100, max_score='inf')
        self.assertEqual(resp.status_code, 400)

        self.assertEqual(GradeItem.query.count(), 0)
        self.assertIsNone(self.course(course['id']).current_grade)

    def test_non_finite_update_rejected(self):
        course = self.create_course()
        item = self.add_grade(course['id'], score=80, weight=40).get_json()['item']

        resp = self.client.patch(f"/api/grades/{item['id']}", data='{"score": NaN}',
                                 content_type='application/json')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(db.session.get(GradeItem, item['id']).score, 80)
        self.assertEqual(self.course(course['id']).current_grade, 80.0)

    def test_model_rejects_non_finite_values(self):
        course = self.course(self.create_course()['id'])
        with self.assertRaises(ValueError):
            GradeItem.build(course, title='Quiz', score=float('nan'), max_score=100, weight=10)
        with self.assertRaises(ValueError):
            GradeItem.build(course, title='Quiz', score=5, max_score=10, weight=float('inf'))
        db.session.rollback()

    def test_update_and_delete_recompute(self):
        course = self.create_course()
        first = self.add_grade(course['id'], score=80, weight=40).get_json()['item']
        self.add_grade(course['id'], score=60, weight=40)

        resp = self.client.patch(f"/api/grades/{first['id']}", json={'score': 100})
        self.assertEqual(resp.get_json()['course']['current_grade'], 80.0)
        self.assertEqual(resp.get_json()['item']['max_score'], 100)

        resp = self.client.patch(f"/api/grades/{first['id']}", json={'max_score': 50})
        self.assertEqual(resp.status_code, 400)

        resp = self.client.delete(f"/api/grades/{first['id']}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()['course']['current_grade'], 60.0)

    def test_deleting_last_item_clears_mark(self):
        course = self.create_course()
        item = self.add_grade(course['id'], score=80, weight=40).get_json()['item']
        resp = self.client.delete(f"/api/grades/{item['id']}")
        self.assertIsNone(resp.get_json()['course']['current_grade'])

    def test_list_grades(self):
        course = self.create_course()
        self.add_grade(course['id'], score=8, max_score=10, weight=20, title='Quiz 1')
        self.add_grade(course['id'], score=40, max_score=50, weight=30, item_type='midterm', title='Midterm')
        items = self.client.get(f"/api/courses/{course['id']}/grades").get_json()
        self.assertEqual([i['title'] for i in items], ['Quiz 1', 'Midterm'])


class CatalogEnrollmentTests(AppTestCase):
    def setUp(self):
        super().setUp()
        self.intro = CatalogCourse(course_code='CS101', course_name='Intro to CS', department='CS',
                                   credit_hours=3, order=1)
        db.session.add(self.intro)
        db.session.commit()
        self.advanced = CatalogCourse(course_code='CS201', course_name='Data Structures', department='CS',
                                      credit_hours=4, order=2, prerequisite_id=self.intro.id)
        db.session.add(self.advanced)
        db.session.commit()

    def test_catalog_listing(self):
        courses = self.client.get('/api/catalog/courses').get_json()
        self.assertEqual([c['course_code'] for c in courses], ['CS101', 'CS201'])

    def test_enroll_copies_catalog_fields(self):
        course = self.create_course(course_name=None, course_code=None, credit_hours=None,
                                    catalog_course_id=self.intro.id)
        self.assertEqual(course['course_name'], 'Intro to CS')
        self.assertEqual(course['course_code'], 'CS101')
        self.assertEqual(course['credit_hours'], 3)

    def test_duplicate_enrollment_rejected(self):
        self.create_course(catalog_course_id=self.intro.id)
        resp = self.client.post('/api/student/courses', json={'catalog_course_id': self.intro.id})
        self.assertEqual(resp.status_code, 400)

    def test_prerequisite_must_be_finalized(self):
        resp = self.client.post('/api/student/courses', json={'catalog_course_id': self.advanced.id})
        self.assertEqual(resp.status_code, 400)

        intro = self.create_course(catalog_course_id=self.intro.id)
        resp = self.client.post('/api/student/courses', json={'catalog_course_id': self.advanced.id})
        self.assertEqual(resp.status_code, 400)

        self.add_grade(intro['id'], score=75, weight=100)
        resp = self.client.post('/api/student/courses', json={'catalog_course_id': self.advanced.id})
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.get_json()['credit_hours'], 4)


if __name__ == "__main__":
    unittest.main()
