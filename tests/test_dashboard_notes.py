import unittest

from models import Note
from notifier import GENERAL_RECOMMENDATION, course_status_text
from tests.base import AppTestCase


class DashboardTests(AppTestCase):
    def test_empty_dashboard(self):
        body = self.client.get('/api/dashboard/summary').get_json()
        self.assertEqual(body['courses_count'], 0)
        self.assertEqual(body['semester_gpa'], 0)
        self.assertEqual(body['semester_percent'], 0)
        self.assertEqual(body['cgpa'], 0)
        self.assertEqual(body['projected_cgpa'], 0)

    def test_record_semester_and_projection(self):
        finished = self.create_course(course_name='Calculus', credit_hours=3)
        self.add_grade(finished['id'], score=86, weight=100)

        current = self.create_course(course_name='Physics', credit_hours=4)
        self.add_grade(current['id'], score=70, weight=50)
        self.create_course(course_name='History', credit_hours=3)

        body = self.client.get('/api/dashboard/summary').get_json()
        self.assertEqual(body['courses_count'], 3)

        self.assertEqual(body['cgpa'], 3.25)
        self.assertEqual(body['cumulative_percent'], 86.0)
        self.assertEqual(body['credits_completed'], 3)
        self.assertEqual(body['credits_carried'], 0)

        self.assertEqual(body['semester_gpa'], 2.5)
        self.assertEqual(body['semester_percent'], 70.0)
        self.assertEqual(body['semester_graded_credits'], 4)
        self.assertEqual(body['credits_current'], 7)

        self.assertEqual(body['projected_cgpa'], 2.82)
        self.assertEqual(body['projected_cumulative_percent'], 76.86)

        self.assertEqual([c['course_name'] for c in body['completed_courses']], ['Calculus'])
        self.assertEqual(body['completed_courses'][0]['letter_grade'], 'B+')
        self.assertEqual(body['carried_courses'], [])
        self.assertEqual(body['at_risk_count'], 0)

    def test_carried_and_at_risk(self):
        failed = self.create_course(course_name='Chemistry', credit_hours=3)
        self.add_grade(failed['id'], score=30, weight=100)

        risky = self.create_course(course_name='Biology', credit_hours=3)
        self.add_grade(risky['id'], score=65, weight=40)

        body = self.client.get('/api/dashboard/summary').get_json()
        self.assertEqual(body['credits_carried'], 3)
        self.assertEqual(body['cgpa'], 0)
        self.assertEqual([c['course_name'] for c in body['carried_courses']], ['Chemistry'])
        self.assertEqual(body['at_risk_count'], 1)


class StatusNoteTextTests(unittest.TestCase):
    def test_no_mark(self):
        self.assertEqual(course_status_text('Algebra', None), 'Course: Algebra. No grades entered yet.')

    def test_safe_course_has_no_recommendation(self):
        text = course_status_text('Algebra', 86.0)
        self.assertTrue(text.startswith('Course: Algebra. Mark: 86, grade: B+. Status: Safe.'))
        self.assertNotIn('Recommendation', text)
        self.assertIn('Encouragement', text)

    def test_high_risk_course_gets_recommendation(self):
        text = course_status_text('Algebra', 42.5)
        self.assertIn('Mark: 42.5, grade: F. Status: High risk.', text)
        self.assertIn('Recommendation', text)


class NotesTests(AppTestCase):
    def app_notes(self):
        return self.client.get('/api/notes/?type=app').get_json()

    def test_grade_write_creates_one_app_note_per_course(self):
        course = self.create_course()
        self.add_grade(course['id'], score=80, weight=30)
        self.add_grade(course['id'], score=90, weight=30)

        notes = self.app_notes()
        self.assertEqual(len(notes), 1)
        self.assertEqual(notes[0]['student_course_id'], course['id'])
        self.assertEqual(notes[0]['course_name'], 'Algorithms')
        self.assertIn('Mark: 85', notes[0]['content'])

    def test_general_note_follows_at_risk_count(self):
        first = self.create_course(course_name='Chemistry')
        item = self.add_grade(first['id'], score=65, weight=20).get_json()['item']
        second = self.create_course(course_name='Biology')
        self.add_grade(second['id'], score=50, weight=20)

        notes = self.app_notes()
        self.assertEqual(len(notes), 3)
        general = [n for n in notes if n['student_course_id'] is None]
        self.assertEqual(len(general), 1)
        self.assertIn(GENERAL_RECOMMENDATION, general[0]['content'])

        self.client.patch(f"/api/grades/{item['id']}", json={'score': 95})
        notes = self.app_notes()
        self.assertEqual(len(notes), 2)
        self.assertTrue(all(n['student_course_id'] is not None for n in notes))

    def test_student_note_lifecycle(self):
        course = self.create_course()
        resp = self.client.post('/api/notes/', json={'content': 'Revise chapter 3', 'student_course_id': course['id']})
        self.assertEqual(resp.status_code, 201)
        note = resp.get_json()
        self.assertEqual(note['type'], 'student')
        self.assertEqual(note['course_name'], 'Algorithms')

        resp = self.client.patch(f"/api/notes/{note['id']}", json={'content': 'Revise chapter 4'})
        self.assertEqual(resp.get_json()['content'], 'Revise chapter 4')

        listed = self.client.get('/api/notes/?type=student').get_json()
        self.assertEqual([n['content'] for n in listed], ['Revise chapter 4'])

        self.assertEqual(self.client.delete(f"/api/notes/{note['id']}").status_code, 204)
        self.assertEqual(self.client.get('/api/notes/?type=student').get_json(), [])

    def test_note_validation(self):
        self.assertEqual(self.client.post('/api/notes/', json={'content': '   '}).status_code, 400)
        self.assertEqual(self.client.post('/api/notes/', json={'content': 'x', 'student_course_id': 999}).status_code, 404)

    def test_app_notes_are_read_only(self):
        course = self.create_course()
        self.add_grade(course['id'], score=80, weight=30)
        note = self.app_notes()[0]

        resp = self.client.patch(f"/api/notes/{note['id']}", json={'content': 'edited'})
        self.assertEqual(resp.status_code, 403)

    def test_deleting_course_cleans_up_notes(self):
        course = self.create_course()
        self.add_grade(course['id'], score=80, weight=30)
        self.client.post('/api/notes/', json={'content': 'Keep me', 'student_course_id': course['id']})

        self.client.delete(f"/api/student/courses/{course['id']}")

        self.assertEqual(Note.query.filter_by(user_id=self.user_id, type='app').count(), 0)
        kept = Note.query.filter_by(user_id=self.user_id, type='student').one()
        self.assertIsNone(kept.student_course_id)


if __name__ == "__main__":
    unittest.main()
