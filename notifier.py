"""
notifier.py - Status Notes
Turns course marks into the app-generated notes shown beside the student's
own notes: one status note per graded course, plus a general recommendation
when several courses are at risk.
"""

from datetime import datetime

from flask import current_app

from extensions import db
from grading import RISK_AT_RISK, RISK_HIGH, RISK_NORMAL, RISK_SAFE, letter_grade, risk_status
from models import Note, StudentCourse

STATUS_LABELS = {
    RISK_SAFE: 'Safe',
    RISK_NORMAL: 'Normal',
    RISK_AT_RISK: 'At risk',
    RISK_HIGH: 'High risk',
}

RECOMMENDATIONS = {
    RISK_HIGH: (
        'Recommendation: your mark in this course is very low. Review the material, '
        'increase your study hours and ask your professor for help.'
    ),
    RISK_AT_RISK: (
        'Recommendation: your mark needs improvement. Revisit the lessons and focus '
        'on your weak points to raise your average.'
    ),
}

GENERAL_RECOMMENDATION = (
    'More than one course needs attention. Prioritise your revision and add '
    'study hours for the critical courses.'
)

ENCOURAGEMENT = {
    RISK_SAFE: 'Encouragement: excellent work. Keep up this discipline, you are on the right track.',
    RISK_NORMAL: 'Encouragement: good performance. Keep revising to hold and build on your progress.',
    RISK_AT_RISK: 'Encouragement: do not give up. Every improvement starts with one step.',
    RISK_HIGH: 'Encouragement: frustration is normal, but you are stronger than it. Take it step by step.',
}


def course_status_text(course_name, mark):
    if mark is None:
        return f"Course: {course_name}. No grades entered yet."

    status = risk_status(mark)
    parts = [
        f"Course: {course_name}. Mark: {mark:g}, grade: {letter_grade(mark)}. "
        f"Status: {STATUS_LABELS[status]}."
    ]
    if status in RECOMMENDATIONS:
        parts.append(RECOMMENDATIONS[status])
    parts.append(ENCOURAGEMENT[status])
    return '\n\n'.join(parts)


def upsert_course_note(course):
    """Keep exactly one app note for the course, rewritten from its current mark"""
    content = course_status_text(course.course_name, course.current_grade)

    note = Note.query.filter_by(
        user_id=course.user_id,
        student_course_id=course.id,
        type='app'
    ).first()

    if note:
        note.content = content
        note.created_at = datetime.utcnow()
    else:
        note = Note(user_id=course.user_id, student_course_id=course.id, content=content, type='app')
        db.session.add(note)
    return note


def sync_app_notes(user_id):
    """
    Refresh status notes for every graded course of the user and add or
    remove the general recommendation note

    Returns:
        int: number of courses at risk or high risk
    """
    graded = StudentCourse.query.filter(
        StudentCourse.user_id == user_id,
        StudentCourse.current_grade.isnot(None)
    ).all()

    at_risk = 0
    for course in graded:
        upsert_course_note(course)
        if risk_status(course.current_grade) in (RISK_AT_RISK, RISK_HIGH):
            at_risk += 1

    general = Note.query.filter_by(user_id=user_id, type='app', student_course_id=None).first()

    if at_risk >= current_app.config['AT_RISK_NOTE_THRESHOLD']:
        content = f"{GENERAL_RECOMMENDATION}\n\n{ENCOURAGEMENT[RISK_HIGH]}"
        if general:
            general.content = content
        else:
            db.session.add(Note(user_id=user_id, student_course_id=None, content=content, type='app'))
    elif general:
        db.session.delete(general)

    return at_risk
