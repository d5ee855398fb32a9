from fastapi.testclient import TestClient

from app.core.constants import QuestionTypeEnum, RoleEnum


def submitted_attempt(client, headers, exam, answers):
    attempt_id = client.post(f"/exams/{exam.id}/attempts", headers=headers).json()["data"]["attempt_id"]
    r = client.post(f"/attempts/{attempt_id}/submit", headers=headers, json={"answers": answers})
    assert r.status_code == 200, r.text
    return attempt_id


def answer_id_for(client, headers, attempt_id, question_id):
    answers = client.get(f"/attempts/{attempt_id}", headers=headers).json()["data"]["answers"]
    return next(a["id"] for a in answers if a["question_id"] == question_id)


def test_free_text_grading_flow(client: TestClient, user_factory, auth_headers, question_factory,
                                exam_factory, option_ids):
    """
    A free-text answer waits in the grading queue until a proctor marks it,
    and the attempt totals follow the grade.
    """
    print("\n[TEST] Free text grading flow")
    correct, _ = option_ids
    student = user_factory()
    proctor = user_factory(role=RoleEnum.PROCTOR)
    student_headers = auth_headers(student)
    proctor_headers = auth_headers(proctor)

    choice = question_factory(marks=2)
    essay = question_factory(question_type=QuestionTypeEnum.FREE_TEXT, marks=5, negative_marks=1)
    exam = exam_factory([choice, essay], students=[student], passing_marks=5)

    print("[1] Student submits an essay")
    attempt_id = submitted_attempt(client, student_headers, exam, [
        {"question_id": choice.id, "selected_option": correct(choice)},
        {"question_id": essay.id, "selected_option": "Photosynthesis converts light into chemical energy."},
    ])

    r_attempt = client.get(f"/attempts/{attempt_id}", headers=student_headers)
    attempt = r_attempt.json()["data"]
    assert attempt["status"] == "submitted"
    assert attempt["obtained_marks"] == 2
    assert attempt["is_passed"] is False
    assert attempt["wrong_answers"] == 1

    print("[2] Attempt shows up in the grading queue")
    r_pending = client.get("/grading/pending", headers=proctor_headers)
    assert r_pending.status_code == 200, r_pending.text
    pending = r_pending.json()["data"]["items"]
    item = next(p for p in pending if p["attempt_id"] == attempt_id)
    assert item["exam_title"] == exam.title
    assert [a["question_id"] for a in item["pending_answers"]] == [essay.id]
    essay_answer_id = item["pending_answers"][0]["answer_id"]

    print("[3] Out of range marks are rejected")
    too_high = client.put(
        f"/grading/attempts/{attempt_id}/answers/{essay_answer_id}",
        headers=proctor_headers,
        json={"marks_obtained": 6, "is_correct": True},
    )
    assert too_high.status_code == 422
    assert too_high.json()["error"]["code"] == "VALIDATION_ERROR"

    too_low = client.put(
        f"/grading/attempts/{attempt_id}/answers/{essay_answer_id}",
        headers=proctor_headers,
        json={"marks_obtained": -2, "is_correct": False},
    )
    assert too_low.status_code == 422

    print("[4] Grading the essay")
    r_grade = client.put(
        f"/grading/attempts/{attempt_id}/answers/{essay_answer_id}",
        headers=proctor_headers,
        json={"marks_obtained": 4, "is_correct": True, "feedback": "Good explanation"},
    )
    assert r_grade.status_code == 200, r_grade.text
    graded = r_grade.json()["data"]
    assert graded["status"] == "evaluated"
    assert graded["obtained_marks"] == 6
    assert graded["percentage"] == round(6 / 7 * 100, 2)
    assert graded["is_passed"] is True
    assert graded["correct_answers"] == 2
    assert graded["reviewed_by_id"] == proctor.id
    essay_answer = next(a for a in graded["answers"] if a["id"] == essay_answer_id)
    assert essay_answer["feedback"] == "Good explanation"

    r_pending = client.get("/grading/pending", headers=proctor_headers)
    assert all(p["attempt_id"] != attempt_id for p in r_pending.json()["data"]["items"])
    print("[OK] Attempt evaluated and removed from the queue")


def test_partial_grading_keeps_attempt_in_queue(client: TestClient, user_factory, auth_headers, question_factory,
                                                exam_factory):
    """
    Grading one of two essays updates the totals but the attempt stays
    submitted and pending until the second essay is marked.
    """
    print("\n[TEST] Partial grading")
    student = user_factory()
    proctor = user_factory(role=RoleEnum.PROCTOR)
    student_headers = auth_headers(student)
    proctor_headers = auth_headers(proctor)
    first = question_factory(question_type=QuestionTypeEnum.FREE_TEXT, marks=4)
    second = question_factory(question_type=QuestionTypeEnum.FREE_TEXT, marks=4)
    exam = exam_factory([first, second], students=[student], passing_marks=5)

    attempt_id = submitted_attempt(client, student_headers, exam, [
        {"question_id": first.id, "selected_option": "First essay"},
        {"question_id": second.id, "selected_option": "Second essay"},
    ])
    first_id = answer_id_for(client, student_headers, attempt_id, first.id)
    second_id = answer_id_for(client, student_headers, attempt_id, second.id)

    print("[1] Grading the first essay only")
    r_first = client.put(
        f"/grading/attempts/{attempt_id}/answers/{first_id}",
        headers=proctor_headers,
        json={"marks_obtained": 3, "is_correct": True},
    )
    assert r_first.status_code == 200, r_first.text
    partial = r_first.json()["data"]
    assert partial["status"] == "submitted"
    assert partial["obtained_marks"] == 3
    assert partial["is_passed"] is False

    pending = client.get("/grading/pending", headers=proctor_headers).json()["data"]["items"]
    item = next(p for p in pending if p["attempt_id"] == attempt_id)
    assert [a["answer_id"] for a in item["pending_answers"]] == [second_id]

    print("[2] Grading the second essay evaluates the attempt")
    r_second = client.put(
        f"/grading/attempts/{attempt_id}/answers/{second_id}",
        headers=proctor_headers,
        json={"marks_obtained": 2.5, "is_correct": True},
    )
    assert r_second.status_code == 200, r_second.text
    done = r_second.json()["data"]
    assert done["status"] == "evaluated"
    assert done["obtained_marks"] == 5.5
    assert done["is_passed"] is True

    pending = client.get("/grading/pending", headers=proctor_headers).json()["data"]["items"]
    assert all(p["attempt_id"] != attempt_id for p in pending)
    print("[OK] Attempt left the queue once fully graded")


def test_rejected_grade_leaves_attempt_unchanged(client: TestClient, user_factory, auth_headers, question_factory,
                                                 exam_factory, option_ids):
    correct, _ = option_ids
    student = user_factory()
    proctor = user_factory(role=RoleEnum.PROCTOR)
    student_headers = auth_headers(student)
    choice = question_factory(marks=2)
    essay = question_factory(question_type=QuestionTypeEnum.FREE_TEXT, marks=5)
    exam = exam_factory([choice, essay], students=[student])

    attempt_id = submitted_attempt(client, student_headers, exam, [
        {"question_id": choice.id, "selected_option": correct(choice)},
        {"question_id": essay.id, "selected_option": "An essay"},
    ])
    before = client.get(f"/attempts/{attempt_id}", headers=student_headers).json()["data"]
    essay_id = next(a["id"] for a in before["answers"] if a["question_id"] == essay.id)

    r = client.put(
        f"/grading/attempts/{attempt_id}/answers/{essay_id}",
        headers=auth_headers(proctor),
        json={"marks_obtained": 7, "is_correct": True, "feedback": "Too generous"},
    )
    assert r.status_code == 422
    assert r.json()["error"]["details"]["max_marks"] == 5

    after = client.get(f"/attempts/{attempt_id}", headers=student_headers).json()["data"]
    for field in ("status", "obtained_marks", "percentage", "is_passed", "correct_answers", "wrong_answers"):
        assert after[field] == before[field], field
    assert after["status"] == "submitted"
    assert after["obtained_marks"] == 2
    assert after["reviewed_by_id"] is None
    essay_after = next(a for a in after["answers"] if a["id"] == essay_id)
    assert essay_after["marks_obtained"] == 0
    assert essay_after["is_correct"] is False
    assert essay_after["feedback"] is None


def test_grading_zero_marks_still_evaluates(client: TestClient, user_factory, auth_headers, question_factory,
                                            exam_factory):
    student = user_factory()
    admin = user_factory(role=RoleEnum.ADMIN)
    essay = question_factory(question_type=QuestionTypeEnum.FREE_TEXT, marks=5)
    exam = exam_factory([essay], students=[student])
    student_headers = auth_headers(student)

    attempt_id = submitted_attempt(client, student_headers, exam, [{"question_id": essay.id, "selected_option": "Off topic"}])
    answer_id = answer_id_for(client, student_headers, attempt_id, essay.id)

    r_grade = client.put(
        f"/grading/attempts/{attempt_id}/answers/{answer_id}",
        headers=auth_headers(admin),
        json={"marks_obtained": 0, "is_correct": False},
    )
    assert r_grade.status_code == 200, r_grade.text
    assert r_grade.json()["data"]["status"] == "evaluated"
    assert r_grade.json()["data"]["obtained_marks"] == 0


def test_negative_grade_is_floored_in_totals(client: TestClient, user_factory, auth_headers, question_factory,
                                             exam_factory):
    student = user_factory()
    proctor = user_factory(role=RoleEnum.PROCTOR)
    essay = question_factory(question_type=QuestionTypeEnum.FREE_TEXT, marks=5, negative_marks=2)
    exam = exam_factory([essay], students=[student])
    student_headers = auth_headers(student)

    attempt_id = submitted_attempt(client, student_headers, exam, [{"question_id": essay.id, "selected_option": "Wrong"}])
    answer_id = answer_id_for(client, student_headers, attempt_id, essay.id)

    r_grade = client.put(
        f"/grading/attempts/{attempt_id}/answers/{answer_id}",
        headers=auth_headers(proctor),
        json={"marks_obtained": -2, "is_correct": False},
    )
    assert r_grade.status_code == 200, r_grade.text
    data = r_grade.json()["data"]
    assert data["obtained_marks"] == 0
    assert data["answers"][0]["marks_obtained"] == -2


def test_bulk_grade(client: TestClient, user_factory, auth_headers, question_factory, exam_factory):
    print("\n[TEST] Bulk grading")
    student = user_factory()
    proctor = user_factory(role=RoleEnum.PROCTOR)
    student_headers = auth_headers(student)
    proctor_headers = auth_headers(proctor)
    first = question_factory(question_type=QuestionTypeEnum.FREE_TEXT, marks=3)
    second = question_factory(question_type=QuestionTypeEnum.FREE_TEXT, marks=3)
    exam = exam_factory([first, second], students=[student], passing_marks=4)

    attempt_id = submitted_attempt(client, student_headers, exam, [
        {"question_id": first.id, "selected_option": "Answer one"},
        {"question_id": second.id, "selected_option": "Answer two"},
    ])
    first_id = answer_id_for(client, student_headers, attempt_id, first.id)
    second_id = answer_id_for(client, student_headers, attempt_id, second.id)

    print("[1] One invalid entry rejects the whole batch")
    r_invalid = client.post(
        f"/grading/attempts/{attempt_id}",
        headers=proctor_headers,
        json={"grades": [
            {"answer_id": first_id, "marks_obtained": 3, "is_correct": True},
            {"answer_id": second_id, "marks_obtained": 10, "is_correct": True},
        ]},
    )
    assert r_invalid.status_code == 422
    unchanged = client.get(f"/attempts/{attempt_id}", headers=student_headers).json()["data"]
    assert unchanged["status"] == "submitted"
    assert unchanged["obtained_marks"] == 0

    print("[2] Grading both answers at once")
    r_bulk = client.post(
        f"/grading/attempts/{attempt_id}",
        headers=proctor_headers,
        json={
            "grades": [
                {"answer_id": first_id, "marks_obtained": 3, "is_correct": True},
                {"answer_id": second_id, "marks_obtained": 1.5, "is_correct": False},
            ],
            "feedback": "Solid first answer",
        },
    )
    assert r_bulk.status_code == 200, r_bulk.text
    data = r_bulk.json()["data"]
    assert data["status"] == "evaluated"
    assert data["obtained_marks"] == 4.5
    assert data["is_passed"] is True
    assert data["feedback"] == "Solid first answer"
    print("[OK] Bulk grade applied")


def test_cannot_grade_in_progress_attempt(client: TestClient, user_factory, auth_headers, question_factory,
                                          exam_factory):
    student = user_factory()
    proctor = user_factory(role=RoleEnum.PROCTOR)
    essay = question_factory(question_type=QuestionTypeEnum.FREE_TEXT, marks=2)
    exam = exam_factory([essay], students=[student])
    student_headers = auth_headers(student)

    attempt_id = client.post(f"/exams/{exam.id}/attempts", headers=student_headers).json()["data"]["attempt_id"]
    answer_id = answer_id_for(client, student_headers, attempt_id, essay.id)

    r = client.put(
        f"/grading/attempts/{attempt_id}/answers/{answer_id}",
        headers=auth_headers(proctor),
        json={"marks_obtained": 1, "is_correct": True},
    )
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_STATE"


def test_students_cannot_grade(client: TestClient, user_factory, auth_headers, question_factory, exam_factory):
    student = user_factory()
    essay = question_factory(question_type=QuestionTypeEnum.FREE_TEXT, marks=2)
    exam = exam_factory([essay], students=[student])
    headers = auth_headers(student)

    attempt_id = submitted_attempt(client, headers, exam, [{"question_id": essay.id, "selected_option": "Mine"}])
    answer_id = answer_id_for(client, headers, attempt_id, essay.id)

    r = client.put(
        f"/grading/attempts/{attempt_id}/answers/{answer_id}",
        headers=headers,
        json={"marks_obtained": 2, "is_correct": True},
    )
    assert r.status_code == 403
    assert client.get("/grading/pending", headers=headers).status_code == 403


def test_unknown_answer_is_not_found(client: TestClient, user_factory, auth_headers, question_factory, exam_factory):
    student = user_factory()
    proctor = user_factory(role=RoleEnum.PROCTOR)
    exam = exam_factory([question_factory()], students=[student])
    attempt_id = submitted_attempt(client, auth_headers(student), exam, [])

    r = client.put(
        f"/grading/attempts/{attempt_id}/answers/999999",
        headers=auth_headers(proctor),
        json={"marks_obtained": 0, "is_correct": False},
    )
    assert r.status_code == 404
