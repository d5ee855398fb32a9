from fastapi.testclient import TestClient

from app.core.constants import RoleEnum, TAB_SWITCH_TERMINATION_REASON
from app.crud.exam_attempt import exam_attempt as crud_exam_attempt


def log_event(client, headers, attempt_id, event_type, severity="medium", description=None):
    payload = {"attempt_id": attempt_id, "event_type": event_type, "severity": severity}
    if description:
        payload["description"] = description
    return client.post("/proctoring/events", headers=headers, json=payload)


def test_tab_switch_limit_terminates_attempt(client: TestClient, user_factory, auth_headers,
                                             question_factory, exam_factory):
    """
    Switching tabs more often than the exam allows flags the attempt and
    blocks any later submit.
    """
    print("\n[TEST] Tab switch limit enforcement")
    student = user_factory()
    proctor = user_factory(role=RoleEnum.PROCTOR)
    headers = auth_headers(student)
    proctor_headers = auth_headers(proctor)
    exam = exam_factory([question_factory()], students=[student], is_proctored=True, tab_switch_limit=2)

    attempt_id = client.post(f"/exams/{exam.id}/attempts", headers=headers).json()["data"]["attempt_id"]

    print("[1] Switches within the limit are only logged")
    for _ in range(2):
        r = log_event(client, headers, attempt_id, "tab_switch")
        assert r.status_code == 201, r.text
        assert r.json()["data"]["attempt_terminated"] is False

    print("[2] One switch too many terminates the attempt")
    r = log_event(client, headers, attempt_id, "tab_switch")
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    assert data["attempt_terminated"] is True
    assert data["log"]["event_type"] == "tab_switch"

    attempt = client.get(f"/attempts/{attempt_id}", headers=headers).json()["data"]
    assert attempt["status"] == "flagged"
    assert attempt["submitted_at"] is None
    flag_types = [flag["flag_type"] for flag in attempt["proctoring_flags"]]
    assert flag_types.count("tab_switch") == 3
    assert flag_types[-1] == "exam_terminated"
    assert attempt["proctoring_flags"][-1]["description"] == TAB_SWITCH_TERMINATION_REASON

    print("[3] Submitting afterwards is rejected")
    r_submit = client.post(f"/attempts/{attempt_id}/submit", headers=headers, json={"answers": []})
    assert r_submit.status_code == 400
    assert r_submit.json()["error"]["code"] == "INVALID_STATE"

    print("[4] Events are still recorded on the flagged attempt")
    r_late = log_event(client, headers, attempt_id, "tab_switch")
    assert r_late.status_code == 201
    assert r_late.json()["data"]["attempt_terminated"] is False

    r_logs = client.get(f"/proctoring/exams/{exam.id}/students/{student.id}/logs", headers=proctor_headers)
    assert r_logs.status_code == 200
    event_types = [log["event_type"] for log in r_logs.json()["data"]]
    assert "exam_started" in event_types
    assert "exam_terminated" in event_types
    assert event_types.count("tab_switch") == 4
    print("[OK] Attempt terminated and logged")


def test_tab_switches_are_not_enforced_on_unproctored_exams(client: TestClient, user_factory, auth_headers,
                                                            question_factory, exam_factory):
    student = user_factory()
    headers = auth_headers(student)
    exam = exam_factory([question_factory()], students=[student], is_proctored=False, tab_switch_limit=0)
    attempt_id = client.post(f"/exams/{exam.id}/attempts", headers=headers).json()["data"]["attempt_id"]

    r = log_event(client, headers, attempt_id, "tab_switch")
    assert r.status_code == 201
    assert r.json()["data"]["attempt_terminated"] is False
    assert client.get(f"/attempts/{attempt_id}", headers=headers).json()["data"]["status"] == "in_progress"


def test_proctor_terminates_and_reviews(client: TestClient, user_factory, auth_headers,
                                        question_factory, exam_factory):
    print("\n[TEST] Manual termination and review")
    student = user_factory()
    proctor = user_factory(role=RoleEnum.PROCTOR)
    headers = auth_headers(student)
    proctor_headers = auth_headers(proctor)
    exam = exam_factory([question_factory()], students=[student], is_proctored=True)
    attempt_id = client.post(f"/exams/{exam.id}/attempts", headers=headers).json()["data"]["attempt_id"]

    print("[1] Active sessions list the running attempt")
    r_active = client.get("/proctoring/active-sessions", headers=proctor_headers, params={"exam_id": exam.id})
    assert r_active.status_code == 200, r_active.text
    sessions = r_active.json()["data"]
    assert [s["attempt"]["id"] for s in sessions] == [attempt_id]
    assert sessions[0]["student"]["id"] == student.id

    print("[2] Students cannot terminate")
    r_forbidden = client.post(
        f"/proctoring/attempts/{attempt_id}/terminate", headers=headers, json={"reason": "Self"}
    )
    assert r_forbidden.status_code == 403

    print("[3] Proctor terminates")
    r_terminate = client.post(
        f"/proctoring/attempts/{attempt_id}/terminate",
        headers=proctor_headers,
        json={"reason": "Second person in the room"},
    )
    assert r_terminate.status_code == 200, r_terminate.text
    terminated = r_terminate.json()["data"]
    assert terminated["status"] == "flagged"
    assert terminated["proctoring_flags"][-1]["description"] == "Second person in the room"

    r_again = client.post(
        f"/proctoring/attempts/{attempt_id}/terminate", headers=proctor_headers, json={"reason": "Again"}
    )
    assert r_again.status_code == 400
    assert r_again.json()["error"]["code"] == "INVALID_STATE"

    print("[4] Flagged attempts list includes it")
    r_flagged = client.get("/proctoring/flagged", headers=proctor_headers, params={"exam_id": exam.id})
    flagged = r_flagged.json()["data"]["items"]
    assert [f["id"] for f in flagged] == [attempt_id]
    assert flagged[0]["flag_count"] == 1

    print("[5] Feedback on the flagged attempt")
    r_feedback = client.post(
        f"/attempts/{attempt_id}/feedback", headers=proctor_headers, json={"feedback": "Reported to the exam board"}
    )
    assert r_feedback.status_code == 200, r_feedback.text
    assert r_feedback.json()["data"]["feedback"] == "Reported to the exam board"
    assert r_feedback.json()["data"]["reviewed_by_id"] == proctor.id

    print("[6] Reviewing the termination log")
    r_logs = client.get(
        "/proctoring/logs", headers=proctor_headers, params={"exam_id": exam.id, "event_type": "exam_terminated"}
    )
    logs = r_logs.json()["data"]["items"]
    assert len(logs) == 1
    assert logs[0]["severity"] == "critical"

    r_review = client.put(
        f"/proctoring/logs/{logs[0]['id']}/review", headers=proctor_headers, json={"review_notes": "Confirmed"}
    )
    assert r_review.status_code == 200, r_review.text
    assert r_review.json()["data"]["is_reviewed"] is True
    assert r_review.json()["data"]["reviewed_by_id"] == proctor.id

    r_stats = client.get("/proctoring/stats", headers=proctor_headers, params={"exam_id": exam.id})
    stats = r_stats.json()["data"]
    assert stats["total_logs"] == 2
    assert stats["reviewed"] == 1
    assert stats["pending_review"] == 1
    assert stats["by_event_type"] == {"exam_started": 1, "exam_terminated": 1}
    print("[OK] Termination reviewed")


def test_feedback_requires_a_finished_attempt(client: TestClient, user_factory, auth_headers,
                                              question_factory, exam_factory):
    student = user_factory()
    proctor = user_factory(role=RoleEnum.PROCTOR)
    exam = exam_factory([question_factory()], students=[student])
    attempt_id = client.post(f"/exams/{exam.id}/attempts", headers=auth_headers(student)).json()["data"]["attempt_id"]

    r = client.post(f"/attempts/{attempt_id}/feedback", headers=auth_headers(proctor), json={"feedback": "Too early"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_STATE"


def test_students_cannot_log_events_on_other_attempts(client: TestClient, user_factory, auth_headers,
                                                      question_factory, exam_factory):
    owner, other = user_factory(), user_factory()
    exam = exam_factory([question_factory()], students=[owner, other], is_proctored=True)
    attempt_id = client.post(f"/exams/{exam.id}/attempts", headers=auth_headers(owner)).json()["data"]["attempt_id"]

    r = log_event(client, auth_headers(other), attempt_id, "tab_switch")
    assert r.status_code == 403


def test_event_needs_an_exam_or_attempt(client: TestClient, user_factory, auth_headers):
    r = client.post(
        "/proctoring/events", headers=auth_headers(user_factory()), json={"event_type": "window_blur"}
    )
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


def test_exam_level_event_is_logged_for_the_caller(client: TestClient, user_factory, auth_headers,
                                                   question_factory, exam_factory):
    student = user_factory()
    exam = exam_factory([question_factory()], students=[student], is_proctored=True)

    r = client.post(
        "/proctoring/events",
        headers=auth_headers(student),
        json={"exam_id": exam.id, "event_type": "identity_mismatch", "severity": "high"},
    )
    assert r.status_code == 201, r.text
    log = r.json()["data"]["log"]
    assert log["student_id"] == student.id
    assert log["attempt_id"] is None


def test_logging_events_leaves_the_attempt_version_alone(client: TestClient, db_session, user_factory, auth_headers,
                                                         question_factory, exam_factory, option_ids):
    correct, _ = option_ids
    student = user_factory()
    headers = auth_headers(student)
    question = question_factory()
    exam = exam_factory([question], students=[student], is_proctored=True, tab_switch_limit=5)
    attempt_id = client.post(f"/exams/{exam.id}/attempts", headers=headers).json()["data"]["attempt_id"]

    attempt = crud_exam_attempt.get(db_session, id=attempt_id)
    version = attempt.version

    for event_type in ("window_blur", "tab_switch", "copy_paste"):
        assert log_event(client, headers, attempt_id, event_type).status_code == 201

    db_session.expire_all()
    attempt = crud_exam_attempt.get(db_session, id=attempt_id)
    assert attempt.version == version
    assert len(attempt.proctoring_flags) == 3

    r_save = client.put(
        f"/attempts/{attempt_id}/answers",
        headers=headers,
        json={"question_id": question.id, "selected_option": correct(question)},
    )
    assert r_save.status_code == 200, r_save.text
    assert r_save.json()["data"]["saved"] is True
