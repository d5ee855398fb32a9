from fastapi.testclient import TestClient

from app.core.constants import RoleEnum


def start(client, exam_id, headers):
    return client.post(f"/exams/{exam_id}/attempts", headers=headers)


def test_multiple_attempts_up_to_the_limit(client: TestClient, user_factory, auth_headers,
                                           question_factory, exam_factory, option_ids):
    """
    A two-attempt exam numbers attempts in order and refuses a third start.
    """
    print("\n[TEST] Attempts are capped by max_attempts")
    correct, wrong = option_ids
    student = user_factory()
    headers = auth_headers(student)
    question = question_factory(marks=2)
    exam = exam_factory([question], students=[student], max_attempts=2)

    print("[1] First attempt")
    r_first = start(client, exam.id, headers)
    assert r_first.status_code == 201, r_first.text
    first_id = r_first.json()["data"]["attempt_id"]
    r_submit = client.post(
        f"/attempts/{first_id}/submit",
        headers=headers,
        json={"answers": [{"question_id": question.id, "selected_option": wrong(question)}]},
    )
    assert r_submit.status_code == 200, r_submit.text

    print("[2] Second attempt")
    r_second = start(client, exam.id, headers)
    assert r_second.status_code == 201, r_second.text
    second = r_second.json()["data"]
    assert second["attempt_number"] == 2
    assert second["attempt_id"] != first_id
    assert all(q["selected_option"] is None for q in second["questions"])
    r_submit = client.post(
        f"/attempts/{second['attempt_id']}/submit",
        headers=headers,
        json={"answers": [{"question_id": question.id, "selected_option": correct(question)}]},
    )
    assert r_submit.json()["data"]["result"]["obtained_marks"] == 2

    print("[3] Third start is refused")
    r_third = start(client, exam.id, headers)
    assert r_third.status_code == 400
    error = r_third.json()["error"]
    assert error["code"] == "ALREADY_COMPLETED"
    assert error["details"]["attempt_id"] == second["attempt_id"]

    r_mine = client.get("/attempts/me", headers=headers)
    numbers = sorted(a["attempt_number"] for a in r_mine.json()["data"]["items"])
    assert numbers == [1, 2]
    print("[OK] Two attempts recorded")


def test_terminated_attempt_uses_up_the_limit(client: TestClient, user_factory, auth_headers,
                                              question_factory, exam_factory):
    print("\n[TEST] A terminated attempt still counts toward the limit")
    student = user_factory()
    proctor = user_factory(role=RoleEnum.PROCTOR)
    headers = auth_headers(student)
    exam = exam_factory([question_factory()], students=[student], is_proctored=True)

    attempt_id = start(client, exam.id, headers).json()["data"]["attempt_id"]
    r_terminate = client.post(
        f"/proctoring/attempts/{attempt_id}/terminate",
        headers=auth_headers(proctor),
        json={"reason": "Left the room"},
    )
    assert r_terminate.status_code == 200, r_terminate.text

    r_restart = start(client, exam.id, headers)
    assert r_restart.status_code == 403
    assert r_restart.json()["error"]["code"] == "LIMIT_REACHED"
    print("[OK] Restart refused with LIMIT_REACHED")


def test_in_progress_attempt_is_resumed_even_at_the_limit(client: TestClient, user_factory, auth_headers,
                                                          question_factory, exam_factory):
    student = user_factory()
    headers = auth_headers(student)
    exam = exam_factory([question_factory()], students=[student], max_attempts=1)

    first = start(client, exam.id, headers)
    again = start(client, exam.id, headers)
    assert first.status_code == 201
    assert again.status_code == 200
    assert again.json()["data"]["attempt_id"] == first.json()["data"]["attempt_id"]
