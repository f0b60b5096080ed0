from conftest import NOW, auth_header


def create_quiz(api, headers, **overrides):
    body = {"title": "Weekly quiz", "total_points": 100, "passing_points": 60}
    body.update(overrides)
    r = api.post("/v1/assessments", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_health(api):
    r = api.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_mock_login_and_role_guard(api):
    r = api.post("/v1/auth/mock-login", json={"user_id": "p1", "roles": ["parent"]})
    assert r.status_code == 200
    hdr = {"Authorization": f"Bearer {r.json()['access_token']}"}
    assert api.get("/v1/assessments", headers=hdr).status_code == 403
    assert api.get("/v1/assessments", headers={"Authorization": "Bearer nonsense"}).status_code == 401


def test_assessment_lifecycle_over_http(api, teacher_headers):
    a = create_quiz(api, teacher_headers)
    assert a["status"] == "draft"
    assert a["time_limit_display"] == "No time limit"

    r = api.post(f"/v1/assessments/{a['id']}/publish", headers=teacher_headers)
    assert r.status_code == 200 and r.json()["status"] == "published"
    r = api.post(f"/v1/assessments/{a['id']}/publish", headers=teacher_headers)
    assert r.status_code == 200

    r = api.post(f"/v1/assessments/{a['id']}/archive", headers=teacher_headers)
    assert r.json()["status"] == "archived"
    r = api.post(f"/v1/assessments/{a['id']}/publish", headers=teacher_headers)
    assert r.status_code == 409
    assert r.json()["error"]["type"] == "invalid_state_transition"

    r = api.post(f"/v1/assessments/{a['id']}/restore", headers=teacher_headers)
    assert r.json()["status"] == "published"


def test_domain_errors_map_to_http(api, teacher_headers):
    r = api.post("/v1/assessments", json={"title": "Bad", "total_points": 10, "passing_points": 20},
                 headers=teacher_headers)
    assert r.status_code == 422
    assert r.json()["error"]["type"] == "validation_error"

    r = api.get("/v1/assessments/999", headers=teacher_headers)
    assert r.status_code == 404
    assert r.json()["error"]["type"] == "not_found"


def test_other_teachers_cannot_see_assessment(api, teacher_headers):
    a = create_quiz(api, teacher_headers)
    other = auth_header("teacher-2", ["teacher"])
    assert api.get(f"/v1/assessments/{a['id']}", headers=other).status_code == 404
    admin = auth_header("root", ["admin"])
    assert api.get(f"/v1/assessments/{a['id']}", headers=admin).status_code == 200


def test_questions_and_duplicate(api, teacher_headers):
    a = create_quiz(api, teacher_headers)
    ids = []
    for text in ("First", "Second"):
        r = api.post(f"/v1/assessments/{a['id']}/questions", headers=teacher_headers,
                     json={"question": text, "type": "true_false", "correct_answer": True, "points": 50})
        assert r.status_code == 201, r.text
        assert r.json()["auto_gradable"] is True
        ids.append(r.json()["id"])

    r = api.put(f"/v1/assessments/{a['id']}/questions/order", headers=teacher_headers,
                json={"question_ids": list(reversed(ids))})
    assert [q["question"] for q in r.json()] == ["Second", "First"]

    r = api.put(f"/v1/assessments/{a['id']}/questions/order", headers=teacher_headers, json={"question_ids": ids[:1]})
    assert r.status_code == 422

    r = api.post(f"/v1/assessments/{a['id']}/duplicate", headers=teacher_headers)
    assert r.status_code == 201
    copy = r.json()
    assert copy["title"] == "Copy of Weekly quiz" and copy["status"] == "draft" and copy["question_count"] == 2

    r = api.get("/v1/questions/bank", params={"search": "first"}, headers=teacher_headers)
    assert r.json()["total"] == 2


def test_true_false_scenario_over_http(api, teacher_headers, parent_headers, child):
    a = create_quiz(api, teacher_headers)
    qids = []
    for text, correct in (("Sky is blue", True), ("Fire is cold", False)):
        r = api.post(f"/v1/assessments/{a['id']}/questions", headers=teacher_headers,
                     json={"question": text, "type": "true_false", "correct_answer": correct, "points": 50})
        qids.append(r.json()["id"])
    api.post(f"/v1/assessments/{a['id']}/publish", headers=teacher_headers)

    r = api.post(f"/v1/assessments/{a['id']}/participants", headers=teacher_headers,
                 json={"kind": "child", "id": child.id})
    assert r.status_code == 201
    sid = r.json()["id"]
    r = api.post(f"/v1/assessments/{a['id']}/participants", headers=teacher_headers,
                 json={"kind": "child", "id": child.id})
    assert r.status_code == 409 and r.json()["error"]["type"] == "conflict"

    r = api.put(f"/v1/submissions/{sid}/answers", headers=parent_headers, json={"question_id": qids[0], "answer": "yes"})
    assert r.status_code == 422
    for qid, answer in zip(qids, (True, False)):
        r = api.put(f"/v1/submissions/{sid}/answers", headers=parent_headers, json={"question_id": qid, "answer": answer})
        assert r.status_code == 200, r.text
    r = api.post(f"/v1/submissions/{sid}/submit", headers=parent_headers)
    body = r.json()
    assert body["status"] == "graded" and body["score"] == 100 and body["late"] is False

    r = api.get(f"/v1/assessments/{a['id']}/analytics", headers=teacher_headers)
    assert r.status_code == 200
    analytics = r.json()
    assert analytics["passing_rate"] == 100.0
    assert analytics["ranking"][0]["name"] == "Amina Yusuf"

    r = api.get("/v1/reports/teacher", headers=teacher_headers)
    assert r.json()["stats"]["total_submissions"] == 1


def test_manual_grading_over_http(api, teacher_headers, parent_headers, child):
    a = create_quiz(api, teacher_headers)
    r = api.post(f"/v1/assessments/{a['id']}/questions", headers=teacher_headers,
                 json={"question": "Explain gravity", "type": "essay", "points": 100})
    qid = r.json()["id"]
    sid = api.post(f"/v1/assessments/{a['id']}/participants", headers=teacher_headers,
                   json={"kind": "child", "id": child.id}).json()["id"]
    api.put(f"/v1/submissions/{sid}/answers", headers=parent_headers, json={"question_id": qid, "answer": "Mass attracts"})
    assert api.post(f"/v1/submissions/{sid}/submit", headers=parent_headers).json()["status"] == "completed"

    assert api.post(f"/v1/submissions/{sid}/grade", headers=parent_headers,
                    json={"manual_scores": {str(qid): 80}}).status_code == 403
    r = api.post(f"/v1/submissions/{sid}/grade", headers=teacher_headers,
                 json={"manual_scores": {str(qid): 80}, "feedback": {str(qid): "Clear"}})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["score"] == 80 and body["graded_by"] == "teacher-1"
    assert body["graded_at"].startswith(NOW.isoformat()[:16])

    r = api.post(f"/v1/submissions/{sid}/grade", headers=teacher_headers, json={"manual_scores": {}})
    assert r.status_code == 409


def test_list_assessments_by_status(api, teacher_headers):
    create_quiz(api, teacher_headers, title="Draft one")
    live = create_quiz(api, teacher_headers, title="Live one")
    api.post(f"/v1/assessments/{live['id']}/publish", headers=teacher_headers)
    r = api.get("/v1/assessments", params={"status": "published"}, headers=teacher_headers)
    assert r.status_code == 200
    assert [a["title"] for a in r.json()["items"]] == ["Live one"]


def test_strangers_cannot_touch_someone_elses_submission(api, teacher_headers, parent_headers, child):
    a = create_quiz(api, teacher_headers)
    qid = api.post(f"/v1/assessments/{a['id']}/questions", headers=teacher_headers,
                   json={"question": "Sky is blue", "type": "true_false", "correct_answer": True, "points": 100}).json()["id"]
    sid = api.post(f"/v1/assessments/{a['id']}/participants", headers=teacher_headers,
                   json={"kind": "child", "id": child.id}).json()["id"]

    stranger = auth_header("some-other-client", ["client"])
    r = api.put(f"/v1/submissions/{sid}/answers", headers=stranger, json={"question_id": qid, "answer": True})
    assert r.status_code == 404 and r.json()["error"]["type"] == "not_found"
    assert api.get(f"/v1/submissions/{sid}", headers=stranger).status_code == 404
    assert api.get(f"/v1/submissions/{sid}", headers=auth_header("teacher-2", ["teacher"])).status_code == 404

    api.put(f"/v1/submissions/{sid}/answers", headers=parent_headers, json={"question_id": qid, "answer": True})
    assert api.post(f"/v1/submissions/{sid}/submit", headers=stranger).status_code == 404
    assert api.get(f"/v1/submissions/{sid}", headers=parent_headers).json()["status"] == "in_progress"
    assert api.get(f"/v1/submissions/{sid}", headers=teacher_headers).status_code == 200

    r = api.post(f"/v1/submissions/{sid}/submit", headers=parent_headers)
    assert r.status_code == 200 and r.json()["score"] == 100


def test_participant_submission_history(api, teacher_headers, parent_headers, child, client_profile):
    quiz = create_quiz(api, teacher_headers, title="Quiz")
    exam = create_quiz(api, teacher_headers, title="Exam", type="exam")
    for a in (quiz, exam):
        api.post(f"/v1/assessments/{a['id']}/participants", headers=teacher_headers,
                 json={"kind": "child", "id": child.id})

    r = api.get(f"/v1/participants/child/{child.id}/submissions", headers=parent_headers)
    assert r.status_code == 200
    assert [row["assessment_title"] for row in r.json()] == ["Exam", "Quiz"]

    r = api.get(f"/v1/participants/child/{child.id}/submissions", params={"type": "exam", "status": "not_started"},
                headers=parent_headers)
    assert [(row["assessment_title"], row["assessment_type"]) for row in r.json()] == [("Exam", "exam")]

    client_headers = auth_header("client-user-1", ["client"])
    assert api.get(f"/v1/participants/child/{child.id}/submissions", headers=client_headers).status_code == 404
    assert api.get(f"/v1/participants/client/{client_profile.id}/submissions", headers=client_headers).json() == []
    admin = auth_header("root", ["admin"])
    assert len(api.get(f"/v1/participants/child/{child.id}/submissions", headers=admin).json()) == 2


def test_grade_rejects_nan_over_http(api, teacher_headers, parent_headers, child):
    a = create_quiz(api, teacher_headers)
    qid = api.post(f"/v1/assessments/{a['id']}/questions", headers=teacher_headers,
                   json={"question": "Explain tides", "type": "essay", "points": 100}).json()["id"]
    sid = api.post(f"/v1/assessments/{a['id']}/participants", headers=teacher_headers,
                   json={"kind": "child", "id": child.id}).json()["id"]
    api.put(f"/v1/submissions/{sid}/answers", headers=parent_headers, json={"question_id": qid, "answer": "The moon"})
    api.post(f"/v1/submissions/{sid}/submit", headers=parent_headers)

    r = api.post(f"/v1/submissions/{sid}/grade", content='{"manual_scores": {"%d": NaN}}' % qid,
                 headers={**teacher_headers, "Content-Type": "application/json"})
    assert r.status_code == 422
    assert r.json()["error"]["type"] == "validation_error"
    r = api.post(f"/v1/submissions/{sid}/grade", headers=teacher_headers,
                 json={"manual_scores": {str(qid): 50}, "feedback": {"999999": "Stray"}})
    assert r.status_code == 422
    assert api.get(f"/v1/submissions/{sid}", headers=teacher_headers).json()["status"] == "completed"


def test_state_changes_invalidate_cached_analytics(api, teacher_headers, monkeypatch):
    from tutorhub.core import cache

    calls = []
    monkeypatch.setattr(cache, "invalidate_analytics", calls.append)
    a = create_quiz(api, teacher_headers)
    ids = [api.post(f"/v1/assessments/{a['id']}/questions", headers=teacher_headers,
                    json={"question": text, "type": "true_false", "correct_answer": True, "points": 50}).json()["id"]
           for text in ("First", "Second")]
    calls.clear()

    api.put(f"/v1/assessments/{a['id']}/questions/order", headers=teacher_headers,
            json={"question_ids": list(reversed(ids))})
    for action in ("publish", "unpublish", "archive", "restore"):
        assert api.post(f"/v1/assessments/{a['id']}/{action}", headers=teacher_headers).status_code == 200
    r = api.post(f"/v1/assessments/{a['id']}/schedule", headers=teacher_headers,
                 json={"start_date": "2026-03-01T09:00:00", "due_date": "2026-03-09T09:00:00"})
    assert r.status_code == 200, r.text
    assert calls == [a["id"]] * 6
