"""HTTP boundary tests: status codes and reason codes."""

from __future__ import annotations

from datetime import timedelta

from fastapi.testclient import TestClient

from ballotbox.utils.time import now_utc


def _definition_payload() -> dict:
    now = now_utc()
    return {
        "title": "Campus Referendum",
        "description": "Should the library stay open all night?",
        "type": "referendum",
        "start_date": (now - timedelta(hours=1)).isoformat(),
        "end_date": (now + timedelta(hours=1)).isoformat(),
        "candidates": [{"name": "Yes"}, {"name": "No"}],
    }


def _open_election(client: TestClient, headers: dict) -> dict:
    created = client.post("/elections", json=_definition_payload(), headers=headers)
    assert created.status_code == 201
    election_id = created.json()["election"]["id"]
    assert client.post(f"/elections/{election_id}/publish", headers=headers).status_code == 200
    started = client.post(f"/elections/{election_id}/start", headers=headers)
    assert started.status_code == 200
    return started.json()["election"]


def test_create_requires_admin(client: TestClient, make_user, auth_header) -> None:
    """Voters get 403 and anonymous callers 401."""
    voter = make_user()
    assert client.post("/elections", json=_definition_payload()).status_code == 401
    response = client.post("/elections", json=_definition_payload(), headers=auth_header(voter))
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_create_validation_errors(client: TestClient, admin, auth_header) -> None:
    """Bad definitions are 400 with a machine-readable code."""
    payload = _definition_payload()
    payload["end_date"] = payload["start_date"]
    response = client.post("/elections", json=payload, headers=auth_header(admin))
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"

    payload = _definition_payload()
    payload["candidates"] = [{"name": "Only"}]
    response = client.post("/elections", json=payload, headers=auth_header(admin))
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_vote_flow_and_duplicate(client: TestClient, admin, make_user, auth_header) -> None:
    """A second vote is a 409 conflict and the tally reflects one vote."""
    election = _open_election(client, auth_header(admin))
    voter = make_user()
    yes, no = election["candidates"]

    first = client.post(
        f"/elections/{election['id']}/vote",
        json={"candidate_id": yes["id"]},
        headers=auth_header(voter),
    )
    assert first.status_code == 200
    assert first.json()["election"]["has_voted"] is True

    second = client.post(
        f"/elections/{election['id']}/vote",
        json={"candidate_id": no["id"]},
        headers=auth_header(voter),
    )
    assert second.status_code == 409
    assert second.json()["code"] == "DUPLICATE_VOTE"

    results = client.get(f"/elections/{election['id']}/results").json()
    assert results["total_votes"] == 1
    assert [w["name"] for w in results["winners"]] == ["Yes"]

    detail = client.get(f"/elections/{election['id']}", headers=auth_header(voter)).json()
    assert detail["election"]["has_voted"] is True


def test_vote_error_codes(client: TestClient, admin, make_user, auth_header) -> None:
    """Each precondition maps to its status and reason code."""
    election = _open_election(client, auth_header(admin))

    missing = client.post(
        "/elections/missing/vote", json={"candidate_id": "x"}, headers=auth_header(make_user())
    )
    assert missing.status_code == 404

    unverified = client.post(
        f"/elections/{election['id']}/vote",
        json={"candidate_id": election["candidates"][0]["id"]},
        headers=auth_header(make_user(is_verified=False)),
    )
    assert unverified.status_code == 403
    assert unverified.json()["code"] == "INELIGIBLE_VOTER"

    bad_candidate = client.post(
        f"/elections/{election['id']}/vote",
        json={"candidate_id": "nope"},
        headers=auth_header(make_user()),
    )
    assert bad_candidate.status_code == 404
    assert bad_candidate.json()["code"] == "CANDIDATE_NOT_FOUND"

    client.post(f"/elections/{election['id']}/end", headers=auth_header(admin))
    closed = client.post(
        f"/elections/{election['id']}/vote",
        json={"candidate_id": election["candidates"][0]["id"]},
        headers=auth_header(make_user()),
    )
    assert closed.status_code == 400
    assert closed.json()["code"] == "ELECTION_NOT_OPEN"


def test_transition_conflicts(client: TestClient, admin, auth_header) -> None:
    """Illegal moves are 409 INVALID_TRANSITION; edits after start are 409."""
    headers = auth_header(admin)
    election = _open_election(client, headers)

    again = client.post(f"/elections/{election['id']}/start", headers=headers)
    assert again.status_code == 409
    assert again.json()["code"] == "INVALID_TRANSITION"

    edit = client.put(
        f"/elections/{election['id']}", json={"title": "New title here"}, headers=headers
    )
    assert edit.status_code == 409
    assert edit.json()["code"] == "IMMUTABLE_STATE"


def test_delete_guard(client: TestClient, admin, make_user, auth_header) -> None:
    """Elections with votes cannot be deleted; empty ones can."""
    headers = auth_header(admin)
    voted = _open_election(client, headers)
    client.post(
        f"/elections/{voted['id']}/vote",
        json={"candidate_id": voted["candidates"][0]["id"]},
        headers=auth_header(make_user()),
    )
    blocked = client.delete(f"/elections/{voted['id']}", headers=headers)
    assert blocked.status_code == 409
    assert blocked.json()["code"] == "HAS_VOTES"

    empty = _open_election(client, headers)
    assert client.delete(f"/elections/{empty['id']}", headers=headers).status_code == 204
    assert client.get(f"/elections/{empty['id']}").status_code == 404


def test_hidden_results(client: TestClient, admin, auth_header) -> None:
    """Hidden results are 403 until the election ends."""
    headers = auth_header(admin)
    payload = _definition_payload()
    payload["settings"] = {"show_results": False}
    election_id = client.post("/elections", json=payload, headers=headers).json()["election"]["id"]
    client.post(f"/elections/{election_id}/publish", headers=headers)
    client.post(f"/elections/{election_id}/start", headers=headers)

    response = client.get(f"/elections/{election_id}/results")
    assert response.status_code == 403
    assert response.json()["code"] == "RESULTS_UNAVAILABLE"


def test_voting_window_endpoints(client: TestClient, admin, auth_header) -> None:
    """Status defaults closed; upsert opens it; toggle closes it again."""
    headers = auth_header(admin)
    status = client.get("/voting-window/status").json()
    assert status["can_vote"] is False
    assert status["message"] == "No voting session configured"

    past = client.post(
        "/voting-window",
        json={"deadline": (now_utc() - timedelta(hours=1)).isoformat()},
        headers=headers,
    )
    assert past.status_code == 400
    assert past.json()["code"] == "PAST_DEADLINE"

    created = client.post(
        "/voting-window",
        json={"deadline": (now_utc() + timedelta(days=1)).isoformat()},
        headers=headers,
    )
    assert created.status_code == 200
    assert client.get("/voting-window/status").json()["can_vote"] is True

    toggled = client.put("/voting-window/toggle", headers=headers)
    assert toggled.json()["message"] == "Voting disabled successfully"
    assert client.get("/voting-window/status").json()["can_vote"] is False


def test_ballot_endpoints(client: TestClient, admin, make_user, auth_header) -> None:
    """Legacy ballot: admin adds candidates, a voter votes once."""
    headers = auth_header(admin)
    client.post(
        "/voting-window",
        json={"deadline": (now_utc() + timedelta(days=1)).isoformat()},
        headers=headers,
    )
    candidate = client.post(
        "/ballot/candidates", json={"name": "Zoe", "position": "President"}, headers=headers
    ).json()["candidate"]

    voter = make_user()
    vote = client.post(
        "/ballot/vote", json={"candidate_id": candidate["id"]}, headers=auth_header(voter)
    )
    assert vote.status_code == 200
    repeat = client.post(
        "/ballot/vote", json={"candidate_id": candidate["id"]}, headers=auth_header(voter)
    )
    assert repeat.status_code == 409

    results = client.get("/ballot/results").json()
    assert results["total_votes"] == 1
    assert results["results"][0]["percentage"] == 100


def test_session_returns_voter(client: TestClient, make_user, auth_header) -> None:
    """The session endpoint echoes the caller's record."""
    voter = make_user()
    response = client.get("/auth/session", headers=auth_header(voter))
    assert response.status_code == 200
    assert response.json()["email"] == voter["email"]
    assert client.post("/auth/signout", headers=auth_header(voter)).status_code == 404


def test_user_management_is_admin_only(client: TestClient, admin, make_user, auth_header) -> None:
    """Voters cannot reach /users; admins can list, edit and delete."""
    voter = make_user()
    assert client.get("/users", headers=auth_header(voter)).status_code == 403

    headers = auth_header(admin)
    listed = client.get("/users", params={"role": "voter"}, headers=headers)
    assert listed.status_code == 200
    assert [u["id"] for u in listed.json()["users"]] == [voter["id"]]

    updated = client.put(f"/users/{voter['id']}", json={"is_active": False}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["user"]["is_active"] is False
    assert client.get("/auth/session", headers=auth_header(voter)).status_code == 403

    assert client.delete(f"/users/{voter['id']}", headers=headers).status_code == 204
    assert client.get(f"/users/{voter['id']}", headers=headers).status_code == 404


def test_admin_cannot_remove_own_access(client: TestClient, admin, auth_header) -> None:
    """Self-demotion and self-deletion are refused."""
    headers = auth_header(admin)
    demote = client.put(f"/users/{admin['id']}", json={"role": "voter"}, headers=headers)
    assert demote.status_code == 403
    assert client.delete(f"/users/{admin['id']}", headers=headers).status_code == 403


def test_election_listing_shapes(client: TestClient, admin, auth_header) -> None:
    """Listings carry derived flags and pagination metadata."""
    election = _open_election(client, auth_header(admin))

    listing = client.get("/elections").json()
    assert [e["id"] for e in listing["elections"]] == [election["id"]]
    assert listing["elections"][0]["is_active"] is True
    assert listing["pagination"]["total_elections"] == 1
    assert listing["pagination"]["has_next_page"] is False

    board = client.get("/elections/active/upcoming").json()
    assert [e["id"] for e in board["active_elections"]] == [election["id"]]
    assert board["upcoming_elections"] == []

    window = client.get("/voting-window").json()
    assert window["window"] is None
