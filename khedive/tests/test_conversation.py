"""
대화 관리 API 테스트
"""


def _start(client, headers, message="테스트 대화") -> str:
    response = client.post("/api/chat", json={"message": message}, headers=headers)
    assert response.status_code == 200
    return response.json()["sessionId"]


def test_대화_목록_조회(client, auth_headers):
    first = _start(client, auth_headers, "첫번째")
    second = _start(client, auth_headers, "두번째")

    response = client.get("/api/conversations", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    # 최근 수정순
    assert [c["id"] for c in data] == [second, first]
    assert data[0]["title"] == "두번째"
    assert data[0]["messageCount"] == 2


def test_대화_상세_및_삭제(client, auth_headers):
    conv_id = _start(client, auth_headers, "삭제 테스트")

    # 상세 조회
    detail_resp = client.get(f"/api/conversations/{conv_id}", headers=auth_headers)
    assert detail_resp.status_code == 200
    detail = detail_resp.json()
    assert detail["title"] == "삭제 테스트"
    assert [m["role"] for m in detail["messages"]] == ["user", "assistant"]
    assert detail["shareToken"]

    # 삭제
    delete_resp = client.delete(f"/api/conversations/{conv_id}", headers=auth_headers)
    assert delete_resp.status_code == 204

    # 삭제 후 404
    gone_resp = client.get(f"/api/conversations/{conv_id}", headers=auth_headers)
    assert gone_resp.status_code == 404
    assert gone_resp.json() == {"error": "Conversation not found"}
    assert client.delete(f"/api/conversations/{conv_id}", headers=auth_headers).status_code == 404


def test_대화_제목_변경(client, auth_headers):
    conv_id = _start(client, auth_headers)

    response = client.put(
        f"/api/conversations/{conv_id}",
        json={"title": "  새 제목  "},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["title"] == "새 제목"

    empty = client.put(f"/api/conversations/{conv_id}", json={"title": "   "}, headers=auth_headers)
    assert empty.status_code == 400


def test_남의_대화는_404(client, auth_headers, other_auth_headers):
    conv_id = _start(client, auth_headers)

    assert client.get(f"/api/conversations/{conv_id}", headers=other_auth_headers).status_code == 404
    assert client.delete(f"/api/conversations/{conv_id}", headers=other_auth_headers).status_code == 404
    assert client.get("/api/conversations", headers=other_auth_headers).json() == []

    # 원래 주인은 그대로 볼 수 있음
    assert client.get(f"/api/conversations/{conv_id}", headers=auth_headers).status_code == 200


def test_공유_토큰으로_읽기(client, auth_headers):
    conv_id = _start(client, auth_headers, "공유할 대화")
    share_token = client.get(f"/api/conversations/{conv_id}", headers=auth_headers).json()["shareToken"]

    response = client.get(f"/api/conversations/shared/{share_token}")
    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "공유할 대화"
    assert len(data["messages"]) == 2
    assert "id" not in data

    assert client.get("/api/conversations/shared/unknown-token").status_code == 404


def test_인증_없이_접근_차단(client):
    response = client.get("/api/conversations")
    assert response.status_code == 401
    assert response.json() == {"error": "Authentication required"}
