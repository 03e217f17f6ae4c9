"""
채팅 API 테스트 (POST /api/chat)
"""
from khedive.core.security import create_access_token


def test_빈_메시지는_400(client, generator):
    response = client.post("/api/chat", json={"message": "   "})

    assert response.status_code == 400
    assert response.json() == {"error": "Message is required"}
    assert generator.calls == []


def test_메시지_필드가_없어도_400(client):
    response = client.post("/api/chat", json={})
    assert response.status_code == 400
    assert response.json() == {"error": "Message is required"}


def test_게스트_두_턴_대화(client, generator):
    first = client.post("/api/chat", json={"message": "Hello"})
    assert first.status_code == 200
    data = first.json()
    session_id = data["sessionId"]
    assert data["assistantMessage"]["role"] == "assistant"
    assert data["assistantMessage"]["content"] == "reply to: Hello"
    assert data["assistantMessage"]["timestamp"]

    second = client.post("/api/chat", json={"message": "More please", "sessionId": session_id})
    assert second.status_code == 200
    assert second.json()["sessionId"] == session_id
    assert generator.calls[1]["history"] == [
        {"role": "user", "content": "Hello"},
        {"role": "assistant", "content": "reply to: Hello"},
    ]


def test_로그인_유저의_대화는_목록에_남는다(client, auth_headers):
    response = client.post(
        "/api/chat",
        json={"message": "What is the capital of Egypt?", "persona": "khedive"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    session_id = response.json()["sessionId"]

    listed = client.get("/api/conversations", headers=auth_headers).json()
    assert [c["id"] for c in listed] == [session_id]
    assert listed[0]["messageCount"] == 2

    detail = client.get(f"/api/conversations/{session_id}", headers=auth_headers).json()
    assert [(m["role"], m["content"]) for m in detail["messages"]] == [
        ("user", "What is the capital of Egypt?"),
        ("assistant", "reply to: What is the capital of Egypt?"),
    ]


def test_파일_참조_첨부(client, auth_headers, generator):
    response = client.post(
        "/api/chat",
        json={
            "message": "Summarise this",
            "fileReference": {"uri": "https://files.example/doc", "mimeType": "application/pdf", "name": "doc.pdf"},
        },
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert generator.calls[0]["file_reference"].uri == "https://files.example/doc"

    session_id = response.json()["sessionId"]
    detail = client.get(f"/api/conversations/{session_id}", headers=auth_headers).json()
    assert detail["messages"][0]["fileInfo"] == {"name": "doc.pdf", "mimeType": "application/pdf"}


def test_생성_실패는_500_그리고_저장_없음(client, auth_headers, generator):
    session_id = client.post("/api/chat", json={"message": "Hello"}, headers=auth_headers).json()["sessionId"]

    generator.fail_with = "Usage limit exceeded on all API keys. Add new keys or try again later."
    response = client.post("/api/chat", json={"message": "again", "sessionId": session_id}, headers=auth_headers)

    assert response.status_code == 500
    assert response.json() == {"error": "Usage limit exceeded on all API keys. Add new keys or try again later."}

    detail = client.get(f"/api/conversations/{session_id}", headers=auth_headers).json()
    assert len(detail["messages"]) == 2


def test_없는_세션은_404(client):
    response = client.post("/api/chat", json={"message": "Hello", "sessionId": "does-not-exist"})
    assert response.status_code == 404
    assert response.json() == {"error": "Conversation not found"}


def test_남의_세션에_이어쓰기_404(client, auth_headers, other_auth_headers):
    session_id = client.post("/api/chat", json={"message": "mine"}, headers=auth_headers).json()["sessionId"]

    response = client.post(
        "/api/chat",
        json={"message": "not yours", "sessionId": session_id},
        headers=other_auth_headers,
    )
    assert response.status_code == 404


def test_잘못된_토큰은_게스트로_낮추지_않고_401(client, generator):
    response = client.post(
        "/api/chat",
        json={"message": "Hello"},
        headers={"Authorization": "Bearer broken.token.value"},
    )
    assert response.status_code == 401
    assert generator.calls == []


def test_탈퇴한_유저의_토큰은_401(client):
    token = create_access_token("deleted-user-id")
    response = client.post("/api/chat", json={"message": "Hello"}, headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_멱등키로_재시도하면_같은_세션(client, auth_headers):
    body = {"message": "first turn", "idempotencyKey": "retry-123"}

    first = client.post("/api/chat", json=body, headers=auth_headers).json()
    retry = client.post("/api/chat", json=body, headers=auth_headers).json()

    assert retry["sessionId"] == first["sessionId"]
    assert len(client.get("/api/conversations", headers=auth_headers).json()) == 1
    # 재시도는 새 메시지를 만들지 않고 같은 응답을 돌려준다
    assert retry["assistantMessage"]["id"] == first["assistantMessage"]["id"]
    detail = client.get(f"/api/conversations/{first['sessionId']}", headers=auth_headers).json()
    assert len(detail["messages"]) == 2


def test_다른_유저가_같은_멱등키를_써도_대화가_섞이지_않는다(client, auth_headers, other_auth_headers, generator):
    body = {"message": "private notes", "idempotencyKey": "shared-key"}

    mine = client.post("/api/chat", json=body, headers=auth_headers).json()
    theirs = client.post("/api/chat", json={"message": "hi", "idempotencyKey": "shared-key"}, headers=other_auth_headers).json()

    assert theirs["sessionId"] != mine["sessionId"]
    assert generator.calls[1]["history"] == []
    assert client.get(f"/api/conversations/{mine['sessionId']}", headers=other_auth_headers).status_code == 404
