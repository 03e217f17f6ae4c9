"""
인증 관련 테스트
"""
import uuid
from khedive.core.security import create_refresh_token
from khedive.service.auth_service import get_password_hash, verify_password


# ===== 단위 테스트 =====

def test_비밀번호_해싱_성공():
    password = "MyPassword123!"
    hashed = get_password_hash(password)
    assert hashed != password
    assert len(hashed) > 0


def test_비밀번호_검증_성공():
    password = "MyPassword123!"
    hashed = get_password_hash(password)
    assert verify_password(password, hashed) is True


def test_비밀번호_검증_실패():
    hashed = get_password_hash("correct")
    assert verify_password("wrong", hashed) is False


# ===== API 테스트 =====

def test_회원가입_성공(client):
    unique = uuid.uuid4().hex[:6]
    response = client.post("/api/auth/signup", json={
        "name": f"signup_{unique}",
        "email": f"signup_{unique}@example.com",
        "password": "Strong1234!",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["user"]["name"] == f"signup_{unique}"
    assert data["accessToken"]
    assert data["refreshToken"]
    assert data["tokenType"] == "bearer"
    assert "hashedPassword" not in data["user"]


def test_회원가입_중복_이메일(client):
    """같은 이메일로 두 번 가입하면 400"""
    unique = uuid.uuid4().hex[:6]
    client.post("/api/auth/signup", json={
        "name": f"dup1_{unique}",
        "email": f"dup_{unique}@example.com",
        "password": "Test1234!",
    })
    # 같은 이메일로 다시 가입 시도
    response = client.post("/api/auth/signup", json={
        "name": f"dup2_{unique}",
        "email": f"dup_{unique}@example.com",
        "password": "Test1234!",
    })
    assert response.status_code == 400
    assert response.json() == {"error": "Email is already registered."}


def test_회원가입_약한_비밀번호(client):
    response = client.post("/api/auth/signup", json={
        "name": "weak",
        "email": "weak@example.com",
        "password": "short",
    })
    assert response.status_code == 400
    assert "password" in response.json()["error"]


def test_로그인_성공(client, signup):
    user = signup("login")["user"]

    response = client.post("/api/auth/login", json={
        "email": user["email"],
        "password": "Test1234!",
    })
    assert response.status_code == 200
    assert response.json()["user"]["id"] == user["id"]
    assert response.json()["accessToken"]


def test_로그인_실패(client, signup):
    user = signup("login")["user"]

    response = client.post("/api/auth/login", json={
        "email": user["email"],
        "password": "Wrong1234!",
    })
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid email or password."}


def test_내_정보_조회(client, signup):
    data = signup("me")

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['accessToken']}"})
    assert response.status_code == 200
    assert response.json()["email"] == data["user"]["email"]


def test_잘못된_토큰은_401(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_리프레시_토큰으로_재발급(client, signup):
    data = signup("refresh")

    response = client.post("/api/auth/refresh", json={"refreshToken": data["refreshToken"]})
    assert response.status_code == 200
    assert response.json()["accessToken"]

    # access 토큰을 refresh 자리에 넣으면 거절
    wrong = client.post("/api/auth/refresh", json={"refreshToken": data["accessToken"]})
    assert wrong.status_code == 401


def test_없는_유저의_리프레시_토큰(client):
    response = client.post("/api/auth/refresh", json={"refreshToken": create_refresh_token("ghost-user")})
    assert response.status_code == 401
    assert response.json() == {"error": "User not found"}
