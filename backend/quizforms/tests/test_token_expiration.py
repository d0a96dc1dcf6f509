import asyncio
from datetime import datetime, timedelta
import importlib
import pathlib
import sys

from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel

# Allow importing the quizforms package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

import quizforms.auth as auth
from quizforms.main import app
from quizforms.database import get_session


def _seconds_left(token):
    claims = jwt.decode(token, auth.SECRET_KEY, algorithms=[auth.ALGORITHM])
    return (datetime.utcfromtimestamp(claims["exp"]) - datetime.utcnow()).total_seconds()


def test_session_length_comes_from_environment(monkeypatch):
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_MINUTES", "2")
    importlib.reload(auth)
    try:
        assert auth.ACCESS_TOKEN_EXPIRE_MINUTES == 2
        assert 100 <= _seconds_left(auth.create_access_token({"sub": "learner@example.com"})) <= 140
    finally:
        monkeypatch.delenv("ACCESS_TOKEN_EXPIRE_MINUTES", raising=False)
        importlib.reload(auth)
    assert auth.ACCESS_TOKEN_EXPIRE_MINUTES == 30


def test_explicit_lifetime_overrides_default():
    token = auth.create_access_token(
        {"sub": "author@example.com"}, expires_delta=timedelta(hours=2)
    )
    assert 7100 <= _seconds_left(token) <= 7300


def test_expired_session_cannot_open_login_only_form():
    async def run():
        engine = create_async_engine("sqlite+aiosqlite:///:memory:")
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        TestSession = async_sessionmaker(engine, expire_on_commit=False)

        async def override_get_session():
            async with TestSession() as session:
                yield session

        app.dependency_overrides[get_session] = override_get_session
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            await client.post(
                "/register",
                json={"name": "Lan", "email": "lan@example.com", "password": "secret"},
            )
            fresh = auth.create_access_token({"sub": "lan@example.com"})
            stale = auth.create_access_token(
                {"sub": "lan@example.com"}, expires_delta=timedelta(minutes=-1)
            )
            resp = await client.post(
                "/forms/",
                json={
                    "title": "Members only",
                    "status": "published",
                    "require_login": True,
                    "questions": [
                        {"id": "q1", "type": "free-text", "content": "Hello?", "order": 0}
                    ],
                },
                headers={"Authorization": f"Bearer {fresh}"},
            )
            form_id = resp.json()["id"]

            resp = await client.get(
                f"/forms/{form_id}/take", headers={"Authorization": f"Bearer {stale}"}
            )
            assert resp.status_code == 401

            resp = await client.get("/users/me", headers={"Authorization": f"Bearer {stale}"})
            assert resp.status_code == 401

            resp = await client.get(
                f"/forms/{form_id}/take", headers={"Authorization": f"Bearer {fresh}"}
            )
            assert resp.status_code == 200
            assert resp.json()["questions"][0]["content"] == "Hello?"

    asyncio.run(run())
