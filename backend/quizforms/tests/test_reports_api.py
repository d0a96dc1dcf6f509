import asyncio
import pathlib
import sys

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel

# Allow importing the quizforms package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from quizforms.main import app
from quizforms.database import get_session
from quizforms.models import Submission


QUIZ = {
    "title": "Mixed",
    "status": "published",
    "questions": [
        {
            "id": "pick",
            "type": "single-choice",
            "content": "Pick B",
            "options": ["A", "B", "C"],
            "correct_answer": 1,
            "order": 0,
        },
        {
            "id": "many",
            "type": "multi-choice",
            "content": "Pick A and C",
            "options": ["A", "B", "C", "D"],
            "correct_answer": [0, 2],
            "points": 4,
            "order": 1,
        },
        {
            "id": "say",
            "type": "free-text",
            "content": "Say hello",
            "correct_answer": ["hello"],
            "order": 2,
        },
    ],
}


async def _setup_test_db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    TestSession = async_sessionmaker(engine, expire_on_commit=False)

    async def override_get_session():
        async with TestSession() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    return TestSession


async def _login(client, email, name="User"):
    await client.post("/register", json={"name": name, "email": email, "password": "secret"})
    resp = await client.post("/login", json={"email": email, "password": "secret"})
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def test_report_aggregates_submissions():
    async def run():
        await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            owner = await _login(client, "owner@example.com")
            other = await _login(client, "other@example.com")
            form_id = (await client.post("/forms/", json=QUIZ, headers=owner)).json()["id"]

            resp = await client.get(f"/forms/{form_id}/report", headers=owner)
            empty = resp.json()
            assert empty["submission_count"] == 0
            assert empty["max_score"] == 6
            assert [q["correct_rate"] for q in empty["questions"]] == [0, 0, 0]

            for answers, spent in (
                ({"pick": 1, "many": [2, 0], "say": "Hello "}, 30),
                ({"pick": 0, "many": [0], "say": "hello"}, 90),
            ):
                resp = await client.post(
                    f"/forms/{form_id}/submissions",
                    json={"answers": answers, "time_spent": spent},
                )
                assert resp.status_code == 200

            report = (await client.get(f"/forms/{form_id}/report", headers=owner)).json()
            assert report["submission_count"] == 2
            assert report["average_score"] == 3.5
            assert report["average_time_spent"] == 60.0
            pick, many, say = report["questions"]
            assert pick["correct_rate"] == 50.0
            assert [o["count"] for o in pick["options"]] == [1, 1, 0]
            assert many["correct_count"] == 1
            assert [o["is_correct"] for o in many["options"]] == [True, False, True, False]
            assert say["text_answers"] == [
                {"label": "Hello", "count": 2, "is_correct": True}
            ]

            resp = await client.get(f"/forms/{form_id}/report", headers=other)
            assert resp.status_code == 404

    asyncio.run(run())


def test_audit_flags_tampered_scores():
    async def run():
        TestSession = await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            owner = await _login(client, "owner@example.com")
            form_id = (await client.post("/forms/", json=QUIZ, headers=owner)).json()["id"]
            await client.post(
                f"/forms/{form_id}/submissions", json={"answers": {"pick": 1}}
            )
            async with TestSession() as session:
                session.add(
                    Submission(
                        form_id=form_id,
                        submitter_identity="anonymous",
                        answers={"pick": 0},
                        score=6,
                        max_score=6,
                    )
                )
                await session.commit()

            resp = await client.get(f"/forms/{form_id}/audit", headers=owner)
            entries = resp.json()
            assert [(e["stored_score"], e["recomputed_score"], e["matches"]) for e in entries] == [
                (6, 0, False),
                (1, 1, True),
            ]

    asyncio.run(run())
