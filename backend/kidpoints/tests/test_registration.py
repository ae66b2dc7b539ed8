"""Tests for parent and kid registration, login and credential lookup."""

import asyncio
import pathlib
import sys

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel

# Allow importing the kidpoints package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from kidpoints.main import app
from kidpoints.database import get_session
from kidpoints.models import User


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


async def _login(client: AsyncClient, login: str, password: str) -> dict:
    resp = await client.post("/login", json={"login": login, "password": password})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def test_parent_registration_and_login():
    async def run():
        await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.post(
                "/register",
                json={
                    "name": "Parent",
                    "email": "p@example.com",
                    "password": "pass",
                    "role": "PARENT",
                },
            )
            assert resp.status_code == 200
            data = resp.json()
            assert data["role"] == "PARENT"
            assert data["email"] == "p@example.com"
            assert "password_hash" not in data

            # Same email again
            resp = await client.post(
                "/register",
                json={
                    "name": "Other",
                    "email": "p@example.com",
                    "password": "pass",
                    "role": "PARENT",
                },
            )
            assert resp.status_code == 409
            assert resp.json()["detail"]["code"] == "email_registered"

            # Parents need an email
            resp = await client.post(
                "/register",
                json={"name": "NoMail", "password": "pass", "role": "PARENT"},
            )
            assert resp.status_code == 400

            # Unknown role and missing password are body errors
            resp = await client.post(
                "/register",
                json={"name": "X", "email": "x@example.com", "password": "p", "role": "ADMIN"},
            )
            assert resp.status_code == 400
            resp = await client.post(
                "/register",
                json={"name": "X", "email": "x@example.com", "role": "PARENT"},
            )
            assert resp.status_code == 400

            # Wrong password
            resp = await client.post(
                "/login", json={"login": "p@example.com", "password": "nope"}
            )
            assert resp.status_code == 401
            # "email" works as the login field too
            # The original field name is accepted too
            resp = await client.post(
                "/login", json={"email": "p@example.com", "password": "pass"}
            )
            assert resp.status_code == 200
            assert resp.json()["role"] == "PARENT"
            headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

            resp = await client.get("/users/me", headers=headers)
            assert resp.status_code == 200
            assert resp.json()["name"] == "Parent"

            # OAuth2 form flow
            resp = await client.post(
                "/token", data={"username": "p@example.com", "password": "pass"}
            )
            assert resp.status_code == 200
            assert resp.json()["token_type"] == "bearer"

            resp = await client.get("/users/me")
            assert resp.status_code == 401

    asyncio.run(run())


def test_kid_registration_rules():
    async def run():
        TestSession = await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            ids = []
            for name, email in (("Parent1", "p1@example.com"), ("Parent2", "p2@example.com")):
                resp = await client.post(
                    "/register",
                    json={"name": name, "email": email, "password": "pass", "role": "PARENT"},
                )
                assert resp.status_code == 200
                ids.append(resp.json()["id"])
            p1_id = ids[0]
            p1_headers = await _login(client, "p1@example.com", "pass")
            p2_headers = await _login(client, "p2@example.com", "pass")

            kid_body = {
                "name": "Alice",
                "childUsername": "alice123",
                "password": "Secret12",
                "role": "KID",
                "parentId": p1_id,
            }

            # Anonymous callers cannot create kids
            resp = await client.post("/register", json=kid_body)
            assert resp.status_code == 401

            # Another parent cannot attach a kid to parent1
            resp = await client.post("/register", headers=p2_headers, json=kid_body)
            assert resp.status_code == 403

            resp = await client.post("/register", headers=p1_headers, json=kid_body)
            assert resp.status_code == 200
            kid = resp.json()
            assert kid["role"] == "KID"
            assert kid["child_username"] == "alice123"
            assert kid["parent_id"] == p1_id

            # Username must be unique
            resp = await client.post("/register", headers=p1_headers, json=kid_body)
            assert resp.status_code == 409

            # Username is required for kids
            resp = await client.post(
                "/register",
                headers=p1_headers,
                json={"name": "Bob", "password": "x", "role": "KID"},
            )
            assert resp.status_code == 400

            # Usernames with "@" would be taken for an email at login
            resp = await client.post(
                "/register",
                headers=p1_headers,
                json={**kid_body, "childUsername": "bob@home"},
            )
            assert resp.status_code == 400
            assert resp.json()["detail"]["code"] == "invalid_username"

            # Password is hashed, and the recoverable copy is not plaintext
            async with TestSession() as session:
                stored = await session.get(User, kid["id"])
                assert stored.password_hash != "Secret12"
                assert stored.secret_token and "Secret12" not in stored.secret_token

            kid_headers = await _login(client, "alice123", "Secret12")

            # Kids cannot add kids or read credentials
            resp = await client.post(
                "/register",
                headers=kid_headers,
                json={**kid_body, "childUsername": "other1"},
            )
            assert resp.status_code == 403
            resp = await client.get("/children/credentials", headers=kid_headers)
            assert resp.status_code == 403

            resp = await client.get("/children/credentials", headers=p1_headers)
            assert resp.status_code == 200
            creds = resp.json()["children"]
            assert creds == [
                {
                    "id": kid["id"],
                    "name": "Alice",
                    "child_username": "alice123",
                    "password": "Secret12",
                    "created_at": creds[0]["created_at"],
                }
            ]

            resp = await client.get("/children/credentials", headers=p2_headers)
            assert resp.status_code == 200
            assert resp.json()["children"] == []

    asyncio.run(run())


def test_generated_child_credentials():
    async def run():
        await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.post(
                "/register",
                json={"name": "Parent", "email": "p@example.com", "password": "pass", "role": "PARENT"},
            )
            assert resp.status_code == 200
            headers = await _login(client, "p@example.com", "pass")

            resp = await client.post("/children", headers=headers, json={"name": "Mary Ann"})
            assert resp.status_code == 200
            created = resp.json()
            assert created["child_username"].startswith("maryann")
            assert created["child_username"][len("maryann"):].isdigit()
            assert len(created["password"]) == 8

            # The generated credentials work straight away
            kid_headers = await _login(client, created["child_username"], created["password"])
            resp = await client.get("/users/me", headers=kid_headers)
            assert resp.json()["role"] == "KID"

            resp = await client.get("/children", headers=headers)
            assert resp.status_code == 200
            assert [c["id"] for c in resp.json()] == [created["id"]]
            assert resp.json()[0]["total_points"] == 0

            resp = await client.post("/children", headers=kid_headers, json={"name": "Sib"})
            assert resp.status_code == 403

            # Punctuation in the name is dropped from the username
            resp = await client.post("/children", headers=headers, json={"name": "Ann@Home!"})
            assert resp.status_code == 200
            created = resp.json()
            assert created["child_username"].startswith("annhome")
            assert created["child_username"].isalnum()
            kid_headers = await _login(client, created["child_username"], created["password"])
            resp = await client.get("/users/me", headers=kid_headers)
            assert resp.json()["child_username"] == created["child_username"]

    asyncio.run(run())
