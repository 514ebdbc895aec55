"""
Tests for the lookup, feedback and user stats endpoints.
"""
from datetime import timedelta

from sqlalchemy import func, select, update

from jargon_api.database.models import Feedback, MissingTerm, TermLookup, User, utcnow
from jargon_api.utils import EventTracker


def lookup_payload(**overrides):
    payload = {
        "client_id": "client-1",
        "term_key": "ebitda",
        "term_display": "EBITDA",
        "complexity_level": "simple",
        "page_url": "https://example.com/earnings",
        "page_context": "adjusted EBITDA rose 12%",
    }
    payload.update(overrides)
    return payload


async def count_rows(session_factory, model, *criteria) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model).where(*criteria))


class TestRecordLookup:

    async def test_first_lookup_creates_user(self, client, session_factory):
        response = await client.post("/api/feedback/lookup", json=lookup_payload())
        assert response.status_code == 200

        body = response.json()
        assert body["success"] is True
        assert body["data"]["total_lookups"] == 1
        assert isinstance(body["data"]["lookup_id"], int)

        async with session_factory() as session:
            user = await session.scalar(select(User).where(User.client_id == "client-1"))
        assert user.total_lookups == 1
        assert user.first_seen_at == user.last_seen_at

    async def test_repeated_lookups_count_exactly(self, client, session_factory):
        for i in range(5):
            response = await client.post("/api/feedback/lookup", json=lookup_payload(term_key=f"term-{i % 2}"))
            assert response.json()["data"]["total_lookups"] == i + 1

        async with session_factory() as session:
            user = await session.scalar(select(User).where(User.client_id == "client-1"))
        assert user.total_lookups == 5
        assert await count_rows(session_factory, TermLookup, TermLookup.client_id == "client-1") == 5
        assert await count_rows(session_factory, User) == 1

    async def test_clients_are_counted_independently(self, client):
        await client.post("/api/feedback/lookup", json=lookup_payload(client_id="a"))
        await client.post("/api/feedback/lookup", json=lookup_payload(client_id="a"))
        response = await client.post("/api/feedback/lookup", json=lookup_payload(client_id="b"))
        assert response.json()["data"]["total_lookups"] == 1

    async def test_defaults_for_optional_fields(self, client, session_factory):
        response = await client.post("/api/feedback/lookup", json={"client_id": "c", "term_key": "apr"})
        assert response.status_code == 200

        async with session_factory() as session:
            lookup = await session.get(TermLookup, response.json()["data"]["lookup_id"])
        assert lookup.term_display == "apr"
        assert lookup.complexity_level == "simple"
        assert lookup.found is True
        assert lookup.page_url is None

    async def test_missing_required_fields_rejected_without_writes(self, client, session_factory):
        response = await client.post("/api/feedback/lookup", json={"term_key": "ebitda"})
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "client_id and term_key are required"}

        response = await client.post("/api/feedback/lookup", json={"client_id": "c", "term_key": "   "})
        assert response.status_code == 400

        assert await count_rows(session_factory, User) == 0
        assert await count_rows(session_factory, TermLookup) == 0

    async def test_malformed_body_is_a_400_envelope(self, client):
        response = await client.post("/api/feedback/lookup", json={"client_id": "c", "term_key": "x", "found": "perhaps"})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert "found" in body["error"]

    async def test_lookup_emits_event(self, client, event_sink):
        await client.post("/api/feedback/lookup", json=lookup_payload(found=False))
        assert event_sink.events == [
            ("term_lookup", {"term_key": "ebitda", "complexity_level": "simple", "found": False})
        ]

    async def test_failing_event_sink_does_not_fail_request(self, client, tracker):
        def broken_sink(event_name, properties):
            raise RuntimeError("analytics backend down")

        tracker.add_sink(broken_sink)
        response = await client.post("/api/feedback/lookup", json=lookup_payload())
        assert response.status_code == 200
        assert response.json()["success"] is True


class TestMissingTerms:

    async def test_not_found_lookup_creates_missing_term(self, client, session_factory):
        response = await client.post("/api/feedback/lookup", json=lookup_payload(term_key="Carried Interest", found=False))
        assert response.status_code == 200

        async with session_factory() as session:
            missing = await session.scalar(select(MissingTerm))
        assert missing.missing_text == "carried interest"
        assert missing.lookup_count == 1
        assert missing.client_id == "client-1"
        assert missing.page_url == "https://example.com/earnings"

    async def test_repeat_increments_count_and_refreshes_last_seen(self, client, session_factory):
        await client.post("/api/feedback/lookup", json=lookup_payload(term_key="contango", found=False))

        earlier = utcnow() - timedelta(days=2)
        async with session_factory() as session:
            await session.execute(update(MissingTerm).values(last_seen_at=earlier, first_seen_at=earlier))
            await session.commit()

        await client.post("/api/feedback/lookup", json=lookup_payload(client_id="other", term_key="  Contango ", found=False))

        async with session_factory() as session:
            rows = (await session.execute(select(MissingTerm))).scalars().all()
        assert len(rows) == 1
        assert rows[0].lookup_count == 2
        assert rows[0].last_seen_at > earlier
        assert rows[0].first_seen_at == earlier
        assert rows[0].client_id == "client-1"

    async def test_found_lookups_are_not_missing(self, client, session_factory):
        await client.post("/api/feedback/lookup", json=lookup_payload())
        await client.post("/api/feedback/lookup", json=lookup_payload(found=True))
        assert await count_rows(session_factory, MissingTerm) == 0

    async def test_not_found_lookup_still_counts_for_user(self, client, session_factory):
        await client.post("/api/feedback/lookup", json=lookup_payload(found=False))
        response = await client.post("/api/feedback/lookup", json=lookup_payload(found=False))
        assert response.json()["data"]["total_lookups"] == 2
        assert await count_rows(session_factory, TermLookup, TermLookup.found.is_(False)) == 2


class TestSubmitFeedback:

    async def test_valid_feedback_is_stored(self, client, session_factory, event_sink):
        response = await client.post("/api/feedback/submit", json={
            "client_id": "client-1",
            "term_key": "ebitda",
            "feedback_type": "confused",
            "complexity_level": "simple",
            "comment": "what is amortization?",
        })
        assert response.status_code == 200
        feedback_id = response.json()["data"]["feedback_id"]

        async with session_factory() as session:
            feedback = await session.get(Feedback, feedback_id)
        assert feedback.feedback_type == "confused"
        assert feedback.comment == "what is amortization?"
        assert event_sink.events[-1][0] == "feedback_submitted"

    async def test_each_allowed_type_accepted(self, client):
        for feedback_type in ("thumbs_up", "thumbs_down", "confused"):
            response = await client.post("/api/feedback/submit", json={
                "client_id": "c", "term_key": "apr", "feedback_type": feedback_type,
            })
            assert response.status_code == 200

    async def test_unknown_type_rejected_without_insert(self, client, session_factory):
        response = await client.post("/api/feedback/submit", json={
            "client_id": "c", "term_key": "apr", "feedback_type": "love_it",
        })
        assert response.status_code == 400
        assert response.json()["error"] == "feedback_type must be one of: thumbs_up, thumbs_down, confused"
        assert await count_rows(session_factory, Feedback) == 0

    async def test_missing_fields_rejected(self, client, session_factory):
        response = await client.post("/api/feedback/submit", json={"client_id": "c", "term_key": "apr"})
        assert response.status_code == 400
        assert response.json()["error"] == "client_id, term_key, and feedback_type are required"
        assert await count_rows(session_factory, Feedback) == 0


class TestUserStats:

    async def test_unknown_client_gets_zeros(self, client):
        response = await client.get("/api/feedback/stats/nobody")
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "data": {"total_lookups": 0, "unique_terms": 0, "days_active": 0},
        }

    async def test_stats_for_known_client(self, client, session_factory):
        for term in ("ebitda", "apr", "ebitda"):
            await client.post("/api/feedback/lookup", json=lookup_payload(term_key=term))

        earliest = utcnow() - timedelta(days=3, hours=12)
        async with session_factory() as session:
            first = await session.scalar(select(TermLookup).order_by(TermLookup.id).limit(1))
            first.lookup_timestamp = earliest
            await session.commit()

        response = await client.get("/api/feedback/stats/client-1")
        data = response.json()["data"]
        assert data["total_lookups"] == 3
        assert data["unique_terms"] == 2
        assert data["days_active"] == 4
        assert data["first_seen"] is not None
        assert data["last_seen"] is not None

    async def test_same_day_activity_counts_as_one_day(self, client):
        await client.post("/api/feedback/lookup", json=lookup_payload())
        response = await client.get("/api/feedback/stats/client-1")
        assert response.json()["data"]["days_active"] == 1


async def test_event_tracker_survives_sink_errors():
    calls = []

    def failing(name, props):
        raise ValueError("boom")

    tracker = EventTracker(sinks=[failing, lambda name, props: calls.append(name)])
    assert tracker.track_event("term_lookup", {"term_key": "x"}) is False
    assert calls == ["term_lookup"]
    assert tracker.track_error(RuntimeError("db down"), {"route": "/api/feedback/lookup"}) is True
