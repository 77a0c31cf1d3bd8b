"""HTTP tests for the read API, against both backends."""

import logging

import pytest
from fastapi.testclient import TestClient

from prompto_pipeline import clients
from prompto_pipeline.api import create_app
from prompto_pipeline.cache import CachedValue
from prompto_pipeline.read_backends import FirestoreBackend, StorageBackend, clamp_page_params
from prompto_pipeline.storage_reader import StorageReader
from tests.fakes import FakeFirestore

API_KEY = "test-secret-key"
HEADERS = {"x-api-key": API_KEY}


def seeded_db() -> FakeFirestore:
    prompts = {f"p{i:02d}": {"prompt": f"Prompt {i}", "categoryId": "cat1", "createdAt": i}
               for i in range(25)}
    prompts["other"] = {"prompt": "Elsewhere", "categoryId": "cat2", "createdAt": 100}
    return FakeFirestore({
        "categories": {"cat1": {"category_name": "Music"}, "cat2": {"category_name": "Trending"}},
        "prompts": prompts,
        "promptDetails": {"p03": {"fullprompt": "Full text 3"}},
    })


@pytest.fixture
def client():
    return TestClient(create_app(backend=FirestoreBackend(seeded_db()), api_key=API_KEY))


class TestClampPageParams:
    @pytest.mark.parametrize("page,limit,expected", [
        (None, None, (1, 10)),
        ("2", "10", (2, 10)),
        ("0", "0", (1, 10)),
        ("-3", "-5", (1, 1)),
        ("1", "1000", (1, 100)),
        ("abc", "xyz", (1, 10)),
        ("3abc", "25.9", (3, 25)),
    ])
    def test_clamping(self, page, limit, expected):
        assert clamp_page_params(page, limit) == expected


class TestAuth:
    def test_health_needs_no_key(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert "timestamp" in body

    @pytest.mark.parametrize("headers", [{}, {"x-api-key": "wrong"}, {"x-api-key": ""}])
    def test_missing_or_wrong_key_is_403(self, client, headers):
        resp = client.get("/getCategory", headers=headers)
        assert resp.status_code == 403
        assert resp.json()["success"] is False

    def test_expected_key_never_leaks(self, client, caplog):
        with caplog.at_level(logging.DEBUG):
            resp = client.post("/getPromptDetails", json={"_id": "p03"}, headers={"x-api-key": "nope"})
        assert API_KEY not in resp.text
        assert API_KEY not in caplog.text

    def test_unset_server_key_rejects_everything(self):
        client = TestClient(create_app(backend=FirestoreBackend(seeded_db()), api_key=""))
        assert client.get("/getCategory", headers={"x-api-key": ""}).status_code == 403


class TestGetCategory:
    def test_lists_all_categories_with_ids(self, client):
        resp = client.get("/getCategory", headers=HEADERS)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert {c["_id"] for c in body["data"]} == {"cat1", "cat2"}
        assert {c["category_name"] for c in body["data"]} == {"Music", "Trending"}


class TestGetCategoryList:
    def test_second_page(self, client):
        resp = client.post("/getCategoryList?page=2&limit=10", json={"id": "cat1"}, headers=HEADERS)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert (body["page"], body["limit"], body["total"], body["totalPages"]) == (2, 10, 25, 3)
        assert len(body["data"]) == 10
        # newest first: page 2 starts at createdAt 14
        assert body["data"][0]["_id"] == "p14"
        assert body["data"][-1]["_id"] == "p05"

    def test_last_partial_page(self, client):
        body = client.post("/getCategoryList?page=3&limit=10", json={"id": "cat1"}, headers=HEADERS).json()
        assert len(body["data"]) == 5

    @pytest.mark.parametrize("query,limit", [("limit=-5", 1), ("limit=1000", 100), ("limit=junk", 10)])
    def test_limit_clamped(self, client, query, limit):
        body = client.post(f"/getCategoryList?{query}", json={"id": "cat1"}, headers=HEADERS).json()
        assert body["limit"] == limit
        assert body["page"] == 1

    def test_unknown_category_is_empty_page(self, client):
        body = client.post("/getCategoryList", json={"id": "nope"}, headers=HEADERS).json()
        assert body["success"] is True
        assert (body["total"], body["totalPages"], body["data"]) == (0, 0, [])

    @pytest.mark.parametrize("payload", [{}, {"id": ""}, {"id": 5}, {"id": ["cat1"]}])
    def test_invalid_id_is_400(self, client, payload):
        resp = client.post("/getCategoryList", json=payload, headers=HEADERS)
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "message": "Missing or invalid 'id' parameter"}

    def test_missing_body_is_400(self, client):
        resp = client.post("/getCategoryList", headers=HEADERS)
        assert resp.status_code == 400


class TestGetPromptDetails:
    def test_found(self, client):
        resp = client.post("/getPromptDetails", json={"_id": "p03"}, headers=HEADERS)
        assert resp.status_code == 200
        assert resp.json()["data"] == {"_id": "p03", "fullprompt": "Full text 3"}

    def test_missing_is_404(self, client):
        resp = client.post("/getPromptDetails", json={"_id": "ghost"}, headers=HEADERS)
        assert resp.status_code == 404
        assert resp.json()["success"] is False

    def test_invalid_id_is_400(self, client):
        resp = client.post("/getPromptDetails", json={"_id": 42}, headers=HEADERS)
        assert resp.status_code == 400
        assert "_id" in resp.json()["message"]


class TestErrors:
    def test_unknown_route(self, client):
        resp = client.get("/nowhere", headers=HEADERS)
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "Route GET /nowhere not found"}

    def test_backend_failure_hides_detail(self):
        class Broken:
            def list_categories(self):
                raise RuntimeError("credentials at /secret/path.json rejected")

        client = TestClient(create_app(backend=Broken(), api_key=API_KEY))
        resp = client.get("/getCategory", headers=HEADERS)
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "message": "Error fetching categories"}

    def test_backend_that_cannot_start_answers_json(self, monkeypatch):
        def no_credentials(*args, **kwargs):
            raise RuntimeError("default credentials not found")

        monkeypatch.setattr(clients, "load_credentials", no_credentials)
        client = TestClient(create_app(api_key=API_KEY))
        resp = client.get("/getCategory", headers=HEADERS)
        assert resp.status_code == 500
        assert resp.headers["content-type"].startswith("application/json")
        assert resp.json() == {"success": False, "message": "Service unavailable"}


class TestStorageBackend:
    @pytest.fixture
    def app(self, bucket):
        app = create_app(api_key=API_KEY)
        reader = StorageReader(bucket, data_folder="data/")
        app.state.backend = StorageBackend(reader, app.state.category_cache)
        return app

    def test_categories_are_cached(self, app, bucket):
        client = TestClient(app)
        first = client.get("/getCategory", headers=HEADERS).json()
        client.get("/getCategory", headers=HEADERS)

        assert [c["_id"] for c in first["data"]] == ["cat1", "cat2"]
        assert bucket.downloads.count("data/pt_category.json") == 1
        assert isinstance(app.state.category_cache, CachedValue)

    def test_prompts_read_live_by_category(self, app, bucket):
        client = TestClient(app)
        body = client.post("/getCategoryList", json={"id": "cat2"}, headers=HEADERS).json()
        assert body["total"] == 1
        assert body["data"][0]["_id"] == "t1"

        bucket.put("data/prompts_trending.json", [{"_id": "t1"}, {"_id": "t2"}])
        body = client.post("/getCategoryList", json={"id": "cat2"}, headers=HEADERS).json()
        assert body["total"] == 2

    @pytest.mark.parametrize("stamps,expected", [
        ([9, 10, 100], ["c", "b", "a"]),
        (["2024-01-09T00:00:00Z", "2024-01-10T00:00:00Z", "2023-12-31T23:59:59Z"], ["b", "a", "c"]),
    ])
    def test_prompts_newest_first(self, app, bucket, stamps, expected):
        bucket.put("data/prompts_trending.json",
                   [{"_id": doc_id, "createdAt": at} for doc_id, at in zip("abc", stamps)])
        body = TestClient(app).post("/getCategoryList", json={"id": "cat2"}, headers=HEADERS).json()
        assert [p["_id"] for p in body["data"]] == expected

    def test_prompt_detail_lookup(self, app):
        client = TestClient(app)
        resp = client.post("/getPromptDetails", json={"_id": "m2"}, headers=HEADERS)
        assert resp.json()["data"]["fullprompt"] == "A pianist in the rain"
        assert client.post("/getPromptDetails", json={"_id": "zz"}, headers=HEADERS).status_code == 404
