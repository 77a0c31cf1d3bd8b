"""
Shared fixtures: fake Firestore and Storage, and a sample data folder
shaped like the production bucket.
"""
import pytest

from prompto_pipeline.storage_reader import StorageReader
from tests.fakes import FakeBucket, FakeFirestore


def make_prompts(n: int, prefix: str = "p") -> list[dict]:
    return [{"_id": f"{prefix}{i}", "prompt": f"Prompt {i}", "thumb_url": f"https://img/{i}.png"}
            for i in range(n)]


@pytest.fixture
def sample_files():
    return {
        "pt_category.json": {"data": [
            {"_id": "cat1", "category_name": "Music", "name": "Music"},
            {"_id": "cat2", "category_name": "Trending", "name": "Trending"},
        ]},
        "prompts_Music.json": [
            {"_id": "m1", "prompt": "Guitar at sunset"},
            {"_id": "m2", "prompt": "Piano in the rain"},
        ],
        "prompts_trending.json": {"prompts": [{"id": "t1", "prompt": "City lights"}]},
        "prompts_Unknown.json": [{"_id": "u1", "prompt": "Orphan"}],
        "promptDetails_Music.json": {"promptDetails": [
            {"_id": "m1", "fullprompt": "A guitarist playing at sunset"},
            {"_id": "m2", "fullprompt": "A pianist in the rain"},
        ]},
        "readme.json": {"note": "not data"},
    }


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def bucket(sample_files):
    return FakeBucket(sample_files)


@pytest.fixture
def reader(bucket):
    return StorageReader(bucket, data_folder="data/")
