import json
import os
import stat

import pytest

from codex_router.auth.errors import AlreadyExists, InvalidName, MalformedProfile
from codex_router.auth.models import CodexAuth
from codex_router.auth.storage import ProfileStorage, validate_name


def _make_auth(suffix="1"):
    return CodexAuth.model_validate({
        "tokens": {
            "access_token": f"fake-access-token-{suffix}",
            "refresh_token": f"fake-refresh-token-{suffix}",
            "id_token": f"fake-id-token-{suffix}",
        },
        "last_refresh": "2025-01-01T00:00:00+00:00",
    })


@pytest.fixture
def storage(tmp_path):
    return ProfileStorage(home_dir=str(tmp_path))


def _mode(path):
    return stat.S_IMODE(os.stat(path).st_mode)


@pytest.mark.parametrize("name", ["personal", "work-2", "my_account", "A1"])
def test_validate_name_accepts(name):
    validate_name(name)


@pytest.mark.parametrize("name", ["", "my account", "../hack", "foo/bar", "foo.json", "bad\n"])
def test_validate_name_rejects(name):
    with pytest.raises(InvalidName):
        validate_name(name)


def test_profiles_dir_location(storage, tmp_path):
    assert storage.profile_path("work") == os.path.join(
        str(tmp_path), ".codex-router", "accounts", "work.json"
    )


def test_ensure_directory_is_idempotent(storage):
    storage.ensure_directory()
    storage.ensure_directory()
    assert os.path.isdir(storage.profiles_dir)


def test_save_writes_profile(storage):
    auth = _make_auth()
    storage.save("personal", auth)

    with open(storage.profile_path("personal"), "r", encoding="utf-8") as f:
        data = json.load(f)
    assert data["name"] == "personal"
    assert data["savedAt"]
    assert data["auth"] == auth.to_json_dict()
    assert _mode(storage.profile_path("personal")) == 0o600


def test_save_rejects_duplicate(storage):
    storage.save("personal", _make_auth("1"))

    with pytest.raises(AlreadyExists):
        storage.save("personal", _make_auth("2"))

    assert storage.load("personal").credentials.tokens.access_token == "fake-access-token-1"


def test_save_rejects_invalid_name_before_io(storage):
    with pytest.raises(InvalidName):
        storage.save("../hack", _make_auth())
    assert not os.path.exists(storage.profiles_dir)


def test_upsert_creates_and_replaces(storage):
    storage.upsert("work", _make_auth("1"))
    storage.upsert("work", _make_auth("2"))

    record = storage.load("work")
    assert record.credentials.tokens.access_token == "fake-access-token-2"


def test_upsert_enforces_private_permissions(storage):
    storage.ensure_directory()
    path = storage.profile_path("work")
    with open(path, "w", encoding="utf-8") as f:
        f.write("{}")
    os.chmod(path, 0o644)

    storage.upsert("work", _make_auth())

    assert _mode(path) == 0o600


def test_load_missing_returns_none(storage):
    assert storage.load("nobody") is None


def test_load_returns_saved_record(storage):
    auth = _make_auth()
    storage.save("personal", auth)

    record = storage.load("personal")

    assert record.name == "personal"
    assert record.credentials == auth


@pytest.mark.parametrize("content", ["{not json", json.dumps({"name": "x"})])
def test_load_malformed_includes_path(storage, content):
    storage.ensure_directory()
    path = storage.profile_path("broken")
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)

    with pytest.raises(MalformedProfile) as exc:
        storage.load("broken")
    assert path in str(exc.value)


def test_list_empty(storage):
    assert storage.list(None) == []


def test_list_sorted_by_name(storage):
    for name in ["charlie", "alice", "bob"]:
        storage.save(name, _make_auth(name))

    assert [s.name for s in storage.list(None)] == ["alice", "bob", "charlie"]


def test_list_ignores_other_files(storage):
    storage.save("alice", _make_auth("alice"))
    with open(os.path.join(storage.profiles_dir, "notes.txt"), "w") as f:
        f.write("ignore me")

    assert [s.name for s in storage.list(None)] == ["alice"]


def test_list_marks_active_profile(storage):
    storage.save("alice", _make_auth("alice"))
    storage.save("bob", _make_auth("bob"))

    summaries = storage.list("fake-access-token-bob")

    assert {s.name: s.is_active for s in summaries} == {"alice": False, "bob": True}


def test_list_without_match_marks_nothing_active(storage):
    storage.save("alice", _make_auth("alice"))

    assert not any(s.is_active for s in storage.list("other-token"))
    assert not any(s.is_active for s in storage.list(None))


def test_list_surfaces_malformed_file(storage):
    storage.save("alice", _make_auth("alice"))
    path = os.path.join(storage.profiles_dir, "broken.json")
    with open(path, "w", encoding="utf-8") as f:
        f.write("nope")

    with pytest.raises(MalformedProfile, match="broken.json"):
        storage.list(None)


def test_remove_existing(storage):
    storage.save("alice", _make_auth())

    assert storage.remove("alice") is True
    assert storage.load("alice") is None


def test_remove_missing_returns_false(storage):
    assert storage.remove("nobody") is False


def test_remove_propagates_other_errors(storage):
    storage.ensure_directory()
    os.makedirs(storage.profile_path("weird"))

    with pytest.raises(OSError):
        storage.remove("weird")


def test_remove_rejects_invalid_name(storage):
    with pytest.raises(InvalidName):
        storage.remove("foo/bar")
