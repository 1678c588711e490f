"""Tests for the client key-value stores."""

import json

import pytest

from insidemeter.client.storage import APP_VERSION_KEY, JsonFileStore, MemoryStore, ensure_storage_version


class TestJsonFileStore:
    """Tests for the durable JSON-file store."""

    def test_values_survive_new_instance(self, tmp_path):
        """Test that a second store on the same file sees earlier writes."""
        JsonFileStore(tmp_path / "prefs.json").set("ios_token", "42:1:abc")
        assert JsonFileStore(tmp_path / "prefs.json").get("ios_token") == "42:1:abc"

    def test_missing_file_is_empty(self, tmp_path):
        """Test that reading before any write returns None."""
        assert JsonFileStore(tmp_path / "absent.json").get("anything") is None

    def test_creates_parent_directories(self, tmp_path):
        """Test that the store creates its directory on first write."""
        store = JsonFileStore(tmp_path / "nested" / "dir" / "prefs.json")
        store.set("key", "value")
        assert store.path.exists()

    def test_remove(self, tmp_path):
        """Test that removed keys disappear and missing keys are ignored."""
        store = JsonFileStore(tmp_path / "prefs.json")
        store.set("a", "1")
        store.set("b", "2")
        store.remove("a")
        store.remove("never-set")
        assert json.loads(store.path.read_text()) == {"b": "2"}

    def test_clear_deletes_file(self, tmp_path):
        """Test that clear removes everything."""
        store = JsonFileStore(tmp_path / "prefs.json")
        store.set("a", "1")
        store.clear()
        assert not store.path.exists()
        assert store.get("a") is None

    def test_no_temp_files_left(self, tmp_path):
        """Test that atomic writes clean up after themselves."""
        store = JsonFileStore(tmp_path / "prefs.json")
        store.set("a", "1")
        store.set("b", "2")
        assert [p.name for p in tmp_path.iterdir()] == ["prefs.json"]

    def test_non_object_file_rejected(self, tmp_path):
        """Test that a file holding something other than an object raises."""
        path = tmp_path / "prefs.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(ValueError, match="JSON object"):
            JsonFileStore(path).get("a")


class TestStorageVersion:
    """Tests for app-version based local storage reset."""

    def test_same_version_kept(self):
        """Test that data written by the running version is kept."""
        store = MemoryStore({APP_VERSION_KEY: "2.3.0", "guestSession": "{}"})
        assert ensure_storage_version(store, "2.3.0") is False
        assert store.get("guestSession") == "{}"

    def test_version_bump_clears(self):
        """Test that a different version wipes the store and records the new one."""
        store = MemoryStore({APP_VERSION_KEY: "2.2.0", "guestSession": "{}"})
        assert ensure_storage_version(store, "2.3.0") is True
        assert store.get("guestSession") is None
        assert store.get(APP_VERSION_KEY) == "2.3.0"

    def test_first_run_records_version(self):
        """Test that a store without a marker gets one."""
        store = MemoryStore()
        assert ensure_storage_version(store, "2.3.0") is True
        assert store.get(APP_VERSION_KEY) == "2.3.0"
