"""
Tests for the voice CLI helpers.
"""

from undercurrent.schemas.session import UserProfile
from undercurrent.storage.session_store import JsonSessionStore
from undercurrent.voice_cli import remember_profile


class TestRememberProfile:
    def test_email_only_keeps_stored_name(self, store):
        store.save_user(UserProfile("user-1", "Alex", "alex@example.com"))
        remember_profile(store, "user-1", email="alex@work.example.com")

        profile = store.get_user("user-1")
        assert profile.name == "Alex"
        assert profile.email == "alex@work.example.com"

    def test_name_only_keeps_stored_email(self, tmp_path):
        JsonSessionStore(tmp_path).save_user(UserProfile("user-1", "Alex", "alex@example.com"))

        store = JsonSessionStore(tmp_path)
        remember_profile(store, "user-1", name="Alex Kim")

        profile = JsonSessionStore(tmp_path).get_user("user-1")
        assert profile.name == "Alex Kim"
        assert profile.email == "alex@example.com"

    def test_new_user(self, store):
        remember_profile(store, "user-2", name="Sam")
        assert store.get_user("user-2") == UserProfile("user-2", "Sam", "")

    def test_nothing_given_leaves_store_alone(self, store):
        remember_profile(store, "user-3")
        assert store.get_user("user-3") is None
