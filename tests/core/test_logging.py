"""Tests for logging processors and request context."""

from learnpath.core.context import RequestContext, get_context
from learnpath.core.logging import add_context_processor, filter_sensitive_data


class TestFilterSensitiveData:
    """Tests for filter_sensitive_data."""

    def test_masks_certificate_personal_data(self) -> None:
        """Holder name and birth date are masked, other fields kept."""
        event = {
            "event": "certificate_issued",
            "holder_name": "Ana Souza",
            "date_of_birth": "1995-04-12",
            "certificate_id": "K1-ABCDEF",
        }

        masked = filter_sensitive_data(None, "info", event)

        assert masked["holder_name"] == "An*****za"
        assert masked["date_of_birth"] == "19******12"
        assert masked["certificate_id"] == "K1-ABCDEF"

    def test_masks_nested_and_short_values(self) -> None:
        """Nested dictionaries are walked; short secrets fully hidden."""
        event = {"event": "x", "request": {"authorization": "abc", "path": "/v1"}}

        masked = filter_sensitive_data(None, "info", event)

        assert masked["request"] == {"authorization": "***", "path": "/v1"}


class TestRequestContext:
    """Tests for the request context scope."""

    def test_context_is_merged_and_restored(self) -> None:
        """Caller identity shows up in events only inside the scope."""
        with RequestContext(request_id="req-1", user_id="u-1", actor_kind="sponsored"):
            event = add_context_processor(None, "info", {"event": "x"})
            assert event["request_id"] == "req-1"
            assert event["actor_kind"] == "sponsored"

        assert "user_id" not in get_context()

    def test_explicit_fields_win(self) -> None:
        """Fields passed on the event are not overwritten by context."""
        with RequestContext(user_id="u-1"):
            event = add_context_processor(None, "info", {"event": "x", "user_id": "u-2"})

        assert event["user_id"] == "u-2"
