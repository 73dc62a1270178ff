"""Tests for webhook body templates."""

import pytest

from wamanager.exceptions import TemplateRenderError
from wamanager.models import ProviderMessage
from wamanager.webhook.template import (
    TEMPLATE_VARIABLES,
    build_template_variables,
    build_test_variables,
    default_payload,
    render_template,
    substitute,
)


@pytest.fixture
def message() -> ProviderMessage:
    return ProviderMessage(
        message_id="false_6281@c.us_ABC",
        from_address="6281@c.us",
        to_address="6289@c.us",
        body="hi",
        timestamp=1700000000,
    )


@pytest.fixture
def device() -> dict:
    return {"id": "device-1", "name": "Sales phone", "phone_number": "6289"}


class TestRenderTemplate:
    """Tests for render_template."""

    def test_basic_substitution(self):
        template = '{"u":"{{from}}","m":"{{message}}"}'
        assert render_template(template, {"from": "6281@c.us", "message": "hi"}) == {
            "u": "6281@c.us",
            "m": "hi",
        }

    def test_non_string_values(self):
        """Booleans, numbers and None render as JSON literals."""
        template = '{"g": {{is_group}}, "t": {{timestamp}}, "n": {{device_phone}}}'
        result = render_template(
            template, {"is_group": False, "timestamp": 1700000000, "device_phone": None}
        )
        assert result == {"g": False, "t": 1700000000, "n": None}

    def test_true_is_not_rendered_as_one(self):
        assert substitute("{{x}}", {"x": True}) == "true"

    def test_deterministic(self):
        template = '{"a":"{{from}}","b":{{has_media}}}'
        variables = {"from": "x", "has_media": True}
        assert render_template(template, variables) == render_template(template, variables)

    def test_invalid_json_raises(self):
        with pytest.raises(TemplateRenderError):
            render_template('{"m": {{message}}}', {"message": "not quoted"})

    def test_unescaped_quote_breaks_json(self):
        """String values are inserted as-is."""
        with pytest.raises(TemplateRenderError):
            render_template('{"m":"{{message}}"}', {"message": 'say "hi"'})

    def test_unknown_placeholder_left_in_place(self):
        result = render_template('{"x":"{{unknown}}","m":"{{message}}"}', {"message": "hi"})
        assert result == {"x": "{{unknown}}", "m": "hi"}

    def test_repeated_placeholder(self):
        assert substitute("{{from}}-{{from}}", {"from": "a"}) == "a-a"


class TestVariables:
    """Tests for the template variable sets."""

    def test_message_variables(self, device, message):
        variables = build_template_variables("device-1", device, message)

        assert set(variables) == set(TEMPLATE_VARIABLES)
        assert variables["from"] == "6281@c.us"
        assert variables["from_name"] == "6281"
        assert variables["device_phone"] == "6289"
        assert variables["is_group"] is False

    def test_group_message(self, device):
        message = ProviderMessage(
            message_id="m1",
            from_address="12345@g.us",
            to_address="6289@c.us",
            from_name="Team",
        )
        variables = build_template_variables("device-1", device, message)
        assert variables["is_group"] is True
        assert variables["chat_name"] == "Team"

    def test_test_variables_defaults(self):
        variables = build_test_variables({"id": "device-1", "name": "Phone", "phone_number": None})

        assert set(variables) == set(TEMPLATE_VARIABLES)
        assert variables["device_phone"] == "628123456789"
        assert variables["from"] == "628987654321@c.us"
        assert variables["message_id"].startswith("test-msg-")

    def test_default_payload(self, device, message):
        payload = default_payload("device-1", device, message)
        assert payload == {
            "device_id": "device-1",
            "device_name": "Sales phone",
            "from": "6281@c.us",
            "to": "6289@c.us",
            "message": "hi",
            "message_type": "chat",
            "timestamp": 1700000000,
            "message_id": "false_6281@c.us_ABC",
            "from_name": "6281",
        }
