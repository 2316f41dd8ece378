"""Unit tests for stock validators and JSON helpers."""

from __future__ import annotations

from typing import List

import httpx
import pytest
from pydantic import BaseModel

from TypedAPI.errors import DeserializeError, SerializeError, ValidationError
from TypedAPI.validators import (
    json_deserializer,
    json_serializer,
    validate_content_type,
    validate_status,
)

REQUEST = httpx.Request("GET", "https://api.example.com/v1/users")


class User(BaseModel):
    id: int
    name: str


def check(validation, response):
    validation(None, REQUEST, response, response.content)


class TestValidateStatus:
    def test_accepts_2xx_by_default(self):
        check(validate_status(), httpx.Response(204))

    def test_rejects_with_response_attached(self):
        response = httpx.Response(500)

        with pytest.raises(ValidationError) as excinfo:
            check(validate_status(), response)

        assert excinfo.value.response is response
        assert excinfo.value.status_code == 500

    def test_custom_codes(self):
        check(validate_status({304}), httpx.Response(304))
        with pytest.raises(ValidationError):
            check(validate_status({304}), httpx.Response(200))


class TestValidateContentType:
    def test_ignores_parameters_and_case(self):
        response = httpx.Response(200, headers={"Content-Type": "Application/JSON; charset=utf-8"})

        check(validate_content_type("application/json"), response)

    def test_rejects_other_and_missing(self):
        validation = validate_content_type("application/json")

        with pytest.raises(ValidationError):
            check(validation, httpx.Response(200, headers={"Content-Type": "text/html"}))
        with pytest.raises(ValidationError):
            check(validation, httpx.Response(200))


class TestJSON:
    def test_serializer_plain_and_model(self):
        assert json_serializer()({"a": [1, 2]}) == b'{"a": [1, 2]}'
        assert json_serializer(User)(User(id=1, name="ada")) == b'{"id":1,"name":"ada"}'

    def test_serializer_failure(self):
        with pytest.raises(SerializeError):
            json_serializer()({"when": object()})

    def test_deserializer_with_model(self):
        deserialize = json_deserializer(List[User])
        data = b'[{"id": 1, "name": "ada"}]'

        assert deserialize(None, REQUEST, httpx.Response(200), data) == [User(id=1, name="ada")]

    def test_deserializer_plain(self):
        assert json_deserializer()(None, REQUEST, httpx.Response(200), b'{"ok": true}') == {"ok": True}

    @pytest.mark.parametrize("data", [None, b"", b"{not json", b'{"id": "x"}'])
    def test_deserializer_failures(self, data):
        with pytest.raises(DeserializeError):
            json_deserializer(User)(None, REQUEST, httpx.Response(200), data)
