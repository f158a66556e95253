"""Common schemas for the API."""

import typing as t

from ninja import Schema


class VersionResponse(Schema):
    version: str


class ResponseOk(Schema):
    status: t.Literal["ok"] = "ok"


class ErrorResponse(Schema):
    code: str
    detail: str
