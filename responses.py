from typing import Any

from fastapi.encoders import jsonable_encoder


def success(message: str, data: Any = None) -> dict:
    return {
        "success": True,
        "message": message,
        "data": jsonable_encoder(data),
        "errors": None,
    }


def error(message: str, errors: Any = None) -> dict:
    return {
        "success": False,
        "message": message,
        "data": None,
        "errors": jsonable_encoder(errors),
    }
