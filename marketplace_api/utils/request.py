# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request utilities for extracting and validating request bodies.
"""

from flask import request
from typing import Any, Dict, List, Type, TypeVar
from pydantic import BaseModel, ValidationError
import logging

from ..domain.errors import ValidationException

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def format_validation_errors(error: ValidationError) -> List[Dict[str, Any]]:
    """Flatten pydantic errors into ``{field, message}`` pairs."""
    return [
        {
            "field": ".".join(str(part) for part in item.get("loc", ())) or None,
            "message": item.get("msg")
        }
        for item in error.errors()
    ]


def parse_body(model: Type[ModelT]) -> ModelT:
    """
    Validate the JSON request body against ``model``.

    A missing or non-JSON body validates as ``{}``, so models whose fields are
    all optional accept an empty POST.

    Raises:
        ValidationException: Body does not match the model
    """
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationException(
            "Request body must be a JSON object",
            validation_errors=[{"field": None, "message": "expected an object"}]
        )

    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.info(
            "Request body validation failed",
            extra={"path": request.path, "model": model.__name__, "error_count": e.error_count()}
        )
        raise ValidationException("Request body is invalid", format_validation_errors(e))
