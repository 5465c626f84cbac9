"""
Request Validator

Parses raw ingress data into a GatewayRequest. Hallucinated fields,
type mismatches and missing fields are rejected before anything reaches
the orchestrator.
"""

import json
import logging
from typing import Any, Dict, Union

from pydantic import ValidationError as PydanticValidationError

from fingate.errors import RequestSchemaError
from fingate.schema.request_schema import GatewayRequest


logger = logging.getLogger(__name__)


class RequestValidator:
    """Validates raw ingress payloads against the request schema."""

    def __init__(self):
        self.logger = logger

    def validate(self, data: Union[str, bytes, Dict[str, Any]]) -> GatewayRequest:
        """
        Validate and parse request data.

        Args:
            data: Raw JSON string/bytes or dictionary

        Returns:
            Validated GatewayRequest

        Raises:
            RequestSchemaError: If data fails schema validation
        """
        if isinstance(data, (str, bytes)):
            try:
                parsed_data = json.loads(data)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                self.logger.error(f"JSON parse error: {e}")
                raise RequestSchemaError(
                    message="PARSE_ERROR: Invalid JSON format",
                    errors=[{"type": "json_decode", "msg": str(e)}],
                )
        else:
            parsed_data = data

        if not isinstance(parsed_data, dict):
            raise RequestSchemaError(
                message="VALIDATION_ERROR: Request must be a JSON object",
                errors=[{"field": "", "type": "object_type", "msg": "Expected an object"}],
            )

        try:
            request = GatewayRequest.model_validate(parsed_data)
            self.logger.debug(f"Schema validation passed for request_id: {request.request_id}")
            return request

        except PydanticValidationError as e:
            errors = []
            for error in e.errors():
                errors.append({
                    "field": ".".join(str(loc) for loc in error["loc"]),
                    "type": error["type"],
                    "msg": error["msg"],
                })

            self.logger.warning(f"Schema validation failed: {errors}")
            raise RequestSchemaError(
                message="VALIDATION_ERROR: Schema validation failed",
                errors=errors,
            )

    def validate_safe(
        self,
        data: Union[str, bytes, Dict[str, Any]],
    ) -> tuple[GatewayRequest | None, RequestSchemaError | None]:
        """
        Safe validation that returns errors instead of raising.

        Returns:
            (GatewayRequest, None) on success, (None, RequestSchemaError) on failure
        """
        try:
            return self.validate(data), None
        except RequestSchemaError as e:
            return None, e
