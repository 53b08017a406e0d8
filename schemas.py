"""
Request/Response Validation Schemas for the Rehab Coach
Using Marshmallow for input validation

This module provides validation schemas for every value that crosses the
coach boundary, so that bad input is rejected before any safety-relevant
computation runs:
- Out-of-range pain/confidence levels (never clamped)
- Unknown body parts and modes
- Malformed calibration profiles and coach states
- HTML/script injection in free text
"""

from marshmallow import Schema, fields, validate, ValidationError, EXCLUDE
import re

from coach_types import BodyPart, Mode


BODY_PART_VALUES = [body_part.value for body_part in BodyPart]
MODE_VALUES = [mode.value for mode in Mode]


# ─── HELPER VALIDATORS ───────────────────────────────────────────────

def validate_no_html(value):
    """
    Ensure no HTML/script tags in input (prevent XSS attacks)
    """
    if not value:
        return

    # Check for common HTML/script tags
    html_pattern = r'<\s*(script|iframe|object|embed|link|style|meta|html|body|img)\s*[^>]*>'
    if re.search(html_pattern, value, re.IGNORECASE):
        raise ValidationError('HTML tags are not allowed')

    # Check for common XSS patterns
    xss_patterns = [
        r'javascript:',
        r'on\w+\s*=',  # onclick, onload, etc.
        r'<\s*\w+[^>]*on\w+',  # tags with event handlers
    ]
    for pattern in xss_patterns:
        if re.search(pattern, value, re.IGNORECASE):
            raise ValidationError('Potentially malicious content detected')


# ─── CUSTOM FIELDS ───────────────────────────────────────────────────

class StrictInteger(fields.Integer):
    """Integer that rejects floats, numeric strings and booleans"""

    def __init__(self, **kwargs):
        super().__init__(strict=True, **kwargs)

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, bool):
            raise self.make_error('invalid')
        return super()._deserialize(value, attr, data, **kwargs)


class StrictBoolean(fields.Boolean):
    """Boolean that only accepts real JSON true/false"""

    def _deserialize(self, value, attr, data, **kwargs):
        if not isinstance(value, bool):
            raise self.make_error('invalid', input=value)
        return value


def _level_field():
    return StrictInteger(
        required=True,
        validate=validate.Range(min=0, max=10)
    )


def _free_text_field():
    return fields.Str(
        required=False,
        allow_none=True,
        validate=[
            validate.Length(max=2000),
            validate_no_html
        ]
    )


def _tag_list_field():
    return fields.List(
        fields.Str(validate=validate.Length(min=1, max=64)),
        load_default=list,
        validate=validate.Length(max=50)
    )


# ─── CHECK-IN SCHEMAS ────────────────────────────────────────────────

class CheckInSchema(Schema):
    """Session-start check-in validation"""

    class Meta:
        unknown = EXCLUDE

    body_part = fields.Str(
        required=True,
        validate=validate.OneOf(BODY_PART_VALUES)
    )

    pain_level = _level_field()

    confidence_level = _level_field()

    # How well daily activities went; only used for outcome tracking
    function_level = StrictInteger(
        required=False,
        allow_none=True,
        validate=validate.Range(min=0, max=10)
    )

    sensations = _tag_list_field()

    free_text = _free_text_field()

    movement_restrictions = _tag_list_field()


class ScreenRequestSchema(Schema):
    """Stand-alone red-flag screening request"""

    class Meta:
        unknown = EXCLUDE

    sensations = _tag_list_field()

    free_text = _free_text_field()

    body_part = fields.Str(
        required=False,
        allow_none=True,
        validate=validate.OneOf(BODY_PART_VALUES)
    )


# ─── CALIBRATION SCHEMAS ─────────────────────────────────────────────

class ProblemZoneSchema(Schema):
    """One calibrated problem zone"""

    class Meta:
        unknown = EXCLUDE

    # Range is checked against the ROM table by the calibration analyzer
    zone_index = StrictInteger(required=True)

    severity = fields.Float(
        required=True,
        validate=validate.Range(min=0)
    )

    issue_types = fields.List(fields.Str(validate=validate.Length(max=64)))


class CalibrationProfileSchema(Schema):
    """Calibration profile produced by the calibration flow"""

    class Meta:
        unknown = EXCLUDE

    body_part = fields.Str(
        required=True,
        validate=validate.OneOf(BODY_PART_VALUES)
    )

    problem_zones = fields.List(
        fields.Nested(ProblemZoneSchema),
        required=True
    )

    safe_zones = fields.List(StrictInteger())

    primary_goal = fields.Str(
        required=False,
        allow_none=True,
        validate=[validate.Length(max=200), validate_no_html]
    )

    issue_contexts = fields.List(fields.Str(validate=validate.Length(max=64)))

    affected_movements = fields.List(fields.Str(validate=validate.Length(max=64)))

    notes = _free_text_field()


class CheckInRequestSchema(CheckInSchema):
    """Check-in posted to the API, optionally carrying the current calibration"""

    # Owner of the outcome history; omitted means the check-in is not tracked
    profile_id = fields.Str(
        required=False,
        allow_none=True,
        validate=validate.Regexp(r'^[A-Za-z0-9_-]{1,64}$')
    )

    calibration = fields.Nested(
        CalibrationProfileSchema,
        required=False,
        allow_none=True
    )


# ─── SESSION SCHEMAS ─────────────────────────────────────────────────

class DrillFeedbackSchema(Schema):
    """Per-drill feedback validation"""

    class Meta:
        unknown = EXCLUDE

    drill_id = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=64),
            validate.Regexp(r'^[A-Z0-9_]+$')
        ]
    )

    pain = _level_field()

    felt_stable = StrictBoolean(required=True)

    notes = _free_text_field()


class CoachStateSchema(Schema):
    """Coach state handed back by the caller"""

    class Meta:
        unknown = EXCLUDE

    body_part = fields.Str(
        required=True,
        validate=validate.OneOf(BODY_PART_VALUES)
    )

    mode = fields.Str(
        required=True,
        validate=validate.OneOf(MODE_VALUES)
    )

    plan = fields.List(
        fields.Str(validate=validate.Length(min=1, max=64)),
        required=True
    )

    reasoning = fields.Str(load_default='')


# ─── HELPERS ─────────────────────────────────────────────────────────

def validate_data(schema_class, data):
    """
    Convenience function to validate data against a schema

    Args:
        schema_class: Marshmallow Schema class
        data: Dictionary of data to validate

    Returns:
        tuple: (is_valid, validated_data or errors)

    Example:
        is_valid, result = validate_data(CheckInSchema, request.get_json())
        if not is_valid:
            return jsonify({'error': 'Validation failed', 'details': result}), 400
        # use result (validated data)
    """
    schema = schema_class()
    try:
        validated_data = schema.load(data)
        return True, validated_data
    except ValidationError as err:
        return False, err.messages


def validate_json(schema_class, json_data):
    """
    Convenience function to validate JSON data against a schema

    Args:
        schema_class: Marshmallow Schema class
        json_data: Dictionary of JSON data to validate

    Returns:
        tuple: (is_valid, validated_data or errors)
    """
    if json_data is None:
        return False, {'_schema': ['Request body must be a JSON object']}
    return validate_data(schema_class, json_data)


# ─── EXPORT ALL SCHEMAS ───────────────────────────────────────────────

__all__ = [
    # Check-in
    'CheckInSchema',
    'CheckInRequestSchema',
    'ScreenRequestSchema',

    # Calibration
    'ProblemZoneSchema',
    'CalibrationProfileSchema',

    # Session
    'DrillFeedbackSchema',
    'CoachStateSchema',

    # Fields & validators
    'StrictInteger',
    'StrictBoolean',
    'validate_no_html',

    # Helper Functions
    'validate_data',
    'validate_json',
]
