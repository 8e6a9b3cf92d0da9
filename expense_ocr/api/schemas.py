"""API Serialization Schemas."""

from marshmallow import Schema, fields, validate


class ParsedExpenseSchema(Schema):
    vendor = fields.Str(required=True)
    amount = fields.Float(required=True)
    tax_amount = fields.Float(required=True)
    date = fields.Date(allow_none=True)
    invoice_number = fields.Str()
    confidence = fields.Int(validate=validate.Range(min=0, max=100))
    provider = fields.Str()


class ProviderInfoSchema(Schema):
    provider = fields.Str(required=True)
    name = fields.Str(required=True)
    advanced = fields.Bool(required=True)
