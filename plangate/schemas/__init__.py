"""
PlanGate - Pydantic Schemas Package

Request/response schemas for API validation.
"""
