"""Coder package.

Deterministic code mapping, claim building, fix application and payer
adjudication. The primary entry point is
`app.coder.application.claims_service.ClaimsService`.
"""
