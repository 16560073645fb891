from pageguard.policy.redaction import EntityRedactor, redact_entities

__all__ = ["EntityRedactor", "redact_entities"]
