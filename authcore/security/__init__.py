from authcore.security.passwords import PasswordHasher, PasswordPolicy, ValidationResult

__all__ = ["PasswordHasher", "PasswordPolicy", "ValidationResult"]
