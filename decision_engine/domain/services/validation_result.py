"""Validation outcome as data. Any error makes the result invalid; warnings never do."""

from dataclasses import dataclass, field
from typing import Iterable


@dataclass(frozen=True)
class ValidationResult:
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def failure(cls, *errors: str) -> "ValidationResult":
        builder = ValidationResultBuilder()
        builder.add_errors(errors)
        return builder.build()

    def merge(self, other: "ValidationResult | None") -> "ValidationResult":
        """Return a new result holding this result's entries followed by other's."""
        if other is None:
            return self
        return ValidationResult(self.errors + other.errors, self.warnings + other.warnings)


@dataclass
class ValidationResultBuilder:
    """Accumulates entries across checks; blank messages are ignored."""

    _errors: list[str] = field(default_factory=list)
    _warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self._errors

    def add_error(self, error: str) -> "ValidationResultBuilder":
        if error and error.strip():
            self._errors.append(error)
        return self

    def add_errors(self, errors: Iterable[str]) -> "ValidationResultBuilder":
        for error in errors:
            self.add_error(error)
        return self

    def add_warning(self, warning: str) -> "ValidationResultBuilder":
        if warning and warning.strip():
            self._warnings.append(warning)
        return self

    def merge(self, other: ValidationResult | None) -> "ValidationResultBuilder":
        if other is not None:
            self.add_errors(other.errors)
            for warning in other.warnings:
                self.add_warning(warning)
        return self

    def build(self) -> ValidationResult:
        return ValidationResult(tuple(self._errors), tuple(self._warnings))
