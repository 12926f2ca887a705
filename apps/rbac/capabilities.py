"""
Capability declarations for permission-bearing types.

Models opt in with the ``register`` decorator:

    @capabilities.register
    class Patient(TenantOwnedModel): ...

    @capabilities.register(actions=['view', 'export'])
    class Report(TenantOwnedModel): ...

Each registration yields permission names ``{action}_{prefix}``. The prefix
defaults to the snake_case plural of the class name (``Patient`` ->
``patients``) and the actions default to view/create/update/delete.

``discover()`` validates every declaration and returns them sorted by type
name. Malformed declarations raise ``ConfigurationError`` so they surface at
startup rather than at sync time.
"""
import re
from dataclasses import dataclass
from typing import Tuple
from django.utils.text import camel_case_to_spaces
from apps.core.exceptions import ConfigurationError

DEFAULT_ACTIONS = ('view', 'create', 'update', 'delete')

IDENTIFIER = re.compile(r'^[a-z][a-z0-9_]*$')


def snake_plural(name):
    """``PatientNote`` -> ``patient_notes``; ``Pharmacy`` -> ``pharmacies``."""
    snake = camel_case_to_spaces(name).replace(' ', '_')
    if re.search(r'[^aeiou]y$', snake):
        return snake[:-1] + 'ies'
    if re.search(r'(s|x|z|ch|sh)$', snake):
        return snake + 'es'
    return snake + 's'


@dataclass(frozen=True)
class CapabilityDeclaration:
    type_name: str
    prefix: str
    actions: Tuple[str, ...]
    model: type = None

    @property
    def permissions(self):
        return [f"{action}_{self.prefix}" for action in self.actions]

    def validate(self):
        if not self.prefix or not IDENTIFIER.match(self.prefix):
            raise ConfigurationError(
                f"{self.type_name} declares an invalid permission prefix {self.prefix!r}"
            )
        if not self.actions:
            raise ConfigurationError(f"{self.type_name} declares no permission actions")
        for action in self.actions:
            if not isinstance(action, str) or not IDENTIFIER.match(action):
                raise ConfigurationError(
                    f"{self.type_name} declares an invalid permission action {action!r}"
                )
        if len(set(self.actions)) != len(self.actions):
            raise ConfigurationError(f"{self.type_name} declares duplicate permission actions")


class CapabilityRegistry:
    """Explicit registry of permission-declaring types."""

    def __init__(self):
        self._declarations = {}

    def register(self, model=None, *, prefix=None, actions=None):
        """Register ``model``; usable as ``@register`` or ``@register(prefix=...)``."""
        def decorator(cls):
            declared_actions = DEFAULT_ACTIONS if actions is None else tuple(actions)
            self._declarations[cls.__name__] = CapabilityDeclaration(
                type_name=cls.__name__,
                prefix=prefix if prefix is not None else snake_plural(cls.__name__),
                actions=declared_actions,
                model=cls,
            )
            return cls

        if model is not None:
            return decorator(model)
        return decorator

    def unregister(self, model):
        self._declarations.pop(model.__name__, None)

    def discover(self):
        """All declarations, validated and sorted by type name."""
        declarations = sorted(self._declarations.values(), key=lambda d: d.type_name)
        seen = {}
        for declaration in declarations:
            declaration.validate()
            if declaration.prefix in seen:
                raise ConfigurationError(
                    f"{declaration.type_name} and {seen[declaration.prefix]} both declare "
                    f"the permission prefix {declaration.prefix!r}"
                )
            seen[declaration.prefix] = declaration.type_name
        return declarations

    def declaration_for(self, model):
        """Declaration for a model class or instance, or None."""
        cls = model if isinstance(model, type) else type(model)
        declaration = self._declarations.get(cls.__name__)
        if declaration is not None and declaration.model is cls:
            return declaration
        return None

    def declaration_for_prefix(self, prefix):
        for declaration in self._declarations.values():
            if declaration.prefix == prefix:
                return declaration
        return None


registry = CapabilityRegistry()
register = registry.register
discover = registry.discover
