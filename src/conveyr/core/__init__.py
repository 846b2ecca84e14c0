from .errors import *  # noqa: F401,F403
from .errors import __all__ as _errors_all
from .typeoracle import Kind, is_of_type, empty_value_of, name_of
from .validation import MISSING, Analysis, CustomField, FieldMap, FieldSpec, FieldValidator, PayloadFormat, PrimitiveField, compile_format, sanitize
from .arguments import ArgumentMap, CompletionStyle, HandlerSignature, resolve_arguments
from .completion import Completion, join
from .authority import MutationAuthority, MutatorContext
from .registry import Registry, validate_id
from .store import Store, StoreBuilder, StoreField
from .service import EndpointRef, Service, ServiceBuilder, ServiceEndpoint
from .action import Action, ActionBuilder, ActionTrigger, CallTarget

__all__ = [
    *_errors_all,
    "Kind",
    "is_of_type",
    "empty_value_of",
    "name_of",
    "MISSING",
    "Analysis",
    "PrimitiveField",
    "CustomField",
    "FieldSpec",
    "FieldMap",
    "FieldValidator",
    "PayloadFormat",
    "compile_format",
    "sanitize",
    "ArgumentMap",
    "CompletionStyle",
    "HandlerSignature",
    "resolve_arguments",
    "Completion",
    "join",
    "MutationAuthority",
    "MutatorContext",
    "Registry",
    "validate_id",
    "Store",
    "StoreBuilder",
    "StoreField",
    "EndpointRef",
    "Service",
    "ServiceBuilder",
    "ServiceEndpoint",
    "Action",
    "ActionBuilder",
    "ActionTrigger",
    "CallTarget",
]
