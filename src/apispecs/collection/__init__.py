"""
API Specs Collection Module

Postman collection model, structural validation and environment loading.
"""

from .models import (
    Auth, Body, Collection, Environment, Folder, KeyValue, PlannedRequest,
    Request, Scope, ValidationResult, Variable
)
from .validator import CollectionValidator, validate, load_collection
from .environment import load_environment, parse_environment

__all__ = [
    'Auth',
    'Body',
    'Collection',
    'Environment',
    'Folder',
    'KeyValue',
    'PlannedRequest',
    'Request',
    'Scope',
    'ValidationResult',
    'Variable',
    'CollectionValidator',
    'validate',
    'load_collection',
    'load_environment',
    'parse_environment',
]
