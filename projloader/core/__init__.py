# Core subpackage: shape fields, naming and projection extraction.
from .fields import FieldDef, FieldDescriptor, FieldSet, field, field_set, relation

__all__ = ['FieldDef','FieldDescriptor','FieldSet','field','field_set','relation']
