"""
Exceptions raised while translating Cypher queries to SQL
"""


class TranslationError(ValueError):
    """Base class for all translation failures"""
    pass


class CypherSyntaxError(TranslationError):
    """The query text could not be parsed into a Cypher AST"""

    def __init__(self, message: str, query: str = ''):
        super().__init__(message)
        self.query = query


class MissingSchemaError(TranslationError):
    """A label, relationship type or column has no entry in the schema mapping"""
    pass


class UnsupportedQueryError(TranslationError):
    """The query parsed, but its clause combination cannot be translated"""
    pass
