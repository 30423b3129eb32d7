"""Symbol classification: visibility, category and template value shape."""
import re
from typing import Optional, Sequence

from .category_registry import CategoryRegistry
from .models import PRIVATE, PUBLIC, Classification, CrossReferenceRecord

URL_NAME_SUFFIXES = ('_URL', '_URI', '_ENDPOINT')
SECRET_TOKENS = ('SECRET', 'KEY', 'TOKEN', 'PASSWORD', 'PRIVATE')
BOOLEAN_VALUES = {'true', 'false', 'yes', 'no', 'on', 'off'}
URL_VALUE = re.compile(r'^(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*)://')

# value_shape -> placeholder written into generated templates
PLACEHOLDERS = {
    'url': 'https://example.com',
    'secret': 'your-secret-here',
    'boolean': 'false',
    'integer': '3000',
    'string': 'your-value-here',
}


class Classifier:
    """Assign visibility, category and value shape to a symbol."""

    def __init__(self, registry: Optional[CategoryRegistry] = None,
                 public_prefixes: Sequence[str] = ('NEXT_PUBLIC_',)):
        self.registry = registry if registry is not None else CategoryRegistry()
        self.public_prefixes = tuple(public_prefixes)

    def classify(self, record: CrossReferenceRecord) -> Classification:
        """Classify one cross-referenced name.

        Args:
            record: Record carrying the name and its effective value

        Returns:
            Classification with visibility, category, shape and placeholder
        """
        shape, placeholder = self.value_shape(record.name, record.effective_value)
        return Classification(
            visibility=self.visibility(record.name),
            category=self.registry.categorize(record.name),
            value_shape=shape,
            placeholder=placeholder,
        )

    def visibility(self, name: str) -> str:
        """Return Public for names with a configured public prefix, else Private."""
        if name.startswith(self.public_prefixes):
            return PUBLIC
        return PRIVATE

    def value_shape(self, name: str, value: Optional[str] = None) -> tuple:
        """Infer (shape, placeholder) from the name and the effective value.

        Checks run in order: URL, secret, boolean, integer, string.
        """
        upper = name.upper()
        url = URL_VALUE.match(value) if value else None

        if url or upper.endswith(URL_NAME_SUFFIXES):
            scheme = url.group('scheme').lower() if url else 'https'
            if scheme in ('http', 'https'):
                return 'url', PLACEHOLDERS['url']
            return 'url', f"{scheme}://localhost"

        if any(token in upper for token in SECRET_TOKENS):
            return 'secret', PLACEHOLDERS['secret']

        if value is not None:
            if value.strip().lower() in BOOLEAN_VALUES:
                return 'boolean', PLACEHOLDERS['boolean']
            if value.strip().isascii() and value.strip().isdigit():
                return 'integer', PLACEHOLDERS['integer']

        return 'string', PLACEHOLDERS['string']
