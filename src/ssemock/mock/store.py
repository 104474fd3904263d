"""
SSE Mock Store

File-backed library of mock documents, laid out as
``<root>/Domains/<domain>/SSE/<file_id>.json``.

The store is read on every call; nothing is cached, so edits made by the
admin API or by hand are visible to the next resolution.
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import List, Dict, Any, Iterator, Optional, Tuple, Union

from .definition import MockDefinition
from .errors import MockDefinitionError, MockNotFoundError


DOMAINS_DIR = 'Domains'
SSE_DIR = 'SSE'
FILE_ID_LENGTH = 20

REQUIRED_FIELDS = ('url', 'responses', 'data')


class MockStore:
    """
    Loader and writer for stored mock documents.

    Example:
        store = MockStore('~/.mockingsse/mocks')
        store.save({'url': 'https://api.example.com/feed', 'responses': [...], 'data': [...]})

        for domain, file_id, definition in store.list_all_definitions():
            print(domain, file_id, definition.identity)
    """

    def __init__(self, root: Union[str, Path], default_domain: str = 'Dev'):
        """
        Initialize mock store.

        Args:
            root: Mock folder root (contains the Domains directory)
            default_domain: Domain used when a write does not name one
        """
        self.root = Path(root).expanduser()
        self.default_domain = default_domain
        self.logger = logging.getLogger("ssemock.store")

    @property
    def domains_path(self) -> Path:
        return self.root / DOMAINS_DIR

    def sse_folder(self, domain: str) -> Path:
        """Folder holding the documents of one domain."""
        return self.domains_path / domain / SSE_DIR

    def ensure_layout(self):
        """Create the default domain's folder if missing."""
        self.sse_folder(self.default_domain).mkdir(parents=True, exist_ok=True)

    @staticmethod
    def file_id_for(identity: str, scenario: Optional[str] = None) -> str:
        """
        Derive the file id for an identity and scenario.

        Repeated saves of the same identity+scenario land on the same file.
        """
        key = f"{identity}|{scenario}" if scenario else identity
        return hashlib.md5(key.encode('utf-8')).hexdigest()[:FILE_ID_LENGTH]

    def _iter_files(self) -> Iterator[Tuple[str, Path]]:
        """Yield (domain, path) for every document, sorted by domain then file name."""
        if not self.domains_path.is_dir():
            return

        for domain_dir in sorted(p for p in self.domains_path.iterdir() if p.is_dir()):
            sse_folder = domain_dir / SSE_DIR
            if not sse_folder.is_dir():
                continue
            for file_path in sorted(sse_folder.glob('*.json')):
                yield domain_dir.name, file_path

    def _read(self, file_path: Path) -> Any:
        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def list_all_definitions(self) -> List[Tuple[str, str, MockDefinition]]:
        """
        Load every stored definition in stable order.

        Unreadable or corrupt files are logged and skipped.

        Returns:
            List of (domain, file_id, MockDefinition)
        """
        definitions = []

        for domain, file_path in self._iter_files():
            file_id = file_path.stem
            try:
                document = self._read(file_path)
                definition = MockDefinition.from_dict(document, domain=domain, file_id=file_id)
            except (OSError, ValueError, MockDefinitionError) as e:
                self.logger.error(f"Error reading mock file {file_path}: {e}")
                continue
            definitions.append((domain, file_id, definition))

        return definitions

    def _summary(self, domain: str, file_path: Path, document: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'id': file_path.stem,
            'domain': domain,
            'filePath': str(file_path),
            'fileName': file_path.name,
            'url': document.get('url'),
            'scenario': document.get('scenario'),
            'matching': document.get('matching'),
            'responses': document.get('responses') or [],
            'data': document.get('data') or []
        }

    def list_documents(self) -> List[Dict[str, Any]]:
        """List summaries of every readable document."""
        documents = []

        for domain, file_path in self._iter_files():
            try:
                document = self._read(file_path)
            except (OSError, ValueError) as e:
                self.logger.error(f"Error reading mock file {file_path}: {e}")
                continue
            if isinstance(document, dict):
                documents.append(self._summary(domain, file_path, document))

        return documents

    def _locate(self, file_id: str, domain: Optional[str] = None) -> Tuple[str, Path]:
        if domain:
            file_path = self.sse_folder(domain) / f"{file_id}.json"
            if file_path.is_file():
                return domain, file_path
        else:
            for found_domain, file_path in self._iter_files():
                if file_path.stem == file_id:
                    return found_domain, file_path

        raise MockNotFoundError(f"Mock not found: {file_id}")

    def get(self, file_id: str, domain: Optional[str] = None) -> Dict[str, Any]:
        """
        Load one document with its location details.

        Raises:
            MockNotFoundError: If no domain holds the id
        """
        found_domain, file_path = self._locate(file_id, domain)
        document = self._read(file_path)
        if not isinstance(document, dict):
            raise MockDefinitionError(f"Mock document {file_id} is not a JSON object")
        return {
            'id': file_id,
            'domain': found_domain,
            'filePath': str(file_path),
            'fileName': file_path.name,
            **document
        }

    def get_definition(self, file_id: str, domain: Optional[str] = None) -> MockDefinition:
        """Load one document as a MockDefinition."""
        found_domain, file_path = self._locate(file_id, domain)
        return MockDefinition.from_dict(self._read(file_path), domain=found_domain, file_id=file_id)

    def _write(self, domain: str, file_id: str, document: Dict[str, Any]) -> Dict[str, Any]:
        folder = self.sse_folder(domain)
        folder.mkdir(parents=True, exist_ok=True)
        file_path = folder / f"{file_id}.json"

        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(document, f, indent=2)

        self.logger.info(f"Saved mock {file_id} for {document.get('url')} in domain {domain}")
        return {
            'id': file_id,
            'domain': domain,
            'filePath': str(file_path),
            'fileName': file_path.name,
            **document
        }

    def save(self, document: Dict[str, Any], domain: Optional[str] = None) -> Dict[str, Any]:
        """
        Create or overwrite the document for its identity and scenario.

        Args:
            document: Mock document (url, responses and data are required)
            domain: Target domain (defaults to the store's default domain)

        Returns:
            Saved document with id, domain and file location

        Raises:
            MockDefinitionError: If a required field is missing
        """
        # Empty lists are allowed; only absent or null fields are missing
        missing = [name for name in REQUIRED_FIELDS if document.get(name) is None]
        if 'url' not in missing and (not isinstance(document['url'], str) or not document['url']):
            missing.append('url')
        if missing:
            raise MockDefinitionError(f"Missing required fields: {', '.join(missing)}")

        scenario = document.get('scenario') or None
        stored = {
            'url': document['url'],
            'scenario': scenario,
            'matching': document.get('matching') or None,
            'responses': document['responses'],
            'data': document['data']
        }
        if 'statusCode' in document:
            stored['statusCode'] = document['statusCode']

        file_id = self.file_id_for(stored['url'], scenario)
        return self._write(domain or self.default_domain, file_id, stored)

    def update(self, file_id: str, document: Dict[str, Any], domain: Optional[str] = None) -> Dict[str, Any]:
        """
        Replace an existing document in place.

        ``url``, ``scenario`` and ``matching`` default to the stored values;
        ``responses`` and ``data`` default to empty lists.

        Raises:
            MockNotFoundError: If the document does not exist
        """
        found_domain, file_path = self._locate(file_id, domain or self.default_domain)
        existing = self._read(file_path)
        if not isinstance(existing, dict):
            existing = {}

        stored = {
            'url': document.get('url') or existing.get('url'),
            'scenario': document['scenario'] if 'scenario' in document else existing.get('scenario'),
            'matching': document['matching'] if 'matching' in document else existing.get('matching'),
            'responses': document.get('responses') or [],
            'data': document.get('data') or []
        }
        status_code = document.get('statusCode', existing.get('statusCode'))
        if status_code is not None:
            stored['statusCode'] = status_code

        return self._write(found_domain, file_id, stored)

    def delete(self, file_id: str, domain: Optional[str] = None):
        """
        Delete a stored document.

        Raises:
            MockNotFoundError: If the document does not exist
        """
        _, file_path = self._locate(file_id, domain or self.default_domain)
        file_path.unlink()
        self.logger.info(f"Deleted mock {file_id}")

    def load_file(self, file_path: Union[str, Path]) -> MockDefinition:
        """
        Load a definition from an arbitrary document path.

        Raises:
            OSError: If the file cannot be read
            ValueError: If the file is not valid JSON
            MockDefinitionError: If the document has no url
        """
        path = Path(file_path).expanduser()
        return MockDefinition.from_dict(self._read(path), file_id=path.stem)
