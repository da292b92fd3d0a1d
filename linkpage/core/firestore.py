"""
Firestore REST Client
=====================

Talks to a hosted Cloud Firestore database through its v1 REST API using
requests. Public reads go out with the project API key only; writes carry the
signed-in user's Firebase ID token so the database's security rules apply.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from .errors import (
    AlreadyExistsError, AuthError, NotFoundError, PermissionDeniedError, StoreError
)
from .store import Document, DocumentStore

logger = logging.getLogger(__name__)

API_BASE = "https://firestore.googleapis.com/v1"

PAGE_SIZE = 300


# ===== Value Codec =====

def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp (nanosecond precision allowed) as aware UTC"""
    if not value:
        return None
    text = value.replace('Z', '+00:00')
    if '.' in text:
        head, rest = text.split('.', 1)
        digits = ''
        for ch in rest:
            if not ch.isdigit():
                break
            digits += ch
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest[len(digits):]}"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def encode_value(value: Any) -> Dict[str, Any]:
    """Python value -> Firestore Value"""
    if value is None:
        return {'nullValue': None}
    if isinstance(value, bool):
        return {'booleanValue': value}
    if isinstance(value, int):
        return {'integerValue': str(value)}
    if isinstance(value, float):
        return {'doubleValue': value}
    if isinstance(value, datetime):
        return {'timestampValue': _format_timestamp(value)}
    if isinstance(value, dict):
        return {'mapValue': {'fields': encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {'arrayValue': {'values': [encode_value(item) for item in value]}}
    return {'stringValue': str(value)}


def decode_value(value: Dict[str, Any]) -> Any:
    """Firestore Value -> Python value"""
    if 'nullValue' in value:
        return None
    if 'booleanValue' in value:
        return value['booleanValue']
    if 'integerValue' in value:
        return int(value['integerValue'])
    if 'doubleValue' in value:
        return float(value['doubleValue'])
    if 'timestampValue' in value:
        return parse_timestamp(value['timestampValue'])
    if 'stringValue' in value:
        return value['stringValue']
    if 'mapValue' in value:
        return decode_fields(value['mapValue'].get('fields', {}))
    if 'arrayValue' in value:
        return [decode_value(item) for item in value['arrayValue'].get('values', [])]
    if 'referenceValue' in value:
        return value['referenceValue']
    if 'bytesValue' in value:
        return value['bytesValue']
    if 'geoPointValue' in value:
        return value['geoPointValue']
    return None


def encode_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: encode_value(val) for key, val in data.items()}


def decode_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {key: decode_value(val) for key, val in fields.items()}


def decode_document(raw: Dict[str, Any]) -> Document:
    """Firestore Document resource -> Document tuple"""
    return Document(
        id=raw['name'].rsplit('/', 1)[-1],
        data=decode_fields(raw.get('fields', {})),
        created_at=parse_timestamp(raw.get('createTime')),
    )


# ===== Client =====

class FirestoreStore(DocumentStore):
    """Document store backed by hosted Cloud Firestore"""

    name = 'firestore'

    def __init__(self, project_id: str, api_key: str, database: str = '(default)',
                 emulator_host: str = None, timeout: float = 10,
                 session: requests.Session = None):
        self.project_id = project_id
        self.api_key = api_key
        self.database = database or '(default)'
        self.timeout = timeout
        self.session = session or requests.Session()

        api_base = f"http://{emulator_host}/v1" if emulator_host else API_BASE
        self.documents_url = (
            f"{api_base}/projects/{project_id}/databases/{self.database}/documents"
        )

    def _request(self, method: str, url: str, token: str = None,
                 params: Dict[str, Any] = None, payload: Any = None) -> Any:
        """Send a request and translate failures into LinkPage errors"""
        params = dict(params or {})
        if self.api_key:
            params['key'] = self.api_key

        headers = {'Accept': 'application/json'}
        if token:
            headers['Authorization'] = f"Bearer {token}"

        try:
            response = self.session.request(
                method, url, params=params, json=payload,
                headers=headers, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Firestore {method} {url} failed: {e}")
            raise StoreError(f"Could not reach the link store: {e}")

        if response.status_code < 400:
            return response.json() if response.content else None

        message = self._error_message(response)
        if response.status_code == 404:
            raise NotFoundError(message)
        if response.status_code == 409:
            raise AlreadyExistsError(message)
        if response.status_code == 401:
            raise AuthError('Your session has expired, please sign in again')
        if response.status_code == 403:
            raise PermissionDeniedError(message)

        logger.error(f"Firestore {method} {url} returned {response.status_code}: {message}")
        raise StoreError(f"Link store error ({response.status_code}): {message}")

    @staticmethod
    def _error_message(response) -> str:
        try:
            return response.json().get('error', {}).get('message') or response.reason
        except ValueError:
            return response.text or response.reason

    def _document_url(self, collection: str, doc_id: str = None) -> str:
        if doc_id:
            return f"{self.documents_url}/{collection}/{doc_id}"
        return f"{self.documents_url}/{collection}"

    def list_documents(self, collection: str, order_by: str = None,
                       token: str = None) -> List[Document]:
        if order_by:
            query = {
                'structuredQuery': {
                    'from': [{'collectionId': collection}],
                    'orderBy': [{'field': {'fieldPath': order_by}, 'direction': 'ASCENDING'}],
                }
            }
            results = self._request('POST', f"{self.documents_url}:runQuery",
                                    token=token, payload=query) or []
            # Each entry has a readTime; only matches carry a document
            return [decode_document(entry['document']) for entry in results if 'document' in entry]

        documents = []
        params = {'pageSize': PAGE_SIZE}
        while True:
            body = self._request('GET', self._document_url(collection),
                                 token=token, params=params) or {}
            documents.extend(decode_document(raw) for raw in body.get('documents', []))
            page_token = body.get('nextPageToken')
            if not page_token:
                return documents
            params = {'pageSize': PAGE_SIZE, 'pageToken': page_token}

    def get_document(self, collection: str, doc_id: str, token: str = None) -> Optional[Document]:
        try:
            raw = self._request('GET', self._document_url(collection, doc_id), token=token)
        except NotFoundError:
            return None
        return decode_document(raw)

    def create_document(self, collection: str, data: Dict[str, Any], doc_id: str = None,
                        token: str = None) -> Document:
        params = {'documentId': doc_id} if doc_id else None
        raw = self._request('POST', self._document_url(collection), token=token,
                            params=params, payload={'fields': encode_fields(data)})
        return decode_document(raw)

    def update_document(self, collection: str, doc_id: str, data: Dict[str, Any],
                        token: str = None) -> Document:
        params = {
            'updateMask.fieldPaths': list(data.keys()),
            'currentDocument.exists': 'true',
        }
        raw = self._request('PATCH', self._document_url(collection, doc_id), token=token,
                            params=params, payload={'fields': encode_fields(data)})
        return decode_document(raw)

    def delete_document(self, collection: str, doc_id: str, token: str = None) -> None:
        self._request('DELETE', self._document_url(collection, doc_id), token=token,
                      params={'currentDocument.exists': 'true'})

    def ping(self) -> Dict[str, Any]:
        try:
            self._request('GET', self._document_url('_health'), params={'pageSize': 1})
        except (NotFoundError, PermissionDeniedError):
            # Any answer from the API means it is reachable
            pass
        return {'backend': self.name, 'project_id': self.project_id}
