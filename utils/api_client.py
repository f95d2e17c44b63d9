"""재고 실사 서버 API 클라이언트

HTTP 전송 실패를 예외 체계(NetworkUnavailableError, UnauthorizedError, NotFoundError,
ValidationError)로 변환하는 얇은 어댑터입니다. 토큰 갱신은 하지 않습니다.
"""

import datetime
from typing import Any, Dict, List, Optional

import requests

from core.models import CompletionRequest, Item
from .exceptions import (InventoryError, NetworkUnavailableError, NotFoundError,
                         UnauthorizedError, ValidationError)


class InventoryApiClient:
    """requests.Session 기반 원격 API 구현"""

    CHECK_NEW_ENDPOINT = "api/v1/inventory/worker/{worker_id}/check-new"
    ASSIGNMENTS_ENDPOINT = "api/v1/inventory/worker/{worker_id}/assignments"
    ITEM_ENDPOINT = "api/v1/items/{item_id}"
    COMPLETE_ENDPOINT = "api/v1/inventory/assignments/{assignment_id}/complete"

    def __init__(self, base_url: str, timeout: float = 30, session: Optional[requests.Session] = None):
        if not base_url:
            raise ValueError("서버 주소가 비어 있습니다.")
        self.base_url = base_url.rstrip('/') + '/'
        self.timeout = timeout
        self.session = session or requests.Session()

    def set_auth_token(self, token: Optional[str]):
        """Bearer 토큰을 설정합니다. 빈 값이면 인증 헤더를 제거합니다."""
        if token:
            self.session.headers['Authorization'] = f"Bearer {token}"
        else:
            self.session.headers.pop('Authorization', None)

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        url = self.base_url + endpoint
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise NetworkUnavailableError(f"서버에 연결할 수 없습니다: {e}") from e

        status = response.status_code
        if status in (401, 403):
            raise UnauthorizedError("세션이 만료되었습니다. 다시 로그인하세요.")
        if status == 404:
            raise NotFoundError(f"리소스를 찾을 수 없습니다: {endpoint}")
        if status in (400, 422):
            raise ValidationError(f"요청이 거부되었습니다 ({status}): {response.text}")
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise NetworkUnavailableError(f"서버 오류 ({status})") from e

        if status == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise InventoryError(f"서버 응답을 해석할 수 없습니다: {endpoint}") from e

    @staticmethod
    def _since_params(since: Optional[datetime.datetime]) -> Optional[Dict[str, str]]:
        if since is None:
            return None
        if since.tzinfo is None:
            since = since.replace(tzinfo=datetime.timezone.utc)
        return {'since': since.astimezone(datetime.timezone.utc).isoformat()}

    def has_new_tasks(self, worker_id: int, since: Optional[datetime.datetime] = None) -> bool:
        data = self._request('GET', self.CHECK_NEW_ENDPOINT.format(worker_id=worker_id),
                             params=self._since_params(since))
        return bool(data and data.get('hasNewTasks'))

    def fetch_assignments(self, worker_id: int, since: Optional[datetime.datetime] = None) -> List[Dict[str, Any]]:
        data = self._request('GET', self.ASSIGNMENTS_ENDPOINT.format(worker_id=worker_id),
                             params=self._since_params(since))
        return data or []

    def fetch_item(self, item_id: int) -> Optional[Item]:
        try:
            data = self._request('GET', self.ITEM_ENDPOINT.format(item_id=item_id))
        except NotFoundError:
            return None
        if not data:
            return None
        return Item(
            item_id=int(data.get('itemId', item_id)),
            name=data.get('name') or "",
            weight=data.get('weight'),
            length=data.get('length'),
            width=data.get('width'),
            height=data.get('height'),
        )

    def submit_completion(self, request: CompletionRequest) -> Optional[Dict[str, Any]]:
        return self._request('POST', self.COMPLETE_ENDPOINT.format(assignment_id=request.assignment_id),
                             json=request.to_dict())
