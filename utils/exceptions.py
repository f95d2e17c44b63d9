"""커스텀 예외 클래스들"""


class InventoryError(Exception):
    """재고 실사 시스템의 기본 예외 클래스"""
    pass


class ConfigurationError(InventoryError):
    """설정 관련 오류"""
    pass


class ValidationError(InventoryError):
    """데이터 검증 관련 오류 (네트워크로 전달되지 않음)"""
    pass


class NetworkUnavailableError(InventoryError):
    """일시적인 네트워크 오류. 다음 주기나 수동 새로고침에서 재시도합니다."""
    pass


class SessionError(InventoryError):
    """세션 관리 관련 오류"""
    pass


class UnauthorizedError(SessionError):
    """세션이 만료되었거나 유효하지 않습니다. 재시도하지 않고 로그아웃을 유발합니다."""
    pass


class NotFoundError(InventoryError):
    """요청한 리소스가 서버에 없습니다."""
    pass


class CompletionError(InventoryError):
    """실사 완료 처리 관련 오류"""
    pass


class CompletionInProgressError(CompletionError):
    """같은 배정에 대한 완료 요청이 이미 진행 중입니다."""
    pass


class AssignmentClosedError(InventoryError):
    """이미 완료된 배정은 더 이상 변경할 수 없습니다."""
    pass
