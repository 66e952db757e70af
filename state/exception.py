"""
State Store 관련 예외 클래스 정의
"""


class StateError(Exception):
    """State Store 기본 예외"""
    pass


class StateSaveError(StateError):
    """상태 파일 저장 실패"""
    def __init__(self, path: str, message: str = None):
        self.path = path
        self.message = message or f"Failed to save state to {path}"
        super().__init__(self.message)
